"""Booking errors surfaced by the availability index and the booking guard."""


class BookingError(Exception):
    """Base class for every booking failure."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """A required field is missing or malformed. Raised before any store access."""


class ConflictError(BookingError):
    """The table is already reserved for the requested date and time slot."""

    def __init__(self, date, time_slot: str, table_number: int):
        super().__init__(f"Table {table_number} is already booked at {time_slot} on {date}.")
        self.date = date
        self.time_slot = time_slot
        self.table_number = table_number


class NotFoundError(BookingError):
    def __init__(self, booking_id):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class InfrastructureError(BookingError):
    """The reservation store could not be reached or the operation failed."""
