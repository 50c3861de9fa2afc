"""Table availability and the booking conflict guard.

``AvailabilityIndex`` answers which tables are free for a slot.
``BookingGuard`` is the only write path for reservations: it re-reads the
slot before every create or update and rejects the write when the table is
taken. The unique constraint on ``reservations`` backs the pre-check, so a
write that races past it still ends as a ``ConflictError``.
"""

import datetime
import logging
from typing import List, Optional, Set

from sqlalchemy.exc import IntegrityError

from config import TOTAL_TABLES
from database import ReservationStore
from errors import ConflictError, NotFoundError, ValidationError
from models import Reservation

logger = logging.getLogger(__name__)


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def require(**fields):
    missing = [name for name, value in fields.items() if _is_blank(value)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def parse_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"Date must be in YYYY-MM-DD format, got {value!r}")


def parse_table_number(value, total_tables: int = TOTAL_TABLES) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Table number must be an integer between 1 and {total_tables}")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdecimal():
            raise ValidationError(f"Table number must be an integer between 1 and {total_tables}")
        value = int(value)
    if not isinstance(value, int) or not 1 <= value <= total_tables:
        raise ValidationError(f"Table number must be an integer between 1 and {total_tables}")
    return value


class AvailabilityIndex:
    def __init__(self, store: ReservationStore, total_tables: int = TOTAL_TABLES):
        self.store = store
        self.total_tables = total_tables

    @property
    def all_tables(self) -> Set[int]:
        return set(range(1, self.total_tables + 1))

    async def available_tables(self, date, time_slot: str) -> Set[int]:
        require(date=date, time_slot=time_slot)
        date = parse_date(date)
        booked = await self.store.find_many(date=date, time_slot=time_slot)
        return self.all_tables - {r.table_number for r in booked}

    async def conflicts(
        self, date, time_slot: str, table_number: int, exclude_id: Optional[int] = None
    ) -> List[Reservation]:
        return await self.store.find_many(
            date=date,
            time_slot=time_slot,
            table_number=table_number,
            exclude_id=exclude_id,
        )


class BookingGuard:
    def __init__(self, store: ReservationStore, total_tables: int = TOTAL_TABLES):
        self.store = store
        self.total_tables = total_tables
        self.index = AvailabilityIndex(store, total_tables)

    async def _check(self, date, time_slot: str, table_number: int, exclude_id: Optional[int] = None):
        taken = await self.index.conflicts(date, time_slot, table_number, exclude_id=exclude_id)
        if taken:
            logger.warning(f"Table {table_number} already booked at {time_slot} on {date} (booking {taken[0].id})")
            raise ConflictError(date, time_slot, table_number)

    async def create_booking(self, date, time_slot: str, table_number, phone: str, owner_id: str) -> Reservation:
        require(date=date, time_slot=time_slot, table_number=table_number, phone=phone, owner_id=owner_id)
        table_number = parse_table_number(table_number, self.total_tables)
        date = parse_date(date)

        await self._check(date, time_slot, table_number)

        record = Reservation(
            date=date,
            time_slot=time_slot,
            table_number=table_number,
            phone=phone,
            owner_id=owner_id,
        )
        try:
            record = await self.store.insert(record)
        except IntegrityError:
            # Another request took the table between the check and the insert
            logger.warning(f"Insert for table {table_number} at {time_slot} on {date} hit the unique constraint")
            raise ConflictError(date, time_slot, table_number)

        logger.info(f"Booking {record.id} created: table {table_number} at {time_slot} on {date} for {owner_id}")
        return record

    async def update_booking(self, booking_id: int, date, time_slot: str, table_number, phone: str) -> Reservation:
        require(id=booking_id, date=date, time_slot=time_slot, table_number=table_number, phone=phone)
        table_number = parse_table_number(table_number, self.total_tables)
        date = parse_date(date)

        if await self.store.get(booking_id) is None:
            raise NotFoundError(booking_id)

        await self._check(date, time_slot, table_number, exclude_id=booking_id)

        fields = {
            "date": date,
            "time_slot": time_slot,
            "table_number": table_number,
            "phone": phone,
        }
        try:
            record = await self.store.update_one(booking_id, fields)
        except IntegrityError:
            logger.warning(f"Update of booking {booking_id} hit the unique constraint")
            raise ConflictError(date, time_slot, table_number)

        if record is None:
            # Deleted between the lookup and the write
            raise NotFoundError(booking_id)

        logger.info(f"Booking {booking_id} updated: table {table_number} at {time_slot} on {date}")
        return record

    async def delete_booking(self, booking_id: int) -> None:
        deleted = await self.store.delete_one(booking_id)
        if not deleted:
            raise NotFoundError(booking_id)
        logger.info(f"Booking {booking_id} deleted")

    async def get_booking(self, booking_id: int) -> Reservation:
        record = await self.store.get(booking_id)
        if record is None:
            raise NotFoundError(booking_id)
        return record

    async def bookings_for_owner(self, owner_id: str) -> List[Reservation]:
        require(owner_id=owner_id)
        return await self.store.find_many(owner_id=owner_id)
