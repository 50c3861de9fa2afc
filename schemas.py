import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import SERVICE_TIMES, TOTAL_TABLES
from models import Reservation, User


# Request bodies keep the public field names of the booking API
class BookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    date: datetime.date
    time: str
    table_number: int = Field(alias="tableNumber", ge=1, le=TOTAL_TABLES)
    phone_number: str = Field(min_length=1)

    @field_validator("time")
    @classmethod
    def time_must_be_service_time(cls, value: str) -> str:
        if value not in SERVICE_TIMES:
            raise ValueError(f"time must be one of {', '.join(SERVICE_TIMES)}")
        return value


class BookingOut(BaseModel):
    id: int
    date: datetime.date
    time: str
    tableNumber: int
    phone_number: str
    userid: str

    @classmethod
    def from_record(cls, record: Reservation) -> "BookingOut":
        return cls(
            id=record.id,
            date=record.date,
            time=record.time_slot,
            tableNumber=record.table_number,
            phone_number=record.phone,
            userid=record.owner_id,
        )


class BookingResult(BaseModel):
    success: bool = True
    message: str
    booking: Optional[BookingOut] = None


class AvailabilityOut(BaseModel):
    date: datetime.date
    time: str
    available_tables: List[int]


class ServiceInfo(BaseModel):
    time_slots: List[str]
    tables: List[int]


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=72)
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


# Mirrors the user object kept in the session cookie
class SessionUser(BaseModel):
    id: str
    name: str
    type: str

    @classmethod
    def from_user(cls, user: User) -> "SessionUser":
        return cls(id=str(user.id), name=user.display_name, type=user.provider)


class ContentOut(BaseModel):
    user: SessionUser
    bookings: List[BookingOut]
    nBookings: int
