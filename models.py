from typing import Optional
import datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint


class Reservation(SQLModel, table=True):
    __tablename__ = "reservations"
    __table_args__ = (
        # Database-level protection against double booking a table in a slot
        UniqueConstraint("date", "time_slot", "table_number", name="unique_table_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    date: datetime.date = Field(index=True)
    time_slot: str = Field(index=True)  # "18:00", "19:00", ...
    table_number: int
    phone: str
    owner_id: str = Field(index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    display_name: str
    provider: str = "local"  # "local" or "facebook"
    provider_id: Optional[str] = Field(default=None, index=True)
    password_hash: Optional[str] = None
