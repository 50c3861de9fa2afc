import logging
from typing import Any, Dict, List, Optional

from sqlmodel import SQLModel, select
from sqlalchemy.exc import IntegrityError, InvalidRequestError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, DB_ECHO
from errors import InfrastructureError
from models import Reservation

logger = logging.getLogger(__name__)

# 1. Fail fast when the URL is missing
if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set. Please check your .env file.")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    # An in-memory SQLite database only lives as long as its single connection
    in_memory = url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))
    if in_memory:
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=echo, future=True, pool_pre_ping=True)


# 2. Create the Async Engine
engine = build_engine(DATABASE_URL, echo=DB_ECHO)


def make_sessionmaker(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async_session = make_sessionmaker(engine)


async def init_db(bind: Optional[AsyncEngine] = None):
    async with (bind or engine).begin() as conn:
        # This creates the tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables ready")


async def close_db(bind: Optional[AsyncEngine] = None):
    await (bind or engine).dispose()
    logger.info("Database engine disposed")


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session


class ReservationStore:
    """Thin persistence adapter for reservation records.

    Every call reads or writes the database directly; nothing is cached
    between calls. Unique-constraint violations are re-raised as
    ``IntegrityError`` after a rollback so the caller can decide what a
    duplicate slot means. Any other database failure becomes an
    ``InfrastructureError``.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, record: Reservation) -> Reservation:
        try:
            self.session.add(record)
            await self.session.commit()
            await self.session.refresh(record)
            return record
        except IntegrityError:
            await self._rollback_and_reload()
            raise
        except SQLAlchemyError as exc:
            await self._fail("insert", exc)

    async def find_many(
        self,
        date=None,
        time_slot: Optional[str] = None,
        table_number: Optional[int] = None,
        owner_id: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> List[Reservation]:
        statement = select(Reservation)
        if date is not None:
            statement = statement.where(Reservation.date == date)
        if time_slot is not None:
            statement = statement.where(Reservation.time_slot == time_slot)
        if table_number is not None:
            statement = statement.where(Reservation.table_number == table_number)
        if owner_id is not None:
            statement = statement.where(Reservation.owner_id == owner_id)
        if exclude_id is not None:
            statement = statement.where(Reservation.id != exclude_id)
        statement = statement.order_by(Reservation.date, Reservation.time_slot, Reservation.table_number)

        try:
            result = await self.session.execute(statement)
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            await self._fail("find", exc)

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        try:
            return await self.session.get(Reservation, reservation_id)
        except SQLAlchemyError as exc:
            await self._fail("get", exc)

    async def update_one(self, reservation_id: int, fields: Dict[str, Any]) -> Optional[Reservation]:
        try:
            record = await self.session.get(Reservation, reservation_id)
            if record is None:
                return None
            for key, value in fields.items():
                setattr(record, key, value)
            self.session.add(record)
            await self.session.commit()
            await self.session.refresh(record)
            return record
        except IntegrityError:
            await self._rollback_and_reload()
            raise
        except SQLAlchemyError as exc:
            await self._fail("update", exc)

    async def delete_one(self, reservation_id: int) -> int:
        try:
            record = await self.session.get(Reservation, reservation_id)
            if record is None:
                return 0
            await self.session.delete(record)
            await self.session.commit()
            return 1
        except SQLAlchemyError as exc:
            await self._fail("delete", exc)

    async def _rollback_and_reload(self):
        await self.session.rollback()
        # Rollback expires every loaded record; reload them so records already
        # handed to callers keep their committed values
        for record in list(self.session.identity_map.values()):
            try:
                await self.session.refresh(record)
            except InvalidRequestError:
                self.session.expunge(record)

    async def _fail(self, operation: str, exc: SQLAlchemyError):
        logger.error(f"Reservation {operation} failed: {exc}")
        await self.session.rollback()
        raise InfrastructureError(f"Reservation store unavailable during {operation}") from exc
