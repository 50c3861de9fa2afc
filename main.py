import logging
import datetime

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
import uvicorn

import auth
from auth import require_user, current_user
from booking import AvailabilityIndex, BookingGuard
from config import API_OWNER_ID, CORS_ORIGINS, LOG_LEVEL, PORT, SECRET_KEY, SERVICE_TIMES, TOTAL_TABLES
from database import ReservationStore, close_db, get_session, init_db
from errors import BookingError, ConflictError, InfrastructureError, NotFoundError, ValidationError
from schemas import (
    AvailabilityOut,
    BookingOut,
    BookingRequest,
    BookingResult,
    ContentOut,
    ServiceInfo,
    SessionUser,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(title="Table Booking System")

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InfrastructureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_store(session: AsyncSession = Depends(get_session)) -> ReservationStore:
    return ReservationStore(session)


def get_guard(store: ReservationStore = Depends(get_store)) -> BookingGuard:
    return BookingGuard(store)


def get_index(store: ReservationStore = Depends(get_store)) -> AvailabilityIndex:
    return AvailabilityIndex(store)


@app.on_event("startup")
async def on_startup():
    await init_db()


@app.on_event("shutdown")
async def on_shutdown():
    await close_db()


# --- Error handlers: every error body is {"error": <message>} ---

@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "; ".join(messages)})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": f"{request.url.path} - Unknown request!"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.middleware("http")
async def trace_requests(request: Request, call_next):
    logger.info(f"TRACE: {request.url.path} was requested at {datetime.date.today().isoformat()}")
    return await call_next(request)


app.include_router(auth.router)


# --- Pages for logged-in users ---

@app.get("/")
async def index():
    return RedirectResponse("/content", status_code=status.HTTP_302_FOUND)


@app.get("/content", response_model=ContentOut)
async def content(
    user: SessionUser = Depends(require_user),
    guard: BookingGuard = Depends(get_guard),
):
    bookings = await guard.bookings_for_owner(user.id)
    return ContentOut(
        user=user,
        bookings=[BookingOut.from_record(b) for b in bookings],
        nBookings=len(bookings),
    )


@app.get("/time-slots", response_model=ServiceInfo)
async def time_slots():
    return ServiceInfo(time_slots=SERVICE_TIMES, tables=list(range(1, TOTAL_TABLES + 1)))


@app.get("/availability", response_model=AvailabilityOut)
async def availability(
    date: datetime.date,
    time: str,
    index: AvailabilityIndex = Depends(get_index),
):
    if time not in SERVICE_TIMES:
        raise ValidationError(f"time must be one of {', '.join(SERVICE_TIMES)}")
    free = await index.available_tables(date, time)
    return AvailabilityOut(date=date, time=time, available_tables=sorted(free))


async def owned_booking(booking_id: int, user: SessionUser, guard: BookingGuard):
    booking = await guard.get_booking(booking_id)
    if booking.owner_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only change your own bookings")
    return booking


@app.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_own_booking(
    data: BookingRequest,
    user: SessionUser = Depends(require_user),
    guard: BookingGuard = Depends(get_guard),
):
    booking = await guard.create_booking(data.date, data.time, data.table_number, data.phone_number, user.id)
    return BookingOut.from_record(booking)


@app.get("/bookings/{booking_id}", response_model=BookingOut)
async def read_own_booking(
    booking_id: int,
    user: SessionUser = Depends(require_user),
    guard: BookingGuard = Depends(get_guard),
):
    return BookingOut.from_record(await owned_booking(booking_id, user, guard))


@app.put("/bookings/{booking_id}", response_model=BookingOut)
async def update_own_booking(
    booking_id: int,
    data: BookingRequest,
    user: SessionUser = Depends(require_user),
    guard: BookingGuard = Depends(get_guard),
):
    await owned_booking(booking_id, user, guard)
    booking = await guard.update_booking(booking_id, data.date, data.time, data.table_number, data.phone_number)
    return BookingOut.from_record(booking)


@app.delete("/bookings/{booking_id}")
async def delete_own_booking(
    booking_id: int,
    user: SessionUser = Depends(require_user),
    guard: BookingGuard = Depends(get_guard),
):
    await owned_booking(booking_id, user, guard)
    await guard.delete_booking(booking_id)
    return {"success": True, "message": f"Booking with ID {booking_id} deleted successfully"}


# --- RESTful API ---

@app.post("/api/booking", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def api_create_booking(
    data: BookingRequest,
    user=Depends(current_user),
    guard: BookingGuard = Depends(get_guard),
):
    owner_id = user.id if user else API_OWNER_ID
    booking = await guard.create_booking(data.date, data.time, data.table_number, data.phone_number, owner_id)
    return BookingResult(message="Booking created", booking=BookingOut.from_record(booking))


@app.get("/api/booking/{booking_id}", response_model=BookingOut)
async def api_read_booking(booking_id: int, guard: BookingGuard = Depends(get_guard)):
    return BookingOut.from_record(await guard.get_booking(booking_id))


# Deliberately open: no session or ownership check on API updates, same as anonymous API creates
@app.put("/api/booking/{booking_id}", response_model=BookingResult)
async def api_update_booking(
    booking_id: int,
    data: BookingRequest,
    guard: BookingGuard = Depends(get_guard),
):
    booking = await guard.update_booking(booking_id, data.date, data.time, data.table_number, data.phone_number)
    return BookingResult(message="Booking updated successfully", booking=BookingOut.from_record(booking))


@app.delete("/api/booking/{booking_id}", response_model=BookingResult, response_model_exclude_none=True)
async def api_delete_booking(booking_id: int, guard: BookingGuard = Depends(get_guard)):
    await guard.delete_booking(booking_id)
    return BookingResult(message=f"Booking with ID {booking_id} deleted successfully")


app.add_middleware(SessionMiddleware, secret_key=SECRET_KEY)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
