from datetime import date
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_dispatcher, get_service_hours, get_session, get_today
from ..domain.errors import BookingError, NotFoundError, Reason
from ..domain.events import NotificationDispatcher, notify_safely
from ..domain.slots import ServiceHours
from ..infrastructure.repositories import (
    SqlAlchemyFieldRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyUserRepository,
)
from ..schemas import (
    BookingSummaryRead,
    ReservationCreate,
    ReservationPageRead,
    ReservationRead,
    ReservationStatusUpdate,
)
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from .errors import booking_error_to_http

router = APIRouter(prefix="", tags=["reservations"])


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    hours: ServiceHours = Depends(get_service_hours),
    today: date = Depends(get_today),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ReservationRead:
    field_repo = SqlAlchemyFieldRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    user_repo = SqlAlchemyUserRepository(session)
    async with session.begin():
        try:
            reservation, event = await reservation_usecase.create_reservation(
                field_repo,
                res_repo,
                user_repo,
                field_id=payload.field_id,
                user_id=user_id,
                booking_date=payload.booking_date,
                start_time=payload.start_time,
                duration=payload.duration,
                hours=hours,
                today=today,
            )
        except BookingError as exc:
            raise booking_error_to_http(exc)

        # An audit failure rolls the insert back together with the 500.
        try:
            emit_audit_log(
                action="reservation.created",
                initiator="user",
                reservation_id=reservation.id,
                field_id=reservation.field_id,
                user_id=reservation.user_id,
                booking_date=reservation.booking_date,
                start_time=reservation.start_time,
                end_time=reservation.end_time,
                status_from=None,
                status_to=reservation.status,
                extra={"total_amount": reservation.total_amount},
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    background_tasks.add_task(notify_safely, dispatcher, event)
    return ReservationRead.from_db(reservation=reservation)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_user_reservations(res_repo, user_id=user_id)
    except BookingError as exc:
        raise booking_error_to_http(exc)
    return [ReservationRead.from_db(reservation=res) for res in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_user_reservation(
            res_repo, reservation_id=reservation_id, user_id=user_id
        )
    except BookingError as exc:
        raise booking_error_to_http(exc)
    if reservation is None:
        raise booking_error_to_http(
            NotFoundError(Reason.RESERVATION_NOT_FOUND, f"reservation {reservation_id} not found")
        )
    return ReservationRead.from_db(reservation=reservation)


@router.get("/admin/reservations", response_model=ReservationPageRead)
async def list_all_reservations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> ReservationPageRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        result = await reservation_usecase.list_all_reservations(res_repo, page=page, limit=limit)
    except BookingError as exc:
        raise booking_error_to_http(exc)
    return ReservationPageRead.from_domain(page=result)


@router.post("/admin/reservations/{reservation_id}/status", response_model=ReservationRead)
async def change_reservation_status(
    payload: ReservationStatusUpdate,
    background_tasks: BackgroundTasks,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ReservationRead:
    field_repo = SqlAlchemyFieldRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    user_repo = SqlAlchemyUserRepository(session)
    async with session.begin():
        try:
            result = await reservation_usecase.transition_status(
                field_repo,
                res_repo,
                user_repo,
                reservation_id=reservation_id,
                status=payload.status,
            )
        except BookingError as exc:
            raise booking_error_to_http(exc)

        reservation = result.reservation
        if result.changed:
            try:
                emit_audit_log(
                    action="reservation.status_changed",
                    initiator="operator",
                    reservation_id=reservation.id,
                    field_id=reservation.field_id,
                    user_id=reservation.user_id,
                    booking_date=reservation.booking_date,
                    start_time=reservation.start_time,
                    end_time=reservation.end_time,
                    status_from=result.previous,
                    status_to=reservation.status,
                )
            except RuntimeError:
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    if result.event is not None:
        background_tasks.add_task(notify_safely, dispatcher, result.event)
    return ReservationRead.from_db(reservation=reservation)


@router.get("/admin/reservations/summary", response_model=BookingSummaryRead)
async def get_booking_summary(session: AsyncSession = Depends(get_session)) -> BookingSummaryRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        summary = await reservation_usecase.booking_summary(res_repo)
    except BookingError as exc:
        raise booking_error_to_http(exc)
    return BookingSummaryRead.from_domain(summary=summary)
