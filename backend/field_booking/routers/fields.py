from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_service_hours, get_session
from ..domain.errors import BookingError
from ..domain.slots import ServiceHours
from ..infrastructure.repositories import SqlAlchemyFieldRepository, SqlAlchemyReservationRepository
from ..schemas import DayAvailabilityRead, FieldCreate, FieldRead, FieldUpdate
from ..usecases import fields as field_usecase
from .errors import booking_error_to_http

router = APIRouter(prefix="/fields", tags=["fields"])


@router.get("", response_model=List[FieldRead])
async def list_fields(session: AsyncSession = Depends(get_session)) -> list[FieldRead]:
    field_repo = SqlAlchemyFieldRepository(session)
    try:
        rows = await field_usecase.list_active_fields(field_repo)
    except BookingError as exc:
        raise booking_error_to_http(exc)
    return [FieldRead.from_db(field=field) for field in rows]


@router.post("", response_model=FieldRead, status_code=status.HTTP_201_CREATED)
async def create_field(
    payload: FieldCreate,
    session: AsyncSession = Depends(get_session),
) -> FieldRead:
    field_repo = SqlAlchemyFieldRepository(session)
    async with session.begin():
        try:
            field = await field_usecase.create_field(
                field_repo,
                name=payload.name,
                description=payload.description,
                price_per_slot=payload.price_per_slot,
                image_url=payload.image_url,
                is_active=payload.is_active,
            )
        except BookingError as exc:
            raise booking_error_to_http(exc)
    return FieldRead.from_db(field=field)


@router.patch("/{field_id}", response_model=FieldRead)
async def update_field(
    payload: FieldUpdate,
    field_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> FieldRead:
    field_repo = SqlAlchemyFieldRepository(session)
    async with session.begin():
        try:
            field = await field_usecase.update_field(
                field_repo,
                field_id=field_id,
                changes=payload.model_dump(exclude_unset=True),
            )
        except BookingError as exc:
            raise booking_error_to_http(exc)
    return FieldRead.from_db(field=field)


@router.get("/{field_id}/availability", response_model=DayAvailabilityRead)
async def get_availability(
    field_id: int = Path(..., ge=1),
    booking_date: date = Query(..., alias="date", description="Service day (YYYY-MM-DD)"),
    duration: int = Query(default=1, ge=1, description="Requested duration in slots"),
    session: AsyncSession = Depends(get_session),
    hours: ServiceHours = Depends(get_service_hours),
) -> DayAvailabilityRead:
    field_repo = SqlAlchemyFieldRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        availability = await field_usecase.get_day_availability(
            field_repo,
            res_repo,
            field_id=field_id,
            booking_date=booking_date,
            hours=hours,
        )
    except BookingError as exc:
        raise booking_error_to_http(exc)
    return DayAvailabilityRead.from_domain(availability=availability, duration=duration)
