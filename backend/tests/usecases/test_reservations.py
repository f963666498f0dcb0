import asyncio
from datetime import date, datetime, time, timezone
from typing import Optional

import pytest
from field_booking.domain.availability import calculate_availability
from field_booking.domain.errors import ConflictError, NotFoundError, Reason, ValidationError
from field_booking.domain.events import EventType
from field_booking.domain.slots import ServiceHours
from field_booking.models import Field, Reservation, ReservationStatus, User
from field_booking.usecases import reservations as uc

HOURS = ServiceHours(opening_hour=6, closing_hour=23, slot_minutes=60, max_duration=3)
TODAY = date(2030, 1, 15)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Store:
    """Shared state behind the fake repositories; insert is the atomic section."""

    def __init__(self) -> None:
        now = _utc_now_naive()
        self.fields: dict[int, Field] = {
            1: Field(id=1, name="Lapangan A", price_per_slot=100000, is_active=True, created_at=now, updated_at=now),
            2: Field(id=2, name="Lapangan B", price_per_slot=80000, is_active=False, created_at=now, updated_at=now),
        }
        self.users: dict[int, User] = {
            7: User(id=7, email="budi@example.com", name="Budi", phone="0812", created_at=now, updated_at=now),
        }
        self.reservations: list[Reservation] = []
        self.lock = asyncio.Lock()
        self.insert_calls = 0


class FakeFieldRepo:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def get(self, field_id: int) -> Optional[Field]:
        return self.store.fields.get(field_id)

    async def get_for_update(self, field_id: int) -> Optional[Field]:
        await asyncio.sleep(0)
        return self.store.fields.get(field_id)


class FakeUserRepo:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def get(self, user_id: int) -> Optional[User]:
        return self.store.users.get(user_id)


class FakeResRepo:
    def __init__(self, store: Store) -> None:
        self.store = store
        self.update_calls = 0

    async def list_active(self, field_id: int, booking_date: date) -> list[Reservation]:
        # Yield so concurrent callers can all read a stale snapshot.
        await asyncio.sleep(0)
        return [
            r
            for r in self.store.reservations
            if r.field_id == field_id and r.booking_date == booking_date and r.status != ReservationStatus.CANCELED
        ]

    async def insert(
        self,
        *,
        field_id: int,
        user_id: int,
        booking_date: date,
        start_time: time,
        end_time: time,
        total_amount: int,
        status: ReservationStatus,
    ) -> Reservation:
        async with self.store.lock:
            self.store.insert_calls += 1
            for r in await self.list_active(field_id, booking_date):
                if r.start_time < end_time and r.end_time > start_time:
                    raise ConflictError("slot was reserved by another request")
            now = _utc_now_naive()
            reservation = Reservation(
                id=len(self.store.reservations) + 1,
                field_id=field_id,
                user_id=user_id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
                total_amount=total_amount,
                status=status,
                created_at=now,
                updated_at=now,
            )
            self.store.reservations.append(reservation)
            return reservation

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        return next((r for r in self.store.reservations if r.id == reservation_id), None)

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation:
        self.update_calls += 1
        reservation.status = status
        return reservation

    async def list_by_user(self, user_id: int) -> list[Reservation]:
        return [r for r in self.store.reservations if r.user_id == user_id]

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[Reservation]:
        return next((r for r in self.store.reservations if r.id == reservation_id and r.user_id == user_id), None)

    async def count_by_status(self) -> dict[ReservationStatus, tuple[int, int]]:
        counts: dict[ReservationStatus, tuple[int, int]] = {}
        for r in self.store.reservations:
            count, amount = counts.get(r.status, (0, 0))
            counts[r.status] = (count + 1, amount + r.total_amount)
        return counts

    async def list_all(self, offset: int, limit: int) -> list[tuple[Reservation, Field, Optional[User]]]:
        ordered = sorted(self.store.reservations, key=lambda r: (-r.booking_date.toordinal(), r.start_time, r.id))
        return [
            (r, self.store.fields[r.field_id], self.store.users.get(r.user_id)) for r in ordered[offset : offset + limit]
        ]

    async def count_all(self) -> int:
        return len(self.store.reservations)


def _repos(store: Store) -> tuple[FakeFieldRepo, FakeResRepo, FakeUserRepo]:
    return FakeFieldRepo(store), FakeResRepo(store), FakeUserRepo(store)


async def _book(store: Store, *, start: int, duration: int, field_id: int = 1, user_id: int = 7) -> Reservation:
    field_repo, res_repo, user_repo = _repos(store)
    reservation, _ = await uc.create_reservation(
        field_repo,
        res_repo,
        user_repo,
        field_id=field_id,
        user_id=user_id,
        booking_date=TODAY,
        start_time=time(start),
        duration=duration,
        hours=HOURS,
        today=TODAY,
    )
    return reservation


async def _occupied(store: Store) -> list[str]:
    active = await FakeResRepo(store).list_active(1, TODAY)
    availability = calculate_availability(field_id=1, booking_date=TODAY, hours=HOURS, active_reservations=active)
    return availability.occupied_labels


@pytest.mark.asyncio
async def test_create_reservation_persists_pending_with_price() -> None:
    store = Store()
    field_repo, res_repo, user_repo = _repos(store)
    reservation, event = await uc.create_reservation(
        field_repo,
        res_repo,
        user_repo,
        field_id=1,
        user_id=7,
        booking_date=TODAY,
        start_time=time(10),
        duration=2,
        hours=HOURS,
        today=TODAY,
    )
    assert reservation.id == 1
    assert reservation.status == ReservationStatus.PENDING
    assert (reservation.start_time, reservation.end_time) == (time(10), time(12))
    assert reservation.total_amount == 200000
    assert event.type == EventType.CREATED
    assert event.requester == {"id": 7, "full_name": "Budi", "phone": "0812"}
    assert event.reservation["start_time"] == "10:00"
    assert event.field["name"] == "Lapangan A"


@pytest.mark.asyncio
async def test_created_reservation_is_visible_to_next_snapshot() -> None:
    store = Store()
    await _book(store, start=10, duration=2)
    assert await _occupied(store) == ["10:00", "11:00"]


@pytest.mark.asyncio
async def test_overlapping_request_is_rejected_before_insert() -> None:
    store = Store()
    await _book(store, start=10, duration=2)
    with pytest.raises(ConflictError):
        await _book(store, start=11, duration=1)
    assert store.insert_calls == 1


@pytest.mark.asyncio
async def test_validation_error_never_touches_storage() -> None:
    store = Store()
    with pytest.raises(ValidationError):
        await _book(store, start=21, duration=3)
    assert store.insert_calls == 0


@pytest.mark.asyncio
async def test_missing_field_raises_not_found() -> None:
    store = Store()
    with pytest.raises(NotFoundError) as excinfo:
        await _book(store, start=10, duration=1, field_id=99)
    assert excinfo.value.reason == Reason.FIELD_NOT_FOUND


@pytest.mark.asyncio
async def test_inactive_field_is_not_bookable() -> None:
    store = Store()
    with pytest.raises(NotFoundError) as excinfo:
        await _book(store, start=10, duration=1, field_id=2)
    assert excinfo.value.reason == Reason.FIELD_INACTIVE


@pytest.mark.asyncio
async def test_unknown_requester_still_books_without_contact_info() -> None:
    store = Store()
    field_repo, res_repo, user_repo = _repos(store)
    _, event = await uc.create_reservation(
        field_repo,
        res_repo,
        user_repo,
        field_id=1,
        user_id=404,
        booking_date=TODAY,
        start_time=time(8),
        duration=1,
        hours=HOURS,
        today=TODAY,
    )
    assert event.requester is None


@pytest.mark.asyncio
async def test_concurrent_overlapping_commits_admit_only_one() -> None:
    store = Store()
    attempts = [
        _book(store, start=10, duration=2),
        _book(store, start=11, duration=2),
        _book(store, start=9, duration=3),
        _book(store, start=11, duration=1),
        _book(store, start=11, duration=3),
    ]
    results = await asyncio.gather(*attempts, return_exceptions=True)
    successes = [r for r in results if isinstance(r, Reservation)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert all(isinstance(exc, ConflictError) for exc in failures)
    assert len(store.reservations) == 1


@pytest.mark.asyncio
async def test_concurrent_disjoint_commits_all_succeed() -> None:
    store = Store()
    results = await asyncio.gather(
        _book(store, start=6, duration=2),
        _book(store, start=8, duration=2),
        _book(store, start=10, duration=2),
    )
    assert len(results) == 3
    assert await _occupied(store) == ["06:00", "07:00", "08:00", "09:00", "10:00", "11:00"]


@pytest.mark.asyncio
async def test_transition_to_paid_emits_status_event() -> None:
    store = Store()
    reservation = await _book(store, start=10, duration=2)
    field_repo, res_repo, user_repo = _repos(store)
    result = await uc.transition_status(
        field_repo, res_repo, user_repo, reservation_id=reservation.id, status=ReservationStatus.PAID
    )
    assert result.changed is True
    assert result.previous == ReservationStatus.PENDING
    assert result.reservation.status == ReservationStatus.PAID
    assert result.event is not None
    assert result.event.type == EventType.STATUS_CHANGED
    assert result.event.status == ReservationStatus.PAID


@pytest.mark.asyncio
async def test_cancellation_frees_the_slot() -> None:
    store = Store()
    reservation = await _book(store, start=10, duration=2)
    assert await _occupied(store) == ["10:00", "11:00"]

    field_repo, res_repo, user_repo = _repos(store)
    await uc.transition_status(
        field_repo, res_repo, user_repo, reservation_id=reservation.id, status=ReservationStatus.CANCELED
    )
    assert await _occupied(store) == []
    rebooked = await _book(store, start=10, duration=2)
    assert rebooked.status == ReservationStatus.PENDING


@pytest.mark.asyncio
async def test_repeating_the_same_status_is_a_noop() -> None:
    store = Store()
    reservation = await _book(store, start=10, duration=1)
    field_repo, res_repo, user_repo = _repos(store)
    await uc.transition_status(
        field_repo, res_repo, user_repo, reservation_id=reservation.id, status=ReservationStatus.PAID
    )
    result = await uc.transition_status(
        field_repo, res_repo, user_repo, reservation_id=reservation.id, status=ReservationStatus.PAID
    )
    assert result.changed is False
    assert result.event is None
    assert result.reservation.status == ReservationStatus.PAID
    assert res_repo.update_calls == 1


@pytest.mark.asyncio
async def test_transition_out_of_terminal_status_is_rejected() -> None:
    store = Store()
    reservation = await _book(store, start=10, duration=1)
    field_repo, res_repo, user_repo = _repos(store)
    await uc.transition_status(
        field_repo, res_repo, user_repo, reservation_id=reservation.id, status=ReservationStatus.CANCELED
    )
    with pytest.raises(ValidationError):
        await uc.transition_status(
            field_repo, res_repo, user_repo, reservation_id=reservation.id, status=ReservationStatus.PENDING
        )


@pytest.mark.asyncio
async def test_transition_of_missing_reservation_raises_not_found() -> None:
    field_repo, res_repo, user_repo = _repos(Store())
    with pytest.raises(NotFoundError) as excinfo:
        await uc.transition_status(field_repo, res_repo, user_repo, reservation_id=5, status=ReservationStatus.PAID)
    assert excinfo.value.reason == Reason.RESERVATION_NOT_FOUND


@pytest.mark.asyncio
async def test_user_reservation_lookups_are_scoped_to_owner() -> None:
    store = Store()
    reservation = await _book(store, start=10, duration=1, user_id=7)
    res_repo = FakeResRepo(store)
    assert await uc.list_user_reservations(res_repo, user_id=7) == [reservation]
    assert await uc.list_user_reservations(res_repo, user_id=8) == []
    assert await uc.get_user_reservation(res_repo, reservation_id=reservation.id, user_id=8) is None


@pytest.mark.asyncio
async def test_booking_summary_counts_revenue_from_paid_only() -> None:
    store = Store()
    first = await _book(store, start=6, duration=2)
    second = await _book(store, start=10, duration=1)
    await _book(store, start=14, duration=1)
    field_repo, res_repo, user_repo = _repos(store)
    await uc.transition_status(field_repo, res_repo, user_repo, reservation_id=first.id, status=ReservationStatus.PAID)
    await uc.transition_status(
        field_repo, res_repo, user_repo, reservation_id=second.id, status=ReservationStatus.CANCELED
    )

    summary = await uc.booking_summary(res_repo)
    assert summary.total == 3
    assert summary.pending == 1
    assert summary.paid_revenue == 200000
    assert summary.by_status == {
        ReservationStatus.PENDING: 1,
        ReservationStatus.PAID: 1,
        ReservationStatus.CANCELED: 1,
    }


@pytest.mark.asyncio
async def test_operator_listing_pages_through_all_reservations() -> None:
    store = Store()
    for start in (6, 8, 10):
        await _book(store, start=start, duration=1)
    await _book(store, start=12, duration=1, user_id=99)
    res_repo = FakeResRepo(store)

    first = await uc.list_all_reservations(res_repo, page=1, limit=3)
    assert first.total == 4
    assert [r.start_time for r, _, _ in first.rows] == [time(6), time(8), time(10)]
    assert first.rows[0][1].name == "Lapangan A"
    assert first.rows[0][2] is not None and first.rows[0][2].name == "Budi"

    second = await uc.list_all_reservations(res_repo, page=2, limit=3)
    assert [(r.start_time, user) for r, _, user in second.rows] == [(time(12), None)]


@pytest.mark.asyncio
async def test_operator_listing_rejects_non_positive_page() -> None:
    with pytest.raises(ValidationError) as excinfo:
        await uc.list_all_reservations(FakeResRepo(Store()), page=0, limit=10)
    assert excinfo.value.reason == Reason.INVALID_VALUE
