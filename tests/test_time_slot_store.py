from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from soiltesting.core.exceptions import (
    ConflictError,
    DateHasAppointmentsError,
    ValidationFailure,
)
from soiltesting.db import models
from soiltesting.db.session import Base
from soiltesting.services import time_slot_store


VISIT_DAY = date(2030, 3, 14)


def _slot(db, start="09:00", end="10:00", max_bookings=1, day=VISIT_DAY, center_id=1):
    slot = time_slot_store.create_slot(
        db,
        center_id=center_id,
        day=day,
        start_time=start,
        end_time=end,
        max_bookings=max_bookings,
    )
    db.commit()
    return slot


def test_book_stops_at_capacity(db_session):
    slot = _slot(db_session, max_bookings=2)

    assert time_slot_store.book(db_session, slot.id) is True
    assert time_slot_store.book(db_session, slot.id) is True
    assert time_slot_store.book(db_session, slot.id) is False
    db_session.commit()

    db_session.refresh(slot)
    assert slot.current_bookings == 2
    assert slot.available_bookings == 0


def test_release_never_goes_below_zero(db_session):
    slot = _slot(db_session)

    assert time_slot_store.book(db_session, slot.id) is True
    assert time_slot_store.release(db_session, slot.id) is True
    assert time_slot_store.release(db_session, slot.id) is False
    db_session.commit()

    db_session.refresh(slot)
    assert slot.current_bookings == 0


def test_duplicate_slot_is_rejected(db_session):
    _slot(db_session)

    with pytest.raises(ConflictError):
        _slot(db_session)


def test_bulk_create_skips_existing_intervals(db_session):
    _slot(db_session)

    created = time_slot_store.bulk_create_slots(
        db_session,
        center_id=1,
        days=[VISIT_DAY, date(2030, 3, 15)],
        intervals=[("09:00", "10:00"), ("10:00", "11:00")],
        max_bookings=3,
    )
    db_session.commit()

    assert len(created) == 3
    assert all(slot.max_bookings == 3 for slot in created)


def test_list_available_groups_by_date(db_session):
    _slot(db_session, "10:00", "11:00")
    _slot(db_session, "09:00", "10:00")
    hidden = _slot(db_session, "11:00", "12:00")
    hidden.is_available = False
    _slot(db_session, "09:00", "10:00", day=date(2030, 3, 16))
    _slot(db_session, "09:00", "10:00", center_id=2)
    db_session.commit()

    result = time_slot_store.list_available(db_session, 1, VISIT_DAY, date(2030, 3, 31))

    assert [entry["date"] for entry in result] == [VISIT_DAY, date(2030, 3, 16)]
    assert [item["start_time"] for item in result[0]["time_slots"]] == ["09:00", "10:00"]
    assert result[0]["time_slots"][0]["available_bookings"] == 1


def test_update_slot_refuses_capacity_below_bookings(db_session):
    slot = _slot(db_session, max_bookings=3)
    time_slot_store.book(db_session, slot.id)
    time_slot_store.book(db_session, slot.id)
    db_session.commit()

    with pytest.raises(ValidationFailure):
        time_slot_store.update_slot(db_session, slot, {"max_bookings": 1})

    time_slot_store.update_slot(db_session, slot, {"max_bookings": 2, "is_available": False})
    assert slot.max_bookings == 2
    assert slot.is_available is False


def test_delete_slot_with_bookings_is_refused(db_session):
    slot = _slot(db_session)
    time_slot_store.book(db_session, slot.id)
    db_session.commit()

    with pytest.raises(ConflictError):
        time_slot_store.delete_slot(db_session, slot)


def test_active_bookings_include_pending_requests(db_session):
    _slot(db_session)
    assert time_slot_store.has_active_bookings(db_session, 1, VISIT_DAY) is False

    db_session.add(
        models.SoilTestingRequest(
            farmer_id=7,
            center_id=1,
            preferred_date=VISIT_DAY,
            farmer_phone="0771234567",
        )
    )
    db_session.commit()

    assert time_slot_store.has_active_bookings(db_session, 1, VISIT_DAY) is True
    assert time_slot_store.has_active_bookings(db_session, 2, VISIT_DAY) is False


def test_set_date_availability_blocks_dates_with_schedules(db_session):
    slot = _slot(db_session)
    db_session.add(
        models.Schedule(
            farmer_id=7,
            center_id=1,
            scheduled_date=VISIT_DAY,
            farmer_phone="0771234567",
            status=models.ScheduleStatus.approved,
        )
    )
    db_session.commit()

    with pytest.raises(DateHasAppointmentsError):
        time_slot_store.set_date_availability(db_session, 1, VISIT_DAY, False)

    touched = time_slot_store.set_date_availability(db_session, 1, VISIT_DAY, False, force=True)
    db_session.commit()

    assert touched == 1
    assert slot.is_available is False


def test_bulk_set_date_availability_reports_per_date(db_session):
    _slot(db_session)
    _slot(db_session, day=date(2030, 3, 15))
    db_session.add(
        models.Schedule(
            farmer_id=7,
            center_id=1,
            scheduled_date=date(2030, 3, 15),
            farmer_phone="0771234567",
        )
    )
    db_session.commit()

    report = time_slot_store.bulk_set_date_availability(
        db_session,
        1,
        [(VISIT_DAY, False), (date(2030, 3, 15), False), (date(2030, 3, 20), False)],
    )

    assert report.success is True
    assert report.updated == [(VISIT_DAY, False)]
    assert [error.date for error in report.errors] == [date(2030, 3, 15), date(2030, 3, 20)]
    assert "No time slots" in report.errors[1].reason


def test_date_availability_summary(db_session):
    _slot(db_session)
    closed = _slot(db_session, "10:00", "11:00")
    closed.is_available = False
    db_session.add(
        models.Schedule(
            farmer_id=7,
            center_id=1,
            scheduled_date=VISIT_DAY,
            farmer_phone="0771234567",
        )
    )
    db_session.commit()

    summary = time_slot_store.get_date_availability(db_session, 1, VISIT_DAY, VISIT_DAY)

    assert summary == [
        {
            "date": VISIT_DAY,
            "is_available": False,
            "total_slots": 2,
            "available_slots": 1,
            "scheduled_appointments": 1,
        }
    ]


def test_concurrent_booking_never_exceeds_capacity(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'slots.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    with SessionLocal() as db:
        slot_id = _slot(db, max_bookings=3).id

    def attempt(_):
        with SessionLocal() as db:
            booked = time_slot_store.book(db, slot_id)
            db.commit()
            return booked

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(12)))

    assert results.count(True) == 3
    with SessionLocal() as db:
        assert db.get(models.TimeSlot, slot_id).current_bookings == 3
    engine.dispose()


def test_bulk_create_ignores_repeated_input(db_session):
    created = time_slot_store.bulk_create_slots(
        db_session,
        center_id=1,
        days=[VISIT_DAY, VISIT_DAY],
        intervals=[("09:00", "10:00"), ("09:00", "10:00")],
    )
    db_session.commit()

    assert len(created) == 1
    assert db_session.query(models.TimeSlot).count() == 1
