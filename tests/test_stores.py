from datetime import date

import pytest

from soiltesting.core.exceptions import NotFoundError
from soiltesting.db import models
from soiltesting.services import request_store, schedule_store


def _request(db, farmer_id=7, center_id=1, preferred_date=date(2030, 3, 14)):
    request = request_store.create_request(
        db,
        farmer_id,
        {
            "center_id": center_id,
            "preferred_date": preferred_date,
            "farmer_phone": "0771234567",
        },
    )
    db.commit()
    return request


def test_request_search_filters_and_paginates(db_session):
    for day in range(1, 6):
        _request(db_session, preferred_date=date(2030, 3, day))
    _request(db_session, farmer_id=8, center_id=2)

    page = request_store.search_requests(db_session, farmer_id=7, page=2, limit=2)

    assert page.total == 5
    assert page.total_pages == 3
    assert len(page.items) == 2
    assert all(item.farmer_id == 7 for item in page.items)

    ranged = request_store.search_requests(
        db_session, date_from=date(2030, 3, 2), date_to=date(2030, 3, 3)
    )
    assert {item.preferred_date for item in ranged.items} == {date(2030, 3, 2), date(2030, 3, 3)}

    assert request_store.get_by_farmer(db_session, 8).total == 1


def test_paging_is_clamped(db_session):
    _request(db_session)

    page = request_store.search_requests(db_session, page=0, limit=1000)

    assert page.page == 1
    assert page.limit == 100


def test_update_request_status_ignores_unknown_fields(db_session):
    request = _request(db_session)

    request_store.update_request_status(
        db_session,
        request.id,
        models.RequestStatus.rejected,
        {"rejection_reason": "Flooded", "farmer_id": 99},
    )
    db_session.commit()

    assert request.status == models.RequestStatus.rejected
    assert request.rejection_reason == "Flooded"
    assert request.farmer_id == 7
    assert request_store.get_pending(db_session).total == 0

    with pytest.raises(NotFoundError):
        request_store.update_request_status(db_session, 999, models.RequestStatus.cancelled)


def test_schedule_store_round_trip(db_session):
    schedule = schedule_store.create_schedule(
        db_session,
        7,
        {
            "center_id": 1,
            "scheduled_date": date(2030, 3, 14),
            "start_time": "09:00",
            "end_time": "10:00",
            "farmer_phone": "0771234567",
        },
        status=models.ScheduleStatus.approved,
    )
    schedule_store.attach_qr_credential(
        db_session, schedule, "https://qr.example/img", {"scheduled_date": date(2030, 3, 14)}
    )
    db_session.commit()

    assert schedule.qr_code_data == '{"scheduled_date": "2030-03-14"}'
    assert schedule_store.mark_completed(db_session, schedule.id) is True
    assert schedule_store.mark_completed(db_session, 999) is False
    db_session.commit()

    assert schedule.status == models.ScheduleStatus.completed
    assert schedule.completed_at is not None
    assert schedule_store.get_today(db_session, date(2030, 3, 14)) == []
    assert schedule_store.search_schedules(
        db_session, status=models.ScheduleStatus.completed
    ).total == 1
