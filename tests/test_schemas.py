import pytest
from pydantic import ValidationError

from soiltesting.db import schemas


def test_clock_times_are_normalized():
    slot = schemas.TimeSlotCreate(
        center_id=1, date="2030-03-14", start_time="9:00", end_time="10:30:00"
    )

    assert (slot.start_time, slot.end_time) == ("09:00", "10:30")


@pytest.mark.parametrize(
    ("start", "end"),
    [("10:00", "09:00"), ("10:00", "10:00"), ("25:00", "26:00"), ("nine", "ten")],
)
def test_bad_intervals_are_rejected(start, end):
    with pytest.raises(ValidationError):
        schemas.TimeSlotCreate(center_id=1, date="2030-03-14", start_time=start, end_time=end)


def test_capacity_must_be_positive():
    with pytest.raises(ValidationError):
        schemas.TimeSlotCreate(
            center_id=1,
            date="2030-03-14",
            start_time="09:00",
            end_time="10:00",
            max_bookings=0,
        )


def test_approval_update_requires_schedule_fields():
    with pytest.raises(ValidationError) as exc_info:
        schemas.RequestUpdate(status="approved", approved_date="2030-03-14")

    assert "approved_start_time" in str(exc_info.value)


def test_schedule_times_come_in_pairs():
    with pytest.raises(ValidationError):
        schemas.ScheduleCreate(
            farmer_id=7,
            center_id=1,
            scheduled_date="2030-03-14",
            start_time="09:00",
            farmer_phone="0771234567",
        )


def test_phone_must_contain_digits():
    with pytest.raises(ValidationError):
        schemas.RequestCreate(
            center_id=1, preferred_date="2030-03-14", farmer_phone="call me please"
        )
