from datetime import date, datetime

import pytest

from backend.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from backend.core.timeslots import DayOfWeek
from backend.models.availability import Availability
from backend.models.booking import Booking, BookingStatus
from backend.models.user import Role, UserStatus
from backend.services.availability_service import AvailabilityService

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def add_booking(db, user, professional, on_date, start, end, status=BookingStatus.PENDING) -> Booking:
    booking = Booking(
        user_id=user.id,
        professional_id=professional.id,
        date=on_date,
        start_time=start,
        end_time=end,
        modality='Video',
        concern='Feeling anxious',
        status=status.value,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def test_initialize_week_creates_seven_unavailable_days(db, clock, professional) -> None:
    service = AvailabilityService(db, now=clock)

    records = service.initialize_week(professional.id)

    assert [record.day for record in records] == [day.value for day in DayOfWeek]
    assert all(record.slots == [] and record.available is False for record in records)
    assert service.check_initialized(professional.id) == {'is_initialized': True, 'count': 7}


def test_initialize_week_twice_raises_conflict_and_keeps_seven_rows(db, clock, professional) -> None:
    service = AvailabilityService(db, now=clock)
    service.initialize_week(professional.id)

    with pytest.raises(Conflict):
        service.initialize_week(professional.id)

    assert db.query(Availability).filter(Availability.professional_id == professional.id).count() == 7


def test_initialize_week_rejects_non_professional(db, clock, client_user) -> None:
    service = AvailabilityService(db, now=clock)

    with pytest.raises(Forbidden):
        service.initialize_week(client_user.id)

    with pytest.raises(NotFound):
        service.initialize_week(9999)


def test_check_initialized_reports_empty_week(db, clock, professional) -> None:
    assert AvailabilityService(db, now=clock).check_initialized(professional.id) == {
        'is_initialized': False,
        'count': 0,
    }


def test_get_availability_returns_placeholders_before_initialization(db, clock, professional) -> None:
    days = AvailabilityService(db, now=clock).get_availability(professional.id)

    assert [record.day for record in days] == [day.value for day in DayOfWeek]
    assert all(record.id is None and record.available is False for record in days)


def test_get_availability_rejects_unknown_professional(db, clock, client_user) -> None:
    with pytest.raises(NotFound):
        AvailabilityService(db, now=clock).get_availability(client_user.id)


def test_replace_day_slots_stores_sorted_zero_padded_windows(db, clock, professional, schedule) -> None:
    record = schedule(professional, DayOfWeek.MONDAY, [('10:00', '11:00'), ('9:00', '10:00')])

    assert record.slots == [
        {'start_time': '09:00', 'end_time': '10:00'},
        {'start_time': '10:00', 'end_time': '11:00'},
    ]
    assert record.available is True


def test_replace_day_slots_rejects_overlapping_windows(db, clock, professional, schedule) -> None:
    with pytest.raises(ValidationFailed) as exception_info:
        schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00'), ('09:30', '10:30')])

    assert 'overlap' in exception_info.value.detail


def test_replace_day_slots_requires_a_slot_when_available(db, clock, professional, schedule) -> None:
    with pytest.raises(ValidationFailed):
        schedule(professional, DayOfWeek.MONDAY, [], available=True)

    record = schedule(professional, DayOfWeek.MONDAY, [], available=False)
    assert record.available is False


def test_replace_day_slots_rejects_other_professional(db, clock, professional, make_user, schedule) -> None:
    record = schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])
    other = make_user(Role.PROFESSIONAL)
    service = AvailabilityService(db, now=clock)

    with pytest.raises(Forbidden):
        service.replace_day_slots(record.id, [('11:00', '12:00')], True, other.id)

    with pytest.raises(NotFound):
        service.replace_day_slots(9999, [('11:00', '12:00')], True, professional.id)


def test_clear_day_removes_slots(db, clock, professional, schedule) -> None:
    record = schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])
    service = AvailabilityService(db, now=clock)

    cleared = service.clear_day(record.id, professional.id)

    assert cleared.slots == []
    assert cleared.available is False
    assert service.list_open_slots(on_date=MONDAY) == []


def test_removing_a_slot_keeps_existing_booking(db, clock, professional, client_user, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00'), ('10:00', '11:00')])
    booking = add_booking(db, client_user, professional, MONDAY, '09:00', '10:00')

    schedule(professional, DayOfWeek.MONDAY, [('10:00', '11:00')])

    db.refresh(booking)
    assert booking.status == BookingStatus.PENDING.value


def test_list_open_slots_excludes_active_bookings(db, clock, professional, client_user, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00'), ('10:00', '11:00')])
    add_booking(db, client_user, professional, MONDAY, '09:00', '10:00')

    slots = AvailabilityService(db, now=clock).list_open_slots(on_date=MONDAY)

    assert [(slot.start_time, slot.end_time) for slot in slots] == [('10:00', '11:00')]
    assert slots[0].professional_name == 'Dr. Ada'
    assert slots[0].day == 'Monday'
    assert slots[0].id == f'{professional.id}-2030-01-07-10:00'


def test_list_open_slots_ignores_cancelled_and_completed_bookings(
    db, clock, professional, client_user, schedule
) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00'), ('10:00', '11:00')])
    add_booking(db, client_user, professional, MONDAY, '09:00', '10:00', BookingStatus.CANCELLED)
    add_booking(db, client_user, professional, MONDAY, '10:00', '11:00', BookingStatus.COMPLETED)

    slots = AvailabilityService(db, now=clock).list_open_slots(on_date=MONDAY)

    assert len(slots) == 2


def test_list_open_slots_orders_by_date_professional_and_start(
    db, clock, professional, make_user, schedule
) -> None:
    second = make_user(Role.PROFESSIONAL, name='Dr. Ben')
    schedule(second, DayOfWeek.MONDAY, [('08:00', '09:00')])
    schedule(professional, DayOfWeek.MONDAY, [('14:00', '15:00'), ('09:00', '10:00')])
    schedule(professional, DayOfWeek.TUESDAY, [('07:00', '08:00')])

    slots = AvailabilityService(db, now=clock).list_open_slots(date_from=MONDAY, date_to=TUESDAY)

    assert [(slot.date, slot.professional_id, slot.start_time) for slot in slots] == [
        (MONDAY, professional.id, '09:00'),
        (MONDAY, professional.id, '14:00'),
        (MONDAY, second.id, '08:00'),
        (TUESDAY, professional.id, '07:00'),
    ]


def test_list_open_slots_filters_by_professional(db, clock, professional, make_user, schedule) -> None:
    second = make_user(Role.PROFESSIONAL)
    schedule(second, DayOfWeek.MONDAY, [('08:00', '09:00')])
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])

    slots = AvailabilityService(db, now=clock).list_open_slots(on_date=MONDAY, professional_id=second.id)

    assert [slot.professional_id for slot in slots] == [second.id]


def test_list_open_slots_skips_suspended_professionals(db, clock, make_user, schedule) -> None:
    suspended = make_user(Role.PROFESSIONAL)
    schedule(suspended, DayOfWeek.MONDAY, [('09:00', '10:00')])
    suspended.status = UserStatus.SUSPENDED.value
    db.commit()

    assert AvailabilityService(db, now=clock).list_open_slots(on_date=MONDAY) == []


def test_list_open_slots_skips_windows_already_started(db, professional, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00'), ('10:00', '11:00')])
    service = AvailabilityService(db, now=lambda: datetime(2030, 1, 7, 9, 30))

    slots = service.list_open_slots(on_date=MONDAY)

    assert [slot.start_time for slot in slots] == ['10:00']


def test_list_open_slots_drops_past_dates(db, clock, professional, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])

    assert AvailabilityService(db, now=clock).list_open_slots(on_date=date(2029, 12, 31)) == []


def test_list_open_slots_defaults_to_next_seven_days(db, clock, professional, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])

    slots = AvailabilityService(db, now=clock).list_open_slots()

    assert [slot.date for slot in slots] == [MONDAY]


@pytest.mark.parametrize(
    ('date_from', 'date_to'),
    [
        (date(2030, 1, 10), date(2030, 1, 7)),
        (date(2030, 1, 7), date(2030, 3, 1)),
    ],
)
def test_list_open_slots_rejects_invalid_ranges(db, clock, date_from, date_to) -> None:
    with pytest.raises(ValidationFailed):
        AvailabilityService(db, now=clock).list_open_slots(date_from=date_from, date_to=date_to)


def test_check_slot_available_reports_reason(db, clock, professional, client_user, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00'), ('10:00', '11:00')])
    add_booking(db, client_user, professional, MONDAY, '09:00', '10:00')
    service = AvailabilityService(db, now=clock)

    assert service.check_slot_available(professional.id, MONDAY, '10:00', '11:00').is_available is True
    assert service.check_slot_available(professional.id, MONDAY, '09:00', '10:00').reason == (
        'This time slot is already booked.'
    )
    assert service.check_slot_available(professional.id, MONDAY, '12:00', '13:00').reason == (
        'This time slot is not offered.'
    )
    assert service.check_slot_available(professional.id, TUESDAY, '09:00', '10:00').reason == (
        'Professional not available on this day.'
    )


def test_check_slot_available_ignores_the_booking_being_moved(
    db, clock, professional, client_user, schedule
) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])
    booking = add_booking(db, client_user, professional, MONDAY, '09:00', '10:00')

    check = AvailabilityService(db, now=clock).check_slot_available(
        professional.id, MONDAY, '09:00', '10:00', ignore_booking_id=booking.id
    )

    assert check.is_available is True


def test_list_open_slots_rejects_date_combined_with_range(db, clock) -> None:
    with pytest.raises(ValidationFailed) as exception_info:
        AvailabilityService(db, now=clock).list_open_slots(on_date=MONDAY, date_from=MONDAY)

    assert exception_info.value.detail == 'Use either date or date_from/date_to, not both.'


def test_list_open_slots_filters_by_weekday(db, clock, professional, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])
    schedule(professional, DayOfWeek.TUESDAY, [('09:00', '10:00')])

    slots = AvailabilityService(db, now=clock).list_open_slots(day=DayOfWeek.TUESDAY)

    assert [(slot.date, slot.day) for slot in slots] == [(TUESDAY, 'Tuesday')]


def test_bulk_replace_creates_and_updates_days(db, clock, professional, schedule) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])
    service = AvailabilityService(db, now=clock)

    records = service.bulk_replace(
        professional.id,
        [
            ('Wednesday', [('14:00', '15:00')], True),
            ('Monday', [('10:00', '11:00'), ('8:00', '9:00')], True),
        ],
    )

    assert [record.day for record in records] == ['Monday', 'Wednesday']
    assert records[0].slots == [
        {'start_time': '08:00', 'end_time': '09:00'},
        {'start_time': '10:00', 'end_time': '11:00'},
    ]
    assert db.query(Availability).filter(Availability.professional_id == professional.id).count() == 7


def test_bulk_replace_on_empty_week_creates_only_given_days(db, clock, professional) -> None:
    service = AvailabilityService(db, now=clock)

    service.bulk_replace(professional.id, [('Friday', [('09:00', '10:00')], True)])

    days = service.get_availability(professional.id)
    assert [record.day for record in days if record.id is not None] == ['Friday']


@pytest.mark.parametrize(
    'days',
    [
        [('Monday', [('09:00', '10:00')], True), ('Tuesday', [('09:00', '10:00'), ('09:30', '10:30')], True)],
        [('Monday', [('09:00', '10:00')], True), ('Tuesday', [], True)],
        [('Monday', [('09:00', '10:00')], True), ('Funday', [('09:00', '10:00')], True)],
        [('Monday', [('09:00', '10:00')], True), ('Monday', [('11:00', '12:00')], True)],
        [],
    ],
)
def test_bulk_replace_validates_every_day_before_writing(db, clock, professional, schedule, days) -> None:
    schedule(professional, DayOfWeek.MONDAY, [('15:00', '16:00')])
    service = AvailabilityService(db, now=clock)

    with pytest.raises(ValidationFailed):
        service.bulk_replace(professional.id, days)

    db.expire_all()
    monday = next(record for record in service.get_availability(professional.id) if record.day == 'Monday')
    assert monday.slots == [{'start_time': '15:00', 'end_time': '16:00'}]


def test_bulk_replace_rejects_non_professional(db, clock, client_user) -> None:
    with pytest.raises(Forbidden):
        AvailabilityService(db, now=clock).bulk_replace(client_user.id, [('Monday', [('09:00', '10:00')], True)])


def test_list_professionals_with_availability(db, clock, professional, make_user, schedule) -> None:
    idle = make_user(Role.PROFESSIONAL, name='Dr. Idle')
    suspended = make_user(Role.PROFESSIONAL)
    schedule(professional, DayOfWeek.WEDNESDAY, [('09:00', '10:00')])
    schedule(professional, DayOfWeek.MONDAY, [('09:00', '10:00')])
    schedule(professional, DayOfWeek.FRIDAY, [], available=False)
    schedule(suspended, DayOfWeek.MONDAY, [('09:00', '10:00')])
    suspended.status = UserStatus.SUSPENDED.value
    db.commit()

    result = AvailabilityService(db, now=clock).list_professionals_with_availability()

    assert [(entry.professional_id, entry.name) for entry in result] == [
        (professional.id, 'Dr. Ada'),
        (idle.id, 'Dr. Idle'),
    ]
    assert [record.day for record in result[0].days] == ['Monday', 'Wednesday']
    assert result[1].days == []
