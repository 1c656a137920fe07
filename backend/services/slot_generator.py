"""Bookable slot generation from recurring weekly schedule windows."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from backend.core.calendar import Weekday, clinic_timezone, format_wall_clock, local_day_bounds, parse_wall_clock, utc_now
from backend.models.schedule import DoctorSchedule
from backend.repositories.appointment_repository import AppointmentRepository
from backend.repositories.schedule_repository import ScheduleRepository

logger = logging.getLogger(__name__)

SLOT_INCREMENT_MINUTES = 30
NOT_AVAILABLE_REASON = 'Doctor is not available on this day'


@dataclass(frozen=True)
class SlotClinic:
    id: int
    name: str
    address: Optional[str] = None


@dataclass(frozen=True)
class Slot:
    time: str
    date_time: datetime
    clinic: SlotClinic


@dataclass
class SlotListing:
    date: date
    weekday: Weekday
    slots: list[Slot] = field(default_factory=list)
    reason: Optional[str] = None


def iterate_window_starts(start_time: time, end_time: time) -> list[time]:
    """Slot starts inside the half-open window [start_time, end_time)."""
    starts: list[time] = []
    anchor = date(2000, 1, 1)
    current = datetime.combine(anchor, start_time)
    window_end = datetime.combine(anchor, end_time)

    while current < window_end:
        starts.append(current.time())
        current += timedelta(minutes=SLOT_INCREMENT_MINUTES)

    return starts


def window_contains(window: DoctorSchedule, wall_clock: time) -> bool:
    return parse_wall_clock(window.start_time) <= wall_clock < parse_wall_clock(window.end_time)


class SlotGenerator:
    """Derives a doctor's bookable slots for one calendar date."""

    def __init__(
        self,
        schedules: ScheduleRepository,
        appointments: AppointmentRepository,
        clock: Callable[[], datetime] = utc_now,
        tz: Optional[ZoneInfo] = None,
    ):
        self.schedules = schedules
        self.appointments = appointments
        self.clock = clock
        self.tz = tz or clinic_timezone()

    def booked_wall_clock_times(self, doctor_id: int, calendar_date: date) -> set[str]:
        day_start, day_end = local_day_bounds(calendar_date, self.tz)
        booked = self.appointments.list_active_for_doctor_between(doctor_id, day_start, day_end)
        return {format_wall_clock(appointment.date_time.astimezone(self.tz)) for appointment in booked}

    def generate_slots(
        self,
        doctor_id: int,
        calendar_date: date,
        clinic_id: Optional[int] = None,
    ) -> SlotListing:
        weekday = Weekday.of(calendar_date)
        listing = SlotListing(date=calendar_date, weekday=weekday)

        windows = self.schedules.list_active_windows(doctor_id, weekday, clinic_id)
        if not windows:
            listing.reason = NOT_AVAILABLE_REASON
            return listing

        booked_times = self.booked_wall_clock_times(doctor_id, calendar_date)
        now = self.clock()
        seen: set[tuple[str, int]] = set()

        for window in windows:
            window_start = parse_wall_clock(window.start_time)
            window_end = parse_wall_clock(window.end_time)
            if window_start >= window_end:
                logger.warning(
                    'Skipping schedule %s for doctor %s: start %s is not before end %s',
                    window.id,
                    doctor_id,
                    window.start_time,
                    window.end_time,
                )
                continue

            clinic = window.doctor_clinic.clinic
            for slot_start in iterate_window_starts(window_start, window_end):
                wall_clock = format_wall_clock(slot_start)
                key = (wall_clock, clinic.id)
                if key in seen or wall_clock in booked_times:
                    continue

                slot_instant = datetime.combine(calendar_date, slot_start, tzinfo=self.tz)
                if slot_instant <= now:
                    continue

                seen.add(key)
                listing.slots.append(
                    Slot(
                        time=wall_clock,
                        date_time=slot_instant,
                        clinic=SlotClinic(id=clinic.id, name=clinic.name, address=clinic.address),
                    )
                )

        listing.slots.sort(key=lambda slot: (slot.date_time, slot.clinic.id))
        return listing
