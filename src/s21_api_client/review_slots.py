"""Review-slot projection over the calendar API.

Fetches calendar events and reduces the review-related ones (event code
``student_check``) into review slots and bookings. Also implements the
add/change/delete slot mutations and projects their echoed events the same
way. Results are returned in event order, then slot/booking order.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog

from .deadline import Deadline
from .errors import NotFoundError, ValidationError
from .graphql import GraphQLTransport, operations, types
from .timestamps import format_millis, format_seconds

logger = structlog.get_logger(__name__)

REVIEW_EVENT_CODE = "student_check"
FREE_TIME = "FREE_TIME"


@dataclass
class ReviewSlot:
    """A free or occupied review time slot.

    ``is_online`` is always False: the calendar payload does not carry an
    online flag for raw slots.
    """

    id: str
    start: datetime
    end: datetime
    type: str = ""
    is_online: bool = False
    school: str = ""

    @property
    def is_free(self) -> bool:
        return self.type == FREE_TIME


@dataclass
class ReviewBooking:
    """A review booked on one of the caller's slots.

    A booking without an event slot keeps its bare slot id and no times.
    """

    id: str
    slot_id: str = ""
    start: datetime | None = None
    end: datetime | None = None
    project_name: str = ""
    verifier_login: str = ""
    is_online: bool = False
    status: str = ""


def _transform_slot(raw: types.EventSlot) -> ReviewSlot:
    return ReviewSlot(
        id=raw.id,
        start=raw.start,
        end=raw.end,
        type=raw.type,
        is_online=False,
        school=raw.school.short_name if raw.school else "",
    )


def _transform_booking(raw: types.Booking) -> ReviewBooking:
    slot = raw.event_slot
    return ReviewBooking(
        id=raw.id,
        slot_id=slot.id if slot else raw.event_slot_id,
        start=slot.start if slot else None,
        end=slot.end if slot else None,
        project_name=raw.task.goal_name if raw.task else "",
        verifier_login=raw.verifier_user.login if raw.verifier_user else "",
        is_online=raw.is_online,
        status=raw.booking_status,
    )


def project_events(
    events: list[types.CalendarEvent],
) -> tuple[list[ReviewSlot], list[ReviewBooking]]:
    """Project review-related events into slots and bookings.

    Events with any other event code are skipped. No sorting is applied.
    """
    slots: list[ReviewSlot] = []
    bookings: list[ReviewBooking] = []
    for event in events:
        if event.event_code != REVIEW_EVENT_CODE:
            continue
        slots.extend(_transform_slot(slot) for slot in event.event_slots)
        bookings.extend(_transform_booking(booking) for booking in event.bookings)
    return slots, bookings


def dedupe_bookings(bookings: list[ReviewBooking]) -> list[ReviewBooking]:
    """Drop repeated booking ids, keeping the first occurrence in place."""
    seen: set[str] = set()
    result = []
    for booking in bookings:
        if booking.id not in seen:
            seen.add(booking.id)
            result.append(booking)
    return result


class ReviewSlotProjector:
    """Review-slot operations built on a :class:`GraphQLTransport`.

    Every method accepts an optional :class:`Deadline` that bounds the whole
    operation, including any token refresh it triggers.
    """

    def __init__(
        self,
        transport: GraphQLTransport,
        validate_slot_windows: bool = False,
    ):
        """Initialize the projector.

        Args:
            transport: Transport used for every request.
            validate_slot_windows: Reject add/update calls whose end is not
                after their start before sending anything.
        """
        self.transport = transport
        self._validate_slot_windows = validate_slot_windows

    def _check_window(self, start: datetime, end: datetime) -> None:
        if self._validate_slot_windows and end <= start:
            msg = f"slot end {end.isoformat()} must be after start {start.isoformat()}"
            raise ValidationError(msg)

    def get_calendar_events(
        self,
        from_: datetime,
        to: datetime,
        deadline: Deadline | None = None,
    ) -> list[types.CalendarEvent]:
        """Fetch every calendar event between ``from_`` and ``to``."""
        operation = operations.calendar_get_events(
            format_millis(from_),
            format_millis(to),
        )
        data = self.transport.execute(operation, types.CalendarEventsData, deadline)
        return data.calendar_event_s21.get_my_calendar_events

    def get_review_slots(
        self,
        from_: datetime,
        to: datetime,
        deadline: Deadline | None = None,
    ) -> tuple[list[ReviewSlot], list[ReviewBooking]]:
        """Fetch review slots and bookings within a time window.

        Returns:
            Tuple of (slots, bookings) from review-related events only.
        """
        events = self.get_calendar_events(from_, to, deadline)
        slots, bookings = project_events(events)
        logger.debug(
            "Projected review slots",
            events=len(events),
            slots=len(slots),
            bookings=len(bookings),
        )
        return slots, bookings

    def get_available_review_slots(
        self,
        from_: datetime,
        to: datetime,
        deadline: Deadline | None = None,
    ) -> list[ReviewSlot]:
        """Fetch only the free (``FREE_TIME``) review slots."""
        slots, _ = self.get_review_slots(from_, to, deadline)
        return [slot for slot in slots if slot.is_free]

    def get_booked_reviews(
        self,
        from_: datetime,
        to: datetime,
        deadline: Deadline | None = None,
    ) -> list[ReviewBooking]:
        """Fetch bookings, deduplicated by id with first occurrence kept."""
        _, bookings = self.get_review_slots(from_, to, deadline)
        return dedupe_bookings(bookings)

    def get_my_reviews(
        self,
        to: datetime,
        limit: int,
        deadline: Deadline | None = None,
    ) -> list[ReviewBooking]:
        """Fetch up to ``limit`` upcoming bookings ending before ``to``."""
        operation = operations.calendar_get_my_reviews(format_seconds(to), limit)
        data = self.transport.execute(operation, types.UpcomingBookingsData, deadline)
        return [_transform_booking(b) for b in data.student.get_my_upcoming_bookings]

    def add_review_slot(
        self,
        start: datetime,
        end: datetime,
        deadline: Deadline | None = None,
    ) -> list[ReviewSlot]:
        """Add a review slot and return the slots echoed by the server.

        Raises:
            ValidationError: If window validation is enabled and ``end`` is
                not after ``start``.
        """
        self._check_window(start, end)
        operation = operations.calendar_add_event(
            format_millis(start),
            format_millis(end),
        )
        data = self.transport.execute(operation, types.AddEventData, deadline)
        slots, _ = project_events(data.student.add_event_to_timetable)
        logger.info("Added review slot", slots=[slot.id for slot in slots])
        return slots

    def update_review_slot(
        self,
        slot_id: str,
        new_start: datetime,
        new_end: datetime,
        deadline: Deadline | None = None,
    ) -> ReviewSlot:
        """Move a slot to a new window and return it as echoed by the server.

        Raises:
            ValidationError: If window validation is enabled and ``new_end``
                is not after ``new_start``.
            NotFoundError: If the echoed event does not contain ``slot_id``.
        """
        self._check_window(new_start, new_end)
        operation = operations.calendar_change_event_slot(
            slot_id,
            format_millis(new_start),
            format_millis(new_end),
        )
        data = self.transport.execute(operation, types.ChangeEventSlotData, deadline)
        for slot in data.student.change_event_slot.event_slots:
            if slot.id == slot_id:
                logger.info("Updated review slot", slot_id=slot_id)
                return _transform_slot(slot)

        msg = f"updated slot {slot_id} not found in response"
        raise NotFoundError(msg)

    def remove_review_slot(
        self,
        slot_id: str,
        deadline: Deadline | None = None,
    ) -> bool:
        """Delete a slot.

        Any response that gets through the transport counts as success. The
        server's boolean result is returned; ``False`` is only logged.
        """
        operation = operations.calendar_delete_event_slot(slot_id)
        data = self.transport.execute(operation, types.DeleteEventSlotData, deadline)
        deleted = data.student.delete_event_slot
        if deleted:
            logger.info("Removed review slot", slot_id=slot_id)
        else:
            logger.warning("Server reported slot not deleted", slot_id=slot_id)
        return deleted

    def cancel_review(self, slot_id: str, deadline: Deadline | None = None) -> bool:
        """Cancel a review by deleting its slot."""
        return self.remove_review_slot(slot_id, deadline)
