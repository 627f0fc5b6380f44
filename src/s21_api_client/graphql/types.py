"""Wire types for the 21-school GraphQL API.

Pydantic models for the request body, the generic response envelope and
the calendar payloads the review-slot projection reads. Field names are
snake_case in Python and camelCase on the wire. Only the fields the client
uses are modelled; anything else in a response is ignored.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for camelCase API payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request / envelope
# ---------------------------------------------------------------------------


class GraphQLOperation(BaseModel):
    """A single GraphQL request: name, query text and typed variables."""

    model_config = ConfigDict(frozen=True)

    query: str
    operation_name: str | None = None
    variables: BaseModel | None = None

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON request body, omitting unset optional keys."""
        payload: dict[str, Any] = {}
        if self.operation_name:
            payload["operationName"] = self.operation_name
        if self.variables is not None:
            payload["variables"] = self.variables.model_dump(by_alias=True)
        payload["query"] = self.query
        return payload


class GraphQLErrorEntry(BaseModel):
    """One entry of a response's ``errors`` list."""

    message: str
    path: list[str | int] | None = None
    extensions: dict[str, Any] | None = None


class GraphQLEnvelope(BaseModel):
    """Generic ``{data, errors}`` response envelope."""

    data: Any = None
    errors: list[GraphQLErrorEntry] | None = None


# ---------------------------------------------------------------------------
# Calendar payloads
# ---------------------------------------------------------------------------


class School(ApiModel):
    short_name: str = ""


class EventSlot(ApiModel):
    """A time slot inside a calendar event."""

    id: str
    type: str = ""
    start: datetime
    end: datetime
    school: School | None = None


class BookingTask(ApiModel):
    id: str = ""
    goal_id: str = ""
    goal_name: str = ""
    assignment_type: str = ""


class BookingEventSlot(ApiModel):
    id: str
    start: datetime
    end: datetime


class BookingUser(ApiModel):
    id: str = ""
    login: str = ""


class Booking(ApiModel):
    """A review booked on an event slot."""

    id: str
    event_slot_id: str = ""
    event_slot: BookingEventSlot | None = None
    task: BookingTask | None = None
    verifier_user: BookingUser | None = None
    booking_status: str = ""
    is_online: bool = False
    vc_link_url: str | None = None


class CalendarEvent(ApiModel):
    """A calendar event with its slots and bookings."""

    id: str
    start: datetime | None = None
    end: datetime | None = None
    description: str = ""
    event_type: str = ""
    event_code: str = ""
    event_slots: list[EventSlot] = []
    bookings: list[Booking] = []

    @field_validator("event_slots", "bookings", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# ---------------------------------------------------------------------------
# Operation results (shape of the ``data`` field)
# ---------------------------------------------------------------------------


class CalendarEventQueries(ApiModel):
    get_my_calendar_events: list[CalendarEvent] = []


class CalendarEventsData(ApiModel):
    calendar_event_s21: CalendarEventQueries


class AddEventMutations(ApiModel):
    add_event_to_timetable: list[CalendarEvent] = []


class AddEventData(ApiModel):
    student: AddEventMutations


class ChangeEventSlotMutations(ApiModel):
    change_event_slot: CalendarEvent


class ChangeEventSlotData(ApiModel):
    student: ChangeEventSlotMutations


class DeleteEventSlotMutations(ApiModel):
    delete_event_slot: bool


class DeleteEventSlotData(ApiModel):
    student: DeleteEventSlotMutations


class UpcomingBookingQueries(ApiModel):
    get_my_upcoming_bookings: list[Booking] = []


class UpcomingBookingsData(ApiModel):
    student: UpcomingBookingQueries
