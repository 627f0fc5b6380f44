"""Calendar operations: GraphQL documents and their variable types.

Each builder returns a ready-to-send :class:`GraphQLOperation`. Timestamps
are passed through as already formatted wire strings.
"""

from pydantic import BaseModel, ConfigDict, Field

from .types import GraphQLOperation

_CALENDAR_EVENT_FRAGMENTS = """
fragment CalendarEvent on CalendarEvent {
  id
  start
  end
  description
  eventType
  eventCode
  eventSlots {
    id
    type
    start
    end
    school {
      shortName
      __typename
    }
    __typename
  }
  bookings {
    ...CalendarReviewBooking
    __typename
  }
  __typename
}

fragment CalendarReviewBooking on CalendarBooking {
  id
  eventSlotId
  task {
    id
    goalId
    goalName
    assignmentType
    __typename
  }
  eventSlot {
    id
    start
    end
    __typename
  }
  verifierUser {
    id
    login
    __typename
  }
  bookingStatus
  isOnline
  vcLinkUrl
  __typename
}"""

QUERY_CALENDAR_GET_EVENTS = (
    """query calendarGetEvents($from: DateTime!, $to: DateTime!) {
  calendarEventS21 {
    getMyCalendarEvents(from: $from, to: $to) {
      ...CalendarEvent
      __typename
    }
    __typename
  }
}
"""
    + _CALENDAR_EVENT_FRAGMENTS
)

QUERY_CALENDAR_GET_MY_REVIEWS = """\
query calendarGetMyReviews($to: DateTime, $limit: Int) {
  student {
    getMyUpcomingBookings(to: $to, limit: $limit) {
      id
      eventSlotId
      eventSlot {
        id
        start
        end
        __typename
      }
      task {
        id
        goalId
        goalName
        assignmentType
        __typename
      }
      verifierUser {
        id
        login
        __typename
      }
      bookingStatus
      isOnline
      vcLinkUrl
      __typename
    }
    __typename
  }
}"""

MUTATION_CALENDAR_ADD_EVENT = (
    """mutation calendarAddEvent($start: DateTime!, $end: DateTime!) {
  student {
    addEventToTimetable(start: $start, end: $end) {
      ...CalendarEvent
      __typename
    }
    __typename
  }
}
"""
    + _CALENDAR_EVENT_FRAGMENTS
)

MUTATION_CALENDAR_CHANGE_EVENT_SLOT = (
    """mutation calendarChangeEventSlot($id: ID!, $start: DateTime!, $end: DateTime!) {
  student {
    changeEventSlot(eventSlotId: $id, start: $start, end: $end) {
      ...CalendarEvent
      __typename
    }
    __typename
  }
}
"""
    + _CALENDAR_EVENT_FRAGMENTS
)

MUTATION_CALENDAR_DELETE_EVENT_SLOT = """\
mutation calendarDeleteEventSlot($eventSlotId: ID!) {
  student {
    deleteEventSlot(eventSlotId: $eventSlotId)
    __typename
  }
}"""


class _Variables(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class TimeRangeVariables(_Variables):
    from_: str = Field(alias="from")
    to: str


class SlotWindowVariables(_Variables):
    start: str
    end: str


class ChangeSlotVariables(_Variables):
    id: str
    start: str
    end: str


class DeleteSlotVariables(_Variables):
    event_slot_id: str = Field(alias="eventSlotId")


class UpcomingReviewsVariables(_Variables):
    to: str
    limit: int


def calendar_get_events(from_: str, to: str) -> GraphQLOperation:
    return GraphQLOperation(
        operation_name="calendarGetEvents",
        query=QUERY_CALENDAR_GET_EVENTS,
        variables=TimeRangeVariables(from_=from_, to=to),
    )


def calendar_get_my_reviews(to: str, limit: int) -> GraphQLOperation:
    return GraphQLOperation(
        operation_name="calendarGetMyReviews",
        query=QUERY_CALENDAR_GET_MY_REVIEWS,
        variables=UpcomingReviewsVariables(to=to, limit=limit),
    )


def calendar_add_event(start: str, end: str) -> GraphQLOperation:
    return GraphQLOperation(
        operation_name="calendarAddEvent",
        query=MUTATION_CALENDAR_ADD_EVENT,
        variables=SlotWindowVariables(start=start, end=end),
    )


def calendar_change_event_slot(slot_id: str, start: str, end: str) -> GraphQLOperation:
    return GraphQLOperation(
        operation_name="calendarChangeEventSlot",
        query=MUTATION_CALENDAR_CHANGE_EVENT_SLOT,
        variables=ChangeSlotVariables(id=slot_id, start=start, end=end),
    )


def calendar_delete_event_slot(slot_id: str) -> GraphQLOperation:
    return GraphQLOperation(
        operation_name="calendarDeleteEventSlot",
        query=MUTATION_CALENDAR_DELETE_EVENT_SLOT,
        variables=DeleteSlotVariables(event_slot_id=slot_id),
    )
