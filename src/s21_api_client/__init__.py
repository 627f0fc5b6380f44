"""21-school API client.

Authenticated client for the 21-school GraphQL platform API: manages bearer
tokens, executes typed GraphQL operations and projects calendar events into
review slots and bookings.
"""

__version__ = "0.1.0"
