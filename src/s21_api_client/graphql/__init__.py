"""GraphQL client package.

Provides the transport that executes typed GraphQL operations against the
21-school platform, the pydantic wire models, and the calendar operation
catalog. Domain projections live in :mod:`s21_api_client.review_slots`.

Exports:
    GraphQLTransport: Executes operations with bearer auth and error handling.
    operations: Module containing the calendar query/mutation builders.
    types: Module containing Pydantic models for requests and responses.
    DEFAULT_BASE_URL: Default platform base URL.
    GRAPHQL_PATH: Path of the GraphQL endpoint.
"""

from . import operations, types
from .client import DEFAULT_BASE_URL, GRAPHQL_PATH, GraphQLTransport

__all__ = [
    "DEFAULT_BASE_URL",
    "GRAPHQL_PATH",
    "GraphQLTransport",
    "operations",
    "types",
]
