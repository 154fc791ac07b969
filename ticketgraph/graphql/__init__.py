"""GraphQL transport for the ticket service."""

from .schema import API_VERSION, create_graphql_router, schema

__all__ = ["API_VERSION", "create_graphql_router", "schema"]
