"""
Domain-level exceptions raised by repositories.

Repositories raise these and never translate them; the HTTP layer
(tolkbook.api.errors) is the single place where they become responses.
Persistence failures are not wrapped: any psycopg.Error propagates as is.
"""

import psycopg

# Any persistence-layer failure (constraint violation, connectivity, ...)
StoreFailure = psycopg.Error


class RepositoryError(Exception):
    """Base class for repository errors. Carries a machine-readable code."""

    code = "repository_error"


class NotFound(RepositoryError):
    """Raised when the requested identity is absent from the store."""

    code = "not_found"

    def __init__(self, table: str, identity):
        self.table = table
        self.identity = identity
        super().__init__(f"No {table} record found for id {identity}")


class NotPermitted(RepositoryError):
    """Raised when the actor's role may not perform the operation."""

    code = "not_permitted"


class ValidationFailed(RepositoryError):
    """
    Raised when data violates its rule set.

    `errors` maps every violated field to its ordered list of messages,
    already rendered with display names.
    """

    code = "validation_failed"

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = {field: list(messages) for field, messages in errors.items()}
        super().__init__(self._summary())

    def _summary(self) -> str:
        messages = [m for field_messages in self.errors.values() for m in field_messages]
        if not messages:
            return "The given data was invalid."
        if len(messages) == 1:
            return messages[0]
        others = len(messages) - 1
        return f"{messages[0]} (and {others} more error{'s' if others > 1 else ''})"


__all__ = [
    "NotFound",
    "NotPermitted",
    "RepositoryError",
    "StoreFailure",
    "ValidationFailed",
]
