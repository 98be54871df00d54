class RepositoryError(Exception):
    """Base exception for repository errors."""

    pass


class InvalidArgumentError(RepositoryError, ValueError):
    """A required argument was missing or out of range."""

    def __init__(self, message: str, argument: str | None = None):
        super().__init__(message)
        self.argument = argument


class NotFoundError(RepositoryError):
    """A query expected a document but none matched."""

    def __init__(self, entity_name: str, operation: str):
        super().__init__(f"No {entity_name} matched the query in {operation}")
        self.entity_name = entity_name
        self.operation = operation


class StoreUnavailableError(RepositoryError):
    """The document store could not be reached."""

    pass
