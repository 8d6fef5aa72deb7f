class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class ToolNotFoundError(DomainError):
    """Raised when a tool call names a tool that is not registered."""

    pass


class KnowledgeSourceNotFoundError(DomainError):
    """Raised when a knowledge source is not found in the database."""

    pass


class DuplicateKnowledgeSourceError(DomainError):
    """Raised when creating a knowledge source whose name is already taken."""

    pass


class UnknownJobError(DomainError):
    """Raised when a job name does not match any registered job."""

    pass
