class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class InvalidInputError(DomainError):
    """Exception raised when a date of birth or locale cannot be accepted."""

    pass


class PromptValidationError(DomainError):
    """Exception raised when a rendered prompt fails its sanity check."""

    pass
