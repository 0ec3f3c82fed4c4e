"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing str(exception).
    # The *args lets subclasses pass extra context. This is your base class - DON'T raise it directly!
    # Always use a specific subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # Yo, this is for "mark track X for re-enrichment" when track X has no record at all.
    # Store type and id separately so logs stay structured.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Input validation failed.

    Example:
        raise ValidationError("Observed track needs a non-empty id")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Example:
        raise ConfigurationError("MusicBrainz contact not configured")
    """

    pass


class ExternalServiceError(DomainException):
    """External catalog returned an error.

    Hey future me - `retryable` is THE classification bit. Transient problems
    (429, 5xx, connection resets) are retryable and end up as FAILED records that
    get picked up again later. Everything else (400, 403, garbage JSON) is permanent
    and the pipeline just moves on to the next provider.

    Example:
        raise ExternalServiceError("MusicBrainz API error: 503", provider="musicbrainz",
                                   status_code=503, retryable=True)
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class RateLimitExceededError(ExternalServiceError):
    """External catalog kept answering 429 Too Many Requests.

    Always retryable - the next scheduled pass will try again.
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message, provider=provider, status_code=429, retryable=True)


class MalformedResponseError(ExternalServiceError):
    """External catalog answered with a body we can't make sense of.

    Never retryable - asking again gives the same garbage.
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message, provider=provider, retryable=False)


__all__ = [
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "MalformedResponseError",
    "RateLimitExceededError",
    "ValidationError",
]
