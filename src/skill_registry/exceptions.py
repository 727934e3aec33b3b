"""Custom exception hierarchy for the skill registry."""


class RegistryError(Exception):
    """Base exception for all registry errors."""


class InputError(RegistryError):
    """Request input was malformed. Never retried."""


class InvalidSlugError(InputError):
    """Slug is empty or contains characters outside the allowed set."""


class InvalidVersionError(InputError):
    """Version string is not a semantic version."""


class NotFoundError(RegistryError):
    """Referenced record does not exist."""


class PermissionDeniedError(RegistryError):
    """Actor is not allowed to perform the operation."""


class ConflictError(RegistryError):
    """Operation conflicts with the current state of a record."""


class SlugReservedError(ConflictError):
    """Slug is reserved for a different owner."""


class SlugTakenError(ConflictError):
    """Slug belongs to another owner's live item."""


class VersionExistsError(ConflictError):
    """Version was already published for this item."""


class WriteConflictError(RegistryError):
    """A concurrent writer changed the record first."""


class DependencyError(RegistryError):
    """An external collaborator failed. Retryable."""


class EmbeddingError(DependencyError):
    """Error generating embeddings."""


class EmbeddingTimeoutError(EmbeddingError):
    """Embedding call exceeded its time budget."""


class BlobMissingError(DependencyError):
    """Blob storage has no object for the given reference."""


class QualityRejectedError(RegistryError):
    """Published content failed the quality gate."""

    def __init__(self, reason: str, score: float) -> None:
        super().__init__(reason)
        self.reason = reason
        self.score = score


class PublishThrottledError(RegistryError):
    """Publisher exceeded the new-item cap for their trust tier."""


class ConfigurationError(RegistryError):
    """Error in system configuration."""
