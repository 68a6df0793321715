"""Error hierarchy for imgsync.

Error layers:
- ImgSyncError: Base class for all imgsync errors
- DomainError: Invalid input or a request the data cannot satisfy (bad reference,
  missing platform, missing manifest)
- InfrastructureError: Failures of external systems (registries, scanner, patcher,
  signer) and of the local filesystem

The CLI maps every ImgSyncError to a non-zero exit code with a readable message.
"""


class ImgSyncError(Exception):
    """Base class for all imgsync errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors
# =============================================================================


class DomainError(ImgSyncError):
    """Base class for domain errors."""


class NotFoundError(DomainError):
    """Resource not found."""


class ValidationError(DomainError):
    """Input validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class InvalidReferenceError(ValidationError):
    """An image reference could not be parsed."""

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(f"Invalid image reference {reference!r}: {reason}", field="reference")
        self.reference = reference


class ManifestNotFoundError(NotFoundError):
    """The registry has no manifest for the requested tag or digest."""


class PlatformNotFoundError(NotFoundError):
    """The requested platform is absent from a multi-platform index."""

    def __init__(self, reference: str, platform: str) -> None:
        super().__init__(f"No manifest for platform {platform} in {reference}")
        self.reference = reference
        self.platform = platform


# =============================================================================
# Infrastructure Errors
# =============================================================================


class InfrastructureError(ImgSyncError):
    """Base class for infrastructure/system errors."""


class StorageUnavailableError(InfrastructureError):
    """Local storage (reports, archives) could not be written or read."""


class ArtifactWriteError(StorageUnavailableError):
    """A scan report or patched archive could not be written."""


class ExternalServiceError(InfrastructureError):
    """External service (registry, scanner, patcher, signer) is unavailable or failed."""


class RegistryError(ExternalServiceError):
    """A registry request failed (connection error or non-2xx response)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RegistryAuthError(RegistryError):
    """The registry rejected our credentials (401/403)."""


class RegistryUnreachableError(RegistryError):
    """An existence check failed while strict existence checking is enabled."""


class DigestMismatchError(RegistryError):
    """Content did not hash to the digest the registry advertised."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Digest mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class ScanError(ExternalServiceError):
    """The vulnerability scanner failed for an image."""


class PatchError(ExternalServiceError):
    """The patcher failed for an image."""


class SignError(ExternalServiceError):
    """The signer failed for an image."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""
