"""
Custom Exceptions Module.

This module defines all custom exceptions used throughout Invoice Lens.
Specific exception types let the orchestrator tell recoverable provider
failures apart from terminal input and parsing failures.

Exception Hierarchy:
    InvoiceExtractionError (base)
    ├── InputError
    │   ├── UnsupportedFormatError
    │   ├── RenderFailureError
    │   └── PayloadTooLargeError
    ├── ProviderError
    ├── OrchestrationError
    │   ├── NoProviderConfiguredError
    │   └── AllProvidersFailedError
    ├── ParseError
    │   └── NoJsonFoundError
    ├── SessionError
    └── OutputError
        └── ExcelExportError
"""

from typing import List, Optional


# Characters of raw provider text shown next to a failure message
RAW_EXCERPT_LENGTH = 200


class InvoiceExtractionError(Exception):
    """
    Base exception for all Invoice Lens errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceExtractionError):
    """Base exception for document input and rasterization errors."""
    pass


class UnsupportedFormatError(InputError):
    """
    Raised when a document is neither a decodable image nor a PDF.

    Example:
        >>> raise UnsupportedFormatError("image/jpeg", "cannot identify image file")
    """

    def __init__(self, file_type: str, reason: str = None):
        message = f"Unsupported document format: '{file_type}'"
        details = {"file_type": file_type, "reason": reason}
        super().__init__(message, details)


class RenderFailureError(InputError):
    """Raised when PDF page rendering or image decoding fails."""

    def __init__(self, source: str, reason: str = None):
        message = f"Could not render document: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


class PayloadTooLargeError(InputError):
    """Raised when a raster image exceeds the transport byte cap."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        message = (
            f"Image too large ({round(size_bytes / 1024)}KB). "
            f"Max ~{round(limit_bytes / (1024 * 1024))}MB."
        )
        super().__init__(message)


# =============================================================================
# PROVIDER ERRORS
# =============================================================================

class ProviderError(InvoiceExtractionError):
    """
    Raised by a provider client when a single attempt fails.

    Attributes:
        provider_id: Identifier of the provider that failed.
        reason: Provider-level failure description.
        http_status: HTTP status code, when the failure came with one.
        cause: Underlying exception, if any.
    """

    def __init__(
        self,
        provider_id: str,
        reason: str,
        http_status: Optional[int] = None,
        cause: Optional[BaseException] = None
    ):
        self.provider_id = provider_id
        self.reason = reason
        self.http_status = http_status
        self.cause = cause
        details = {"provider": provider_id}
        if http_status is not None:
            details["http_status"] = http_status
        super().__init__(f"{provider_id} failed: {reason}", details)


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================

class OrchestrationError(InvoiceExtractionError):
    """Base exception for provider selection and failover errors."""
    pass


class NoProviderConfiguredError(OrchestrationError):
    """Raised when no provider has a credential configured."""

    def __init__(self, env_names: List[str] = None):
        env_names = env_names or []
        message = "No API key configured."
        if env_names:
            message += f" Set one of: {', '.join(env_names)}."
        super().__init__(message)


class AllProvidersFailedError(OrchestrationError):
    """
    Raised when every configured provider failed.

    Attributes:
        attempts: ProviderError for each attempt, in attempt order.
    """

    def __init__(self, attempts: List[ProviderError]):
        self.attempts = list(attempts)
        lines = [f"{a.provider_id}: {a.reason}" for a in self.attempts]
        if len(self.attempts) == 1:
            message = f"Provider failed.\n{lines[0]}"
        else:
            message = "All providers failed.\n" + "\n".join(lines)
        details = {"providers": [a.provider_id for a in self.attempts]}
        super().__init__(message, details)


# =============================================================================
# PARSE ERRORS
# =============================================================================

class ParseError(InvoiceExtractionError):
    """Base exception for model response parsing errors."""
    pass


class NoJsonFoundError(ParseError):
    """
    Raised when no JSON object can be recovered from a model response.

    Attributes:
        raw_text: The unparsed model text, kept for manual recovery.
        provider_id: Provider that produced the text, once known.
    """

    def __init__(self, reason: str, raw_text: str = "", provider_id: Optional[str] = None):
        self.reason = reason
        self.raw_text = raw_text
        self.provider_id = provider_id
        super().__init__(reason)


# =============================================================================
# SESSION / OUTPUT ERRORS
# =============================================================================

class SessionError(InvoiceExtractionError):
    """Raised for invalid operations on the in-memory invoice session."""
    pass


class OutputError(InvoiceExtractionError):
    """Base exception for output handling errors."""
    pass


class ExcelExportError(OutputError):
    """Raised when Excel export fails."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Failed to export Excel file: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


def format_failure_message(error: BaseException) -> str:
    """
    Build the user-visible message for a failed document.

    The message is the error text followed by an excerpt of the raw
    provider response when the error carries one and the text does not
    already quote it.

    Args:
        error: The exception that ended the document's pipeline.

    Returns:
        Message suitable for display next to the failed document.
    """
    if isinstance(error, InvoiceExtractionError):
        message = error.message
    else:
        message = str(error)

    raw_text = getattr(error, "raw_text", None)
    if raw_text and raw_text[:20] not in message:
        message = f"{message}\n\nRaw: {raw_text[:RAW_EXCERPT_LENGTH]}"

    return message


__all__ = [
    'InvoiceExtractionError',
    'InputError',
    'UnsupportedFormatError',
    'RenderFailureError',
    'PayloadTooLargeError',
    'ProviderError',
    'OrchestrationError',
    'NoProviderConfiguredError',
    'AllProvidersFailedError',
    'ParseError',
    'NoJsonFoundError',
    'SessionError',
    'OutputError',
    'ExcelExportError',
    'format_failure_message',
]
