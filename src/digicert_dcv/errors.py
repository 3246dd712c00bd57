"""DigiCert DCV errors."""
from typing import Any
from typing import Optional


class Error(Exception):
    """Generic DigiCert DCV error."""


class ConfigurationError(Error):
    """Configuration or credentials error."""


class ClientError(Error):
    """Network error."""


class UnexpectedResponse(ClientError):
    """Response does not have the expected structure."""


class ProviderError(ClientError):
    """Error reported by a remote API.

    :ivar str code: Provider error code, if any.
    :ivar str message: Human readable error message.
    :ivar int status_code: HTTP status of the response, if known.

    """
    def __init__(self, code: Optional[str], message: str,
                 status_code: Optional[int] = None) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(code, message)

    def __str__(self) -> str:
        if self.code:
            return '{0}. {1}'.format(self.code, self.message)
        return self.message


class DigiCertError(ProviderError):
    """DigiCert CertCentral API error."""


class AliDNSError(ProviderError):
    """AliCloud DNS API error.

    :ivar str request_id: AliCloud request id, useful for support tickets.

    """
    def __init__(self, code: Optional[str], message: str,
                 status_code: Optional[int] = None,
                 request_id: Optional[str] = None) -> None:
        super().__init__(code, message, status_code)
        self.request_id = request_id


class DomainNotFound(Error):
    """The DNS provider does not manage the requested domain."""


class ClassifiedError(Error):
    """Error tagged with its retry classification.

    :ivar Exception error: The underlying error.

    """
    def __init__(self, error: BaseException, *args: Any) -> None:
        super().__init__(error, *args)
        self.error = error

    def __str__(self) -> str:
        return str(self.error)


class TransientError(ClassifiedError):
    """Error that may go away if the same request is retried."""


class PermanentError(ClassifiedError):
    """Error that retrying the same request cannot fix."""


class RetryError(Error):
    """Retrying stopped without a successful attempt.

    :ivar Exception last_error: Error raised by the most recent attempt,
        or ``None`` if no attempt was made.

    """
    def __init__(self, last_error: Optional[BaseException]) -> None:
        super().__init__(last_error)
        self.last_error = last_error


class RetryTimeoutError(RetryError):
    """The elapsed time budget ran out while attempts kept failing."""

    def __init__(self, last_error: Optional[BaseException], max_elapsed: float) -> None:
        super().__init__(last_error)
        self.max_elapsed = max_elapsed

    def __str__(self) -> str:
        return 'Gave up after {0:g} seconds: {1}'.format(self.max_elapsed, self.last_error)


class RetryCancelledError(RetryError):
    """Retrying was cancelled before a successful attempt."""

    def __str__(self) -> str:
        if self.last_error is None:
            return 'Cancelled before the first attempt'
        return 'Cancelled after error: {0}'.format(self.last_error)
