from typing import Any, Dict, Optional


class LLMError(Exception):
    """Base error for everything the gateway raises to its callers.

    ``retryable`` tells the dispatcher whether another attempt may help;
    ``status_code`` is the vendor HTTP status when there was one.
    """

    code = "UNKNOWN_ERROR"
    http_status = 500

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "provider": self.provider}


class ProviderNotFoundError(LLMError):
    code = "PROVIDER_NOT_FOUND"
    http_status = 404


class ProviderDisabledError(LLMError):
    code = "PROVIDER_NOT_ENABLED"
    http_status = 409


class NoProviderConfiguredError(LLMError):
    code = "NO_PROVIDER_CONFIGURED"
    http_status = 503


class NoModelConfiguredError(LLMError):
    code = "MODEL_NOT_FOUND"
    http_status = 422


class CredentialMissingError(LLMError):
    code = "INVALID_API_KEY"
    http_status = 422


class VendorError(LLMError):
    code = "PROVIDER_ERROR"
    http_status = 502


class ProviderTimeoutError(LLMError):
    code = "TIMEOUT"
    http_status = 504

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)


class ResponseParseError(LLMError):
    code = "PARSE_ERROR"
    http_status = 502


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in (408, 429)
