from typing import Optional


class IntegrationError(Exception):
    """Base exception for integration-level failures (config, connectivity, auth)."""


class UpstreamAPIError(Exception):
    """Represents an upstream API call failure (4xx/5xx, malformed or empty response)."""


class ConfigurationError(IntegrationError):
    """Raised when a required setting or credential is missing or unreadable."""


class TransportError(UpstreamAPIError):
    """Network-level failure talking to the generative endpoint."""


class UpstreamStatusError(UpstreamAPIError):
    """Generative endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Gemini API error (status {status_code})")
        self.status_code = status_code
        self.body = body


class MalformedResponseError(UpstreamAPIError):
    """Response envelope could not be decoded."""


class EmptyResponseError(UpstreamAPIError):
    """Response had no candidates, no parts or no text."""


class StructuredParseFailure(UpstreamAPIError):
    """No JSON activity array could be recovered from model output."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


class AuthRequired(IntegrationError):
    """No attestation token was presented."""


class AuthInvalid(IntegrationError):
    """The attestation token was rejected by the verifier."""


class AuthServiceError(IntegrationError):
    """The attestation verifier itself was unavailable."""


class RateLimited(IntegrationError):
    """Client exceeded its request allowance for the current window."""

    def __init__(self, client_key: str, retry_after: Optional[float] = None):
        super().__init__(f"Rate limit exceeded for {client_key}")
        self.client_key = client_key
        self.retry_after = retry_after
