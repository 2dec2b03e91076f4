"""Error taxonomy shared by the router, scraper and HTTP handlers."""

from __future__ import annotations


class RelayError(Exception):
    """Base error carrying the HTTP status it maps to at the handler boundary."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequest(RelayError):
    """A required field is missing or malformed."""

    status_code = 400


class MissingCredential(RelayError):
    status_code = 401

    def __init__(self, message: str = "API key is missing.") -> None:
        super().__init__(message)


class InvalidCredential(RelayError):
    """The provider rejected the caller's credential."""

    status_code = 401

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider} rejected the API key: {message}")
        self.provider = provider


class UnsupportedModel(RelayError):
    status_code = 400

    def __init__(self, model: str) -> None:
        super().__init__(f"Unsupported AI model: {model!r}")
        self.model = model


class ProviderError(RelayError):
    """An upstream completion call failed; the upstream message is kept."""

    status_code = 500

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider} error: {message}")
        self.provider = provider


class ScrapeError(RelayError):
    """The news portal was unreachable or returned something unusable."""

    status_code = 500

    def __init__(self, reason: str) -> None:
        super().__init__(f"News scraping failed: {reason}")
        self.reason = reason


class ResponseParseError(RelayError):
    """Model output did not contain the expected JSON object.

    Handlers recover from this locally with a fallback payload.
    """

    status_code = 502
