"""Custom exceptions for Sitewright."""


class SitewrightError(Exception):
    """Base exception class for Sitewright."""

    pass


class LLMError(SitewrightError):
    """LLM-related error."""

    pass


class RateLimitError(LLMError):
    """Provider rejected the request because a rate or token quota was exceeded."""

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        message = f"Rate limited, retry after {retry_after}s" if retry_after else "Rate limited"
        super().__init__(message)


class GenerationError(LLMError):
    """The generation call failed or returned unusable output."""

    def __init__(self, message: str, raw_response: str | None = None) -> None:
        self.raw_response = raw_response
        super().__init__(message)


class AggregationError(SitewrightError):
    """No chunk result could be aggregated into a document."""

    pass


class ValidationError(SitewrightError):
    """Submitted website data failed validation."""

    def __init__(self, message: str, issues: list[str] | None = None) -> None:
        self.issues = issues or []
        if self.issues:
            message = f"{message}: {'; '.join(self.issues)}"
        super().__init__(message)


class ConfigurationError(SitewrightError):
    """Configuration error."""

    pass
