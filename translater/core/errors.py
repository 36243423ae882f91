"""Error taxonomy for the translation pipeline.

Every error carries the pipeline stage that produced it (capture, extract,
translate, init) so callers can present a stage-qualified message.
Nothing here is retried internally.
"""


class TranslaterError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.partial_result = None

    def at_stage(self, stage: str) -> "TranslaterError":
        """Tag the error with a stage unless an inner layer already did."""
        if self.stage is None:
            self.stage = stage
        return self

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class TransportError(TranslaterError):
    """Non-2xx HTTP status, or the request never got a response."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "",
                 stage: str | None = None):
        super().__init__(message, stage)
        self.status_code = status_code
        self.body = body


class APIError(TranslaterError):
    """Provider reported an error field, even on HTTP 200."""

    def __init__(self, code: str = "", message: str = "", type: str = "",
                 stage: str | None = None):
        super().__init__(f"API error: {code} - {message}", stage)
        self.code = code
        self.provider_message = message
        self.type = type


class ProtocolError(TranslaterError):
    """Malformed JSON frame or unexpected content shape."""
    pass


class EmptyResultError(TranslaterError):
    """Zero choices, an empty stream, or blank input where text was required."""
    pass


class ConfigError(TranslaterError):
    """Missing credentials or unusable configuration."""
    pass


class CaptureError(TranslaterError):
    """The screen capture collaborator failed."""
    pass


class StreamCancelledError(TranslaterError):
    """A streaming read was cancelled by the caller."""
    pass
