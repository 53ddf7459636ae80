class ChatRelayError(Exception):
    status_code = 500
    code = "relay_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(ChatRelayError):
    code = "configuration_error"


class BadRequestError(ChatRelayError):
    status_code = 400
    code = "bad_request"


class PayloadTooLargeError(ChatRelayError):
    status_code = 413
    code = "payload_too_large"


class UpstreamHttpError(ChatRelayError):
    code = "upstream_error"


class UpstreamTimeoutError(ChatRelayError):
    status_code = 504
    code = "upstream_timeout"

    def __init__(self, seconds: float) -> None:
        super().__init__(f"OpenRouter timed out after {seconds:g}s. Try again or switch models.")
        self.seconds = seconds


class UpstreamConnectionError(ChatRelayError):
    status_code = 502
    code = "upstream_unavailable"


class UpstreamStreamError(ChatRelayError):
    status_code = 502
    code = "upstream_stream_error"


class EmptyResponseError(ChatRelayError):
    status_code = 502
    code = "empty_response"


class StreamUnavailableError(ChatRelayError):
    status_code = 502
    code = "stream_unavailable"


class MalformedEventError(ValueError):
    """A single frame that could not be decoded; callers skip it."""
