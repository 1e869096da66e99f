"""Exceptions raised inside the provider layer.

Only configuration problems and invariant violations leave the provider
layer as exceptions. Transport failures are turned into ``error`` chunks at
the provider boundary so the registry can react uniformly.
"""


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class UnknownProviderError(ProviderError):
    """Raised when a provider config names a type no implementation handles."""

    pass


class ActiveProviderMissingError(ProviderError):
    """Raised when the registry's active key resolves to nothing."""

    pass


class ProviderHTTPError(ProviderError):
    """Non-2xx response from a chat-completions endpoint."""

    def __init__(self, status_code: int, body: str, provider_name: str = ""):
        self.status_code = status_code
        self.body = body
        self.provider_name = provider_name
        label = provider_name or "Provider"
        super().__init__(f"{label} API error ({status_code}): {body}")


class ProviderTransportError(ProviderError):
    """Network failure talking to a provider endpoint."""

    pass


class RequestAborted(ProviderError):
    """The caller's cancellation signal fired while a request was in flight."""

    def __init__(self, message: str = "Request aborted"):
        super().__init__(message)


class ToolCallingRejected(ProviderError):
    """The endpoint refused the ``tools`` field on the first tool-use round."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
