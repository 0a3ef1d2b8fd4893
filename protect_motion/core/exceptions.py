"""Errors raised by the UniFi Protect client collaborator."""


class ProtectApiError(Exception):
    """
    A controller request failed.

    Covers transient and server-side failures (timeouts, unreachable host,
    malformed bootstrap). The caller abandons the current reconciliation pass
    for that controller and leaves its exposed devices untouched.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProtectAuthError(ProtectApiError):
    """The controller rejected the configured credentials. Never retried automatically."""
