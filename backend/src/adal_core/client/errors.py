"""Client-side failures of a send cycle.

The string form of each error is what the classifier sees, so the codes the
server returns are kept verbatim in it.
"""


class ClientError(Exception):
    """Base class for failures that end as an error message in the chat."""


class SessionExpiredError(ClientError):
    def __init__(self, detail: str = "Tu sesión no es válida. Refresca la página."):
        super().__init__(f"SESIÓN_EXPIRADA: {detail}")


class EndpointError(ClientError):
    """A provider endpoint answered with a non-OK status.

    The string carries the server code and message only. An upstream failure
    already names the upstream status in its message, and the endpoint's own
    502 would otherwise mask it.
    """

    def __init__(self, provider: str, status_code: int, code: str, message: str):
        self.provider = provider
        self.status_code = status_code
        self.code = code
        super().__init__(f"ERROR_NODO_{provider.upper()}: {code}: {message}")


class NetworkError(ClientError):
    """No response at all."""

    def __init__(self, detail: str):
        super().__init__(f"Failed to fetch: {detail}")


class StreamInterruptedError(ClientError):
    def __init__(self, provider: str, detail: str):
        super().__init__(f"ERROR_NODO_{provider.upper()}: transmisión interrumpida: {detail}")


class StoreError(ClientError):
    """The conversation store refused or failed a request."""
