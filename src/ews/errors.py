"""Exceptions raised by the EWS mail dispatch shim.

Only the shim's own failures live here. Anything exchangelib raises while
connecting, authenticating, resolving the endpoint or sending reaches the
caller unchanged.
"""


class EwsMailError(Exception):
    """Base class for errors raised by the shim itself."""


class DependencyMissingError(EwsMailError):
    """The vendor EWS client library is not installed. Not retryable."""

    def __init__(
        self, message: str, download_reference: str, install_hint: str = "exchangelib"
    ) -> None:
        super().__init__(f"{message}. Install it with `pip install {install_hint}` ({download_reference})")
        self.download_reference = download_reference


class InvalidArgumentError(EwsMailError, ValueError):
    """A request parameter failed validation before any network activity."""


class UntrustedEndpointError(EwsMailError):
    """Autodiscovery resolved to an endpoint the trust policy rejected."""

    def __init__(self, endpoint: str) -> None:
        super().__init__(f"Autodiscovered endpoint {endpoint!r} rejected by trust policy")
        self.endpoint = endpoint
