"""Exception taxonomy for the Heartline gateway.

Every failure the gateway can hit while talking to the provider maps onto one
of these.  The cache layer is the single place they are converted into a
non-failing (synthetic or stale) response.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all gateway failures."""


class ConfigurationError(GatewayError):
    """Credentials or settings are missing.  Never retried."""


class AuthenticationError(GatewayError):
    """Login was rejected, challenged (2FA), timed out or hit a network error."""


class SessionExpiredError(GatewayError):
    """The provider reported the session as no longer authenticated."""


class MetricFetchError(GatewayError):
    """A single metric could not be fetched or parsed.

    Attributes:
        metric: Catalogue name of the metric that failed.
    """

    def __init__(self, metric: str, message: str) -> None:
        super().__init__(f"{metric}: {message}")
        self.metric = metric


class UpstreamTimeoutError(MetricFetchError):
    """An upstream metric call exceeded its timeout."""
