"""Garmin Connect upstream client using the Garth library (unofficial API).

Logs in with the account e-mail/password, or resumes stored OAuth tokens
(e.g. ``~/.garth``) when a token directory is configured.  No developer
account needed: this is the regular Garmin Connect login.

Garth is synchronous (requests-based), so every call runs on a worker thread
to keep the event loop free.

Endpoints used (Garmin Connect "connectapi"):
    /wellness-service/wellness/dailyHeartRate           heartRateValues
    /wellness-service/wellness/daily/spo2/{date}        spO2HourlyAverages
    /wellness-service/wellness/daily/respiration/{date} respirationValuesArray
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import garth
from garth.exc import GarthException, GarthHTTPError

from src.gateway.base import Credentials, UpstreamClient
from src.gateway.errors import (
    AuthenticationError,
    MetricFetchError,
    SessionExpiredError,
)

logger = logging.getLogger("heartline.gateway.garmin")


@dataclass(frozen=True)
class _Endpoint:
    path: str
    value_fields: tuple[str, ...]
    date_in_query: bool = False


# Catalogue metric name → Garmin Connect endpoint
_ENDPOINTS: dict[str, _Endpoint] = {
    "hr": _Endpoint(
        "/wellness-service/wellness/dailyHeartRate",
        ("heartRateValues",),
        date_in_query=True,
    ),
    "spo2": _Endpoint(
        "/wellness-service/wellness/daily/spo2/{date}",
        ("spO2HourlyAverages", "spO2SingleValues"),
    ),
    "resp": _Endpoint(
        "/wellness-service/wellness/daily/respiration/{date}",
        ("respirationValuesArray",),
    ),
}

# Status codes Garmin uses when the OAuth session is no longer accepted
_EXPIRED_STATUSES = {401, 403}


class _MFARequired(Exception):
    pass


def _refuse_mfa() -> str:
    # Garth's default prompts on stdin; a server process must fail instead
    raise _MFARequired()


def _status_of(exc: GarthHTTPError) -> int | None:
    response = getattr(exc.error, "response", None)
    return getattr(response, "status_code", None)


class GarthUpstreamClient(UpstreamClient):
    """Live Garmin Connect client backed by ``garth.Client``.

    The session handle returned by :meth:`login` is the authenticated
    ``garth.Client`` itself.

    Args:
        domain:    Garmin domain ('garmin.com', or 'garmin.cn' for China).
        token_dir: Directory of stored Garth OAuth tokens.  When set, tokens
                   are resumed on the first login only, and saved after every
                   password login.  A re-login after an expired session
                   therefore never reloads the same dead tokens.
    """

    SOURCE_ID = "garmin"

    def __init__(self, domain: str = "garmin.com", token_dir: str | None = None) -> None:
        self._domain = domain
        self._token_dir = str(Path(token_dir).expanduser()) if token_dir else None
        # Stored tokens are loaded at most once; every later login uses the
        # password and overwrites them.
        self._resume_pending = self._token_dir is not None

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, credentials: Credentials) -> garth.Client:
        return await asyncio.to_thread(self._login_sync, credentials)

    def _login_sync(self, credentials: Credentials) -> garth.Client:
        client = garth.Client(domain=self._domain)

        if self._resume_pending:
            self._resume_pending = False
            try:
                client.load(self._token_dir)
                logger.info("Garmin garth tokens resumed from %s", self._token_dir)
                return client
            except (OSError, GarthException, ValueError) as e:
                logger.info("No usable garth tokens in %s (%s), logging in", self._token_dir, e)

        try:
            client.login(credentials.identifier, credentials.secret, prompt_mfa=_refuse_mfa)
        except _MFARequired:
            raise AuthenticationError(
                "Garmin requested a two-factor code; log in once interactively "
                "and set GARTH_TOKEN_DIR"
            ) from None
        except GarthHTTPError as e:
            raise AuthenticationError(f"Garmin login rejected (HTTP {_status_of(e)})") from e
        except (GarthException, OSError) as e:
            raise AuthenticationError(f"Garmin login failed: {e}") from e

        logger.info("Garmin garth auth successful")
        if self._token_dir:
            try:
                client.dump(self._token_dir)
            except OSError as e:
                logger.warning("Could not save garth tokens to %s: %s", self._token_dir, e)
        return client

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    async def fetch_metric(self, handle: Any, metric: str, day: date) -> list[Any]:
        endpoint = _ENDPOINTS.get(metric)
        if endpoint is None:
            raise MetricFetchError(metric, "no Garmin endpoint for this metric")
        payload = await asyncio.to_thread(self._get, handle, metric, endpoint, day)
        return self._extract(metric, endpoint, payload)

    def _get(self, client: garth.Client, metric: str, endpoint: _Endpoint, day: date) -> Any:
        iso = day.isoformat()
        path = endpoint.path.format(date=iso)
        params = {"date": iso} if endpoint.date_in_query else None
        try:
            return client.connectapi(path, params=params)
        except GarthHTTPError as e:
            status = _status_of(e)
            if status in _EXPIRED_STATUSES:
                raise SessionExpiredError(f"Garmin returned HTTP {status} for {metric}") from e
            raise MetricFetchError(metric, f"HTTP {status}") from e
        except GarthException as e:
            # Raised when the OAuth tokens are gone or cannot be refreshed
            raise SessionExpiredError(f"Garmin session unusable: {e}") from e
        except OSError as e:
            raise MetricFetchError(metric, f"network error: {e}") from e

    @staticmethod
    def _extract(metric: str, endpoint: _Endpoint, payload: Any) -> list[Any]:
        if payload is None:
            return []
        if not isinstance(payload, dict):
            raise MetricFetchError(metric, f"unexpected payload type {type(payload).__name__}")
        for name in endpoint.value_fields:
            values = payload.get(name)
            if values:
                return list(values)
        return []
