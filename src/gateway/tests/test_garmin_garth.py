"""Tests for the Garmin Connect client — garth calls are mocked."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from garth.exc import GarthException, GarthHTTPError

from src.gateway.adapters.garmin_garth import GarthUpstreamClient, _refuse_mfa
from src.gateway.errors import (
    AuthenticationError,
    MetricFetchError,
    SessionExpiredError,
)
from src.gateway.session import SessionManager
from src.gateway.tests.conftest import TEST_CREDENTIALS, TEST_DAY


def http_error(status: int) -> GarthHTTPError:
    error = MagicMock()
    error.response.status_code = status
    return GarthHTTPError(msg=f"HTTP {status}", error=error)


@pytest.fixture
def garth_client() -> MagicMock:
    client = MagicMock()
    client.connectapi = MagicMock(return_value={})
    return client


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestGarthLogin:
    @pytest.mark.asyncio
    async def test_password_login(self, garth_client: MagicMock) -> None:
        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client) as cls:
            handle = await GarthUpstreamClient(domain="garmin.cn").login(TEST_CREDENTIALS)

        assert handle is garth_client
        cls.assert_called_once_with(domain="garmin.cn")
        garth_client.login.assert_called_once_with(
            "runner@example.com", "hunter2", prompt_mfa=_refuse_mfa
        )

    @pytest.mark.asyncio
    async def test_two_factor_challenge_is_authentication_error(
        self, garth_client: MagicMock
    ) -> None:
        garth_client.login.side_effect = lambda *a, prompt_mfa, **kw: prompt_mfa()
        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client):
            with pytest.raises(AuthenticationError, match="two-factor"):
                await GarthUpstreamClient().login(TEST_CREDENTIALS)

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, garth_client: MagicMock) -> None:
        garth_client.login.side_effect = http_error(401)
        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client):
            with pytest.raises(AuthenticationError, match="HTTP 401"):
                await GarthUpstreamClient().login(TEST_CREDENTIALS)

    @pytest.mark.asyncio
    async def test_network_failure(self, garth_client: MagicMock) -> None:
        garth_client.login.side_effect = ConnectionError("dns failure")
        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client):
            with pytest.raises(AuthenticationError, match="dns failure"):
                await GarthUpstreamClient().login(TEST_CREDENTIALS)

    @pytest.mark.asyncio
    async def test_resumes_stored_tokens(self, garth_client: MagicMock, tmp_path) -> None:
        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client):
            handle = await GarthUpstreamClient(token_dir=str(tmp_path)).login(TEST_CREDENTIALS)

        assert handle is garth_client
        garth_client.load.assert_called_once_with(str(tmp_path))
        garth_client.login.assert_not_called()

    @pytest.mark.asyncio
    async def test_saves_tokens_after_password_login(
        self, garth_client: MagicMock, tmp_path
    ) -> None:
        garth_client.load.side_effect = FileNotFoundError("oauth1_token.json")
        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client):
            await GarthUpstreamClient(token_dir=str(tmp_path)).login(TEST_CREDENTIALS)

        garth_client.login.assert_called_once()
        garth_client.dump.assert_called_once_with(str(tmp_path))

    @pytest.mark.asyncio
    async def test_second_login_skips_stored_tokens(
        self, garth_client: MagicMock, tmp_path
    ) -> None:
        upstream = GarthUpstreamClient(token_dir=str(tmp_path))
        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client):
            await upstream.login(TEST_CREDENTIALS)
            await upstream.login(TEST_CREDENTIALS)

        garth_client.load.assert_called_once_with(str(tmp_path))
        garth_client.login.assert_called_once_with(
            "runner@example.com", "hunter2", prompt_mfa=_refuse_mfa
        )
        garth_client.dump.assert_called_once_with(str(tmp_path))

    @pytest.mark.asyncio
    async def test_dead_stored_tokens_recover_with_password_login(
        self, garth_client: MagicMock, tmp_path
    ) -> None:
        # Resumed tokens are rejected on first use; the password session works
        garth_client.connectapi.side_effect = [
            http_error(401),
            {"heartRateValues": [[1_000, 61]]},
            {"heartRateValues": [[2_000, 62]]},
        ]
        upstream = GarthUpstreamClient(token_dir=str(tmp_path))
        sessions = SessionManager(upstream, TEST_CREDENTIALS)

        async def fetch_hr(handle: object) -> list:
            return await upstream.fetch_metric(handle, "hr", TEST_DAY)

        with patch("src.gateway.adapters.garmin_garth.garth.Client", return_value=garth_client):
            first = await sessions.with_session(fetch_hr)
            second = await sessions.with_session(fetch_hr)

        assert first == [[1_000, 61]]
        assert second == [[2_000, 62]]
        assert garth_client.load.call_count == 1
        assert garth_client.login.call_count == 1
        garth_client.dump.assert_called_once_with(str(tmp_path))
        assert sessions.login_attempts == 2


# ---------------------------------------------------------------------------
# Metric fetches
# ---------------------------------------------------------------------------


class TestGarthFetchMetric:
    @pytest.mark.asyncio
    async def test_heart_rate(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.return_value = {
            "heartRateValues": [[1_000, 60], [2_000, None]],
            "restingHeartRate": 52,
        }
        values = await GarthUpstreamClient().fetch_metric(garth_client, "hr", TEST_DAY)

        assert values == [[1_000, 60], [2_000, None]]
        garth_client.connectapi.assert_called_once_with(
            "/wellness-service/wellness/dailyHeartRate", params={"date": "2026-02-23"}
        )

    @pytest.mark.asyncio
    async def test_spo2_falls_back_to_single_values(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.return_value = {
            "spO2HourlyAverages": None,
            "spO2SingleValues": [[1_000, 97]],
        }
        values = await GarthUpstreamClient().fetch_metric(garth_client, "spo2", TEST_DAY)

        assert values == [[1_000, 97]]
        garth_client.connectapi.assert_called_once_with(
            "/wellness-service/wellness/daily/spo2/2026-02-23", params=None
        )

    @pytest.mark.asyncio
    async def test_respiration(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.return_value = {"respirationValuesArray": [[1_000, 14.0]]}
        values = await GarthUpstreamClient().fetch_metric(garth_client, "resp", TEST_DAY)
        assert values == [[1_000, 14.0]]

    @pytest.mark.asyncio
    async def test_no_content_is_empty(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.return_value = None
        assert await GarthUpstreamClient().fetch_metric(garth_client, "hr", TEST_DAY) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_unauthorized_is_session_expiry(
        self, garth_client: MagicMock, status: int
    ) -> None:
        garth_client.connectapi.side_effect = http_error(status)
        with pytest.raises(SessionExpiredError):
            await GarthUpstreamClient().fetch_metric(garth_client, "hr", TEST_DAY)

    @pytest.mark.asyncio
    async def test_missing_tokens_is_session_expiry(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.side_effect = GarthException(msg="OAuth1 token is required")
        with pytest.raises(SessionExpiredError):
            await GarthUpstreamClient().fetch_metric(garth_client, "hr", TEST_DAY)

    @pytest.mark.asyncio
    async def test_server_error_is_metric_error(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.side_effect = http_error(500)
        with pytest.raises(MetricFetchError, match="HTTP 500") as excinfo:
            await GarthUpstreamClient().fetch_metric(garth_client, "spo2", TEST_DAY)
        assert excinfo.value.metric == "spo2"

    @pytest.mark.asyncio
    async def test_network_error_is_metric_error(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.side_effect = TimeoutError("read timed out")
        with pytest.raises(MetricFetchError, match="network error"):
            await GarthUpstreamClient().fetch_metric(garth_client, "resp", TEST_DAY)

    @pytest.mark.asyncio
    async def test_unexpected_payload_type(self, garth_client: MagicMock) -> None:
        garth_client.connectapi.return_value = [1, 2, 3]
        with pytest.raises(MetricFetchError, match="unexpected payload"):
            await GarthUpstreamClient().fetch_metric(garth_client, "hr", TEST_DAY)

    @pytest.mark.asyncio
    async def test_unknown_metric(self, garth_client: MagicMock) -> None:
        with pytest.raises(MetricFetchError, match="no Garmin endpoint"):
            await GarthUpstreamClient().fetch_metric(garth_client, "stress", TEST_DAY)
        garth_client.connectapi.assert_not_called()
