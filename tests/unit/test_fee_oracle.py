import pytest
import httpx

from conftest import FEE_ORACLE_URL, make_fee_oracle
from paygate.core.config import FeeOracleConfig
from paygate.core.exceptions import FeeOracleUnavailableError
from paygate.services.fee_oracle import FeeOracle


class TestFeeOracle:
    @pytest.mark.asyncio
    async def test_recommended_fees(self, fee_oracle):
        rates = await fee_oracle.get_recommended_fees()

        assert rates.economy_fee_rate == 5
        assert rates.hour_fee_rate == 10
        assert rates.fastest_fee_rate == 20

    @pytest.mark.asyncio
    async def test_quote_multiplies_rates_by_size(self, fee_oracle):
        estimate = await fee_oracle.quote(250)

        assert estimate.economy_fee == 1250
        assert estimate.average_fee == 2500
        assert estimate.fastest_fee == 5000
        assert estimate.transaction_size == 250

    @pytest.mark.asyncio
    async def test_quote_rejects_non_positive_size(self, fee_oracle):
        with pytest.raises(ValueError):
            await fee_oracle.quote(0)

    @pytest.mark.asyncio
    async def test_requests_configured_url(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"economyFee": 1, "hourFee": 2, "fastestFee": 3})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        oracle = FeeOracle(FeeOracleConfig(url=FEE_ORACLE_URL), client=client)

        await oracle.get_recommended_fees()

        assert seen == [FEE_ORACLE_URL]

    @pytest.mark.asyncio
    async def test_timeout(self):
        oracle = make_fee_oracle(error=httpx.ReadTimeout("timed out"))

        with pytest.raises(FeeOracleUnavailableError) as exc_info:
            await oracle.quote(192)

        assert "timed out" in exc_info.value.message
        assert exc_info.value.http_status_code == 503

    @pytest.mark.asyncio
    async def test_connection_error(self):
        oracle = make_fee_oracle(error=httpx.ConnectError("refused"))

        with pytest.raises(FeeOracleUnavailableError):
            await oracle.get_recommended_fees()

    @pytest.mark.asyncio
    async def test_error_status(self):
        oracle = make_fee_oracle(status_code=502)

        with pytest.raises(FeeOracleUnavailableError) as exc_info:
            await oracle.get_recommended_fees()

        assert "HTTP 502" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"hourFee": 10, "fastestFee": 20},
            {"economyFee": "cheap", "hourFee": 10, "fastestFee": 20},
            {"economyFee": -1, "hourFee": 10, "fastestFee": 20},
            ["not", "an", "object"],
        ],
    )
    async def test_malformed_body(self, payload):
        oracle = make_fee_oracle(payload=payload)

        with pytest.raises(FeeOracleUnavailableError):
            await oracle.get_recommended_fees()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>busy</html>"))
        )
        oracle = FeeOracle(FeeOracleConfig(url=FEE_ORACLE_URL), client=client)

        with pytest.raises(FeeOracleUnavailableError):
            await oracle.get_recommended_fees()

    @pytest.mark.asyncio
    async def test_safe_dict_hides_endpoint(self):
        oracle = make_fee_oracle(status_code=500)

        with pytest.raises(FeeOracleUnavailableError) as exc_info:
            await oracle.get_recommended_fees()

        assert FEE_ORACLE_URL not in str(exc_info.value.to_safe_dict())

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self, fee_oracle):
        await fee_oracle.aclose()

        assert not fee_oracle._client.is_closed
