"""
Fee Oracle adapter for the mempool.space recommended-fees endpoint.

One GET per quote, bounded by an explicit timeout and never retried. Every
failure mode (timeout, transport error, bad status, malformed body) is
reported as FeeOracleUnavailableError so callers can degrade gracefully.
"""

import logging
from typing import Optional

import httpx

from paygate.core.config import FeeOracleConfig
from paygate.core.exceptions import FeeOracleUnavailableError
from paygate.core.monitoring import monitor_errors
from paygate.schemas.records import FeeEstimate, FeeRates

logger = logging.getLogger(__name__)


class FeeOracle:
    """Reads recommended fee rates and turns them into per-tier totals."""

    def __init__(self, config: FeeOracleConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_seconds))

    @monitor_errors("fee_oracle_request")
    async def get_recommended_fees(self) -> FeeRates:
        """
        Raises:
            FeeOracleUnavailableError: If the rates cannot be read
        """
        try:
            response = await self._client.get(self.config.url, timeout=self.config.timeout_seconds)
            response.raise_for_status()
            rates = FeeRates.model_validate(response.json())
        except httpx.TimeoutException as e:
            raise FeeOracleUnavailableError(
                f"Fee oracle timed out after {self.config.timeout_seconds}s", self.config.url
            ) from e
        except httpx.HTTPStatusError as e:
            raise FeeOracleUnavailableError(
                f"Fee oracle returned HTTP {e.response.status_code}", self.config.url
            ) from e
        except httpx.HTTPError as e:
            raise FeeOracleUnavailableError("Fee oracle request failed", self.config.url) from e
        except ValueError as e:
            # JSON decode errors and pydantic validation errors
            raise FeeOracleUnavailableError("Fee oracle returned a malformed body", self.config.url) from e

        logger.debug(
            f"Recommended fees: economy={rates.economy_fee_rate} hour={rates.hour_fee_rate} "
            f"fastest={rates.fastest_fee_rate} sat/vB"
        )
        return rates

    async def quote(self, transaction_size: int) -> FeeEstimate:
        """Total fee per tier for a transaction of `transaction_size` bytes."""
        if transaction_size <= 0:
            raise ValueError("transaction_size must be positive")

        rates = await self.get_recommended_fees()
        return FeeEstimate(
            economy_fee=rates.economy_fee_rate * transaction_size,
            average_fee=rates.hour_fee_rate * transaction_size,
            fastest_fee=rates.fastest_fee_rate * transaction_size,
            transaction_size=transaction_size,
        )

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
