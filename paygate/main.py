"""
paygate application entry point.

Startup loads configuration, connects MongoDB and wires the transaction
engine onto app.state. Shutdown drains pending receipt emails before
closing the fee oracle client and the database.
"""

from fastapi import FastAPI, Request, HTTPException, Depends, Header
from contextlib import asynccontextmanager
from paygate.core.config import load_config
from paygate.database import init_db, close_database, health_check as database_health_check
from paygate.routes.payments import router as payments_router
from paygate.routes.transactions import router as transactions_router
from paygate.core.handlers import setup_exception_handlers
from paygate.core.middleware import RequestLoggingMiddleware
from paygate.core.monitoring import setup_monitoring, error_monitor, monitor_errors
from paygate.core.limiter import limiter, MONITORING_RATE_LIMIT
from paygate.schemas.records import Network
from paygate.services.fee_oracle import FeeOracle
from paygate.services.notifications import Mailer, NotificationDispatcher
from paygate.services.payment_store import PaymentStore
from paygate.services.transaction_service import TransactionService
from paygate.services.transaction_store import TransactionStore
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded
import os
import hmac
import logging

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


async def verify_monitoring_access(
    x_monitoring_key: str = Header(None),
):
    """API key check for internal monitoring endpoints (fail-closed)."""
    expected_key = os.getenv("MONITORING_API_KEY")

    if not expected_key:
        raise HTTPException(status_code=403, detail="Monitoring access not configured")

    if not x_monitoring_key or not hmac.compare_digest(x_monitoring_key, expected_key):
        raise HTTPException(status_code=403, detail="Invalid monitoring credentials")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events"""
    try:
        config = load_config()
        setup_monitoring(config.logging.level)

        await init_db(config.database)

        fee_oracle = FeeOracle(config.fee_oracle) if config.fee_oracle.enabled else None
        dispatcher = NotificationDispatcher(Mailer(config.mailer))
        payment_store = PaymentStore()

        app.state.payment_store = payment_store
        app.state.fee_oracle = fee_oracle
        app.state.dispatcher = dispatcher
        app.state.transaction_service = TransactionService(
            payments=payment_store,
            transactions=TransactionStore(),
            dispatcher=dispatcher,
            fee_oracle=fee_oracle,
            network=Network(config.wallet.network),
            mail_template_id=config.mailer.transaction_template_id,
        )

        logger.info("paygate started successfully")

    except Exception as e:
        error_monitor.log_error(e, {"context": "application_startup"})
        logger.error(f"Failed to start paygate: {str(e)}")
        raise

    yield

    logger.info("paygate shutting down")
    await dispatcher.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
    if fee_oracle is not None:
        await fee_oracle.aclose()
    await close_database()

    final_summary = error_monitor.get_error_summary()
    logger.info(f"Shutdown - Total errors handled: {final_summary['total_errors']}")


app = FastAPI(
    title="paygate",
    description="Cryptocurrency payment and settlement gateway",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

setup_exception_handlers(app)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(transactions_router, prefix="/transactions", tags=["transactions"])
app.include_router(payments_router, prefix="/payments", tags=["payments"])


@app.get("/")
@limiter.limit("30/minute")
async def health_check(request: Request):
    return {
        "status": "active",
        "service": "paygate",
        "description": "Payment and settlement gateway is running",
    }


@app.get("/health/database")
@limiter.limit("30/minute")
async def database_health(request: Request):
    return await database_health_check()


@app.get("/monitoring/errors", dependencies=[Depends(verify_monitoring_access)])
@limiter.limit(MONITORING_RATE_LIMIT)
@monitor_errors("monitoring_endpoint")
async def get_monitoring_info(request: Request):
    """Internal endpoint for error statistics (authenticated)."""
    return error_monitor.get_error_summary()
