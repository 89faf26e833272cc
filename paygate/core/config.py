"""
Configuration for the paygate service.

Settings come from the environment (a .env file is honoured) and are
validated once at startup into one dataclass per concern. Components are
handed the section they need. The slowapi decorators and the webhook
verifier are bound at import, so they load their own sections through
load_rate_limits() and load_security_config().
"""

import os
from typing import Dict, Optional
from dataclasses import dataclass
from dotenv import load_dotenv
from paygate.core.exceptions import ConfigurationError
import logging

logger = logging.getLogger(__name__)

NETWORKS = ("mainnet", "testnet")
RATE_LIMIT_PERIODS = ("second", "minute", "hour", "day")
TRUE_VALUES = ("true", "1", "yes", "on")

DEFAULT_MONGO_URL = "mongodb://localhost:27017/paygate"
DEFAULT_FEE_ORACLE_URL = "https://mempool.space/api/v1/fees/recommended"


@dataclass
class DatabaseConfig:
    """MongoDB connection and pool settings"""
    url: str
    max_pool_size: int = 10
    min_pool_size: int = 2
    server_selection_timeout_ms: int = 5000
    connect_timeout_ms: int = 10000
    socket_timeout_ms: int = 45000
    retry_writes: bool = True


@dataclass
class SecurityConfig:
    """Secrets for the settlement webhook and monitoring endpoints"""
    hmac_secret_key: Optional[str] = None
    monitoring_api_key: Optional[str] = None
    max_webhook_age_seconds: int = 300


@dataclass
class FeeOracleConfig:
    """Recommended-fees endpoint settings"""
    url: str = DEFAULT_FEE_ORACLE_URL
    timeout_seconds: float = 5.0
    enabled: bool = True


@dataclass
class WalletConfig:
    """Address generation settings"""
    network: str = "mainnet"


@dataclass
class MailerConfig:
    """Transactional mail settings (Brevo)"""
    api_key: Optional[str] = None
    sender_email: str = "no-reply@paygate.local"
    transaction_template_id: int = 1


@dataclass
class RateLimitConfig:
    default_rate_limit: str = "100/minute"
    transaction_rate_limit: str = "30/minute"
    webhook_rate_limit: str = "10/minute"
    monitoring_rate_limit: str = "10/minute"


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    """Everything the application reads at startup"""
    database: DatabaseConfig
    security: SecurityConfig
    fee_oracle: FeeOracleConfig
    wallet: WalletConfig
    mailer: MailerConfig
    rate_limit: RateLimitConfig
    logging: LoggingConfig
    environment: str = "development"
    debug: bool = False


class ConfigValidator:
    """Reads the environment and turns it into an AppConfig"""

    REQUIRED_ENV_VARS = ("MONGO_URL",)

    # None means "unset is fine"
    OPTIONAL_ENV_VARS: Dict[str, Optional[str]] = {
        "ENVIRONMENT": "development",
        "DEBUG": "false",
        "LOG_LEVEL": "INFO",
        # database
        "MONGO_MAX_POOL_SIZE": "10",
        "MONGO_MIN_POOL_SIZE": "2",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS": "5000",
        "MONGO_CONNECT_TIMEOUT_MS": "10000",
        "MONGO_SOCKET_TIMEOUT_MS": "45000",
        "MONGO_RETRY_WRITES": "true",
        # security
        "HMAC_SECRET_KEY": None,
        "MONITORING_API_KEY": None,
        "MAX_WEBHOOK_AGE_SECONDS": "300",
        # fees and wallets
        "FEE_ORACLE_URL": DEFAULT_FEE_ORACLE_URL,
        "FEE_ORACLE_TIMEOUT_SECONDS": "5",
        "FEE_ESTIMATION_ENABLED": "true",
        "BLOCKCHAIN_NETWORK": "mainnet",
        # mail
        "BREVO_API_KEY": None,
        "MAILER_EMAIL": "no-reply@paygate.local",
        "TRANSACTION_MAIL_TEMPLATE_ID": "1",
        # rate limits
        "DEFAULT_RATE_LIMIT": "100/minute",
        "TRANSACTION_RATE_LIMIT": "30/minute",
        "WEBHOOK_RATE_LIMIT": "10/minute",
        "MONITORING_RATE_LIMIT": "10/minute",
    }

    @classmethod
    def validate_environment(cls) -> Dict[str, Optional[str]]:
        """
        Collect every known variable, applying defaults to optional ones.

        Raises:
            ConfigurationError: If a required variable is missing
        """
        missing = [name for name in cls.REQUIRED_ENV_VARS if not os.getenv(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                config_key="environment_validation",
            )

        env = {name: os.getenv(name) for name in cls.REQUIRED_ENV_VARS}
        env.update(cls.optional_environment())
        return env

    @classmethod
    def optional_environment(cls) -> Dict[str, Optional[str]]:
        return {name: os.getenv(name, default) for name, default in cls.OPTIONAL_ENV_VARS.items()}

    @classmethod
    def validate_mongo_url(cls, url: str) -> str:
        if not url.startswith(("mongodb://", "mongodb+srv://")):
            raise ConfigurationError(
                "MONGO_URL must be a mongodb:// or mongodb+srv:// URL",
                config_key="MONGO_URL",
                expected_value=DEFAULT_MONGO_URL,
            )
        return url

    @classmethod
    def validate_network(cls, network: str) -> str:
        network = (network or "").strip().lower()
        if network not in NETWORKS:
            raise ConfigurationError(
                f"BLOCKCHAIN_NETWORK must be one of {', '.join(NETWORKS)}",
                config_key="BLOCKCHAIN_NETWORK",
                expected_value="mainnet",
            )
        return network

    @classmethod
    def validate_rate_limit(cls, rate_limit: str, key: str = "rate_limit") -> str:
        """Accept slowapi's "<count>/<period>" form, e.g. '30/minute'"""
        count, _, period = (rate_limit or "").partition("/")
        if not count.isdigit() or period not in RATE_LIMIT_PERIODS:
            raise ConfigurationError(
                f"Invalid rate limit '{rate_limit}'",
                config_key=key,
                expected_value="30/minute",
            )
        return rate_limit

    @classmethod
    def validate_boolean(cls, value: Optional[str], default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in TRUE_VALUES

    @classmethod
    def validate_integer(cls, value: Optional[str], default: int, min_val: int = None, max_val: int = None) -> int:
        """Out-of-range or unparsable values fall back to the default"""
        try:
            number = int(value)
        except (ValueError, TypeError):
            return default
        if (min_val is not None and number < min_val) or (max_val is not None and number > max_val):
            logger.warning(f"Integer setting {number} out of range [{min_val}, {max_val}]; using {default}")
            return default
        return number

    @classmethod
    def validate_timeout(cls, value: Optional[str], default: float) -> float:
        """Timeouts must be positive; anything else falls back to the default"""
        try:
            timeout = float(value)
        except (ValueError, TypeError):
            return default
        return timeout if timeout > 0 else default

    @classmethod
    def _database(cls, env) -> DatabaseConfig:
        integer = cls.validate_integer
        return DatabaseConfig(
            url=cls.validate_mongo_url(env["MONGO_URL"]),
            max_pool_size=integer(env["MONGO_MAX_POOL_SIZE"], 10, 1, 100),
            min_pool_size=integer(env["MONGO_MIN_POOL_SIZE"], 2, 1, 50),
            server_selection_timeout_ms=integer(env["MONGO_SERVER_SELECTION_TIMEOUT_MS"], 5000, 1000, 30000),
            connect_timeout_ms=integer(env["MONGO_CONNECT_TIMEOUT_MS"], 10000, 1000, 60000),
            socket_timeout_ms=integer(env["MONGO_SOCKET_TIMEOUT_MS"], 45000, 1000, 120000),
            retry_writes=cls.validate_boolean(env["MONGO_RETRY_WRITES"], True),
        )

    @classmethod
    def _security(cls, env) -> SecurityConfig:
        return SecurityConfig(
            hmac_secret_key=env["HMAC_SECRET_KEY"],
            monitoring_api_key=env["MONITORING_API_KEY"],
            max_webhook_age_seconds=cls.validate_integer(env["MAX_WEBHOOK_AGE_SECONDS"], 300, 10, 3600),
        )

    @classmethod
    def _rate_limits(cls, env) -> RateLimitConfig:
        return RateLimitConfig(
            **{
                field: cls.validate_rate_limit(env[field.upper()], field.upper())
                for field in ("default_rate_limit", "transaction_rate_limit", "webhook_rate_limit", "monitoring_rate_limit")
            }
        )

    @classmethod
    def load_config(cls) -> AppConfig:
        """
        Build the AppConfig from the current environment.

        Raises:
            ConfigurationError: If a required value is missing or malformed
        """
        env = cls.validate_environment()

        app_config = AppConfig(
            database=cls._database(env),
            security=cls._security(env),
            fee_oracle=FeeOracleConfig(
                url=env["FEE_ORACLE_URL"],
                timeout_seconds=cls.validate_timeout(env["FEE_ORACLE_TIMEOUT_SECONDS"], 5.0),
                enabled=cls.validate_boolean(env["FEE_ESTIMATION_ENABLED"], True),
            ),
            wallet=WalletConfig(network=cls.validate_network(env["BLOCKCHAIN_NETWORK"])),
            mailer=MailerConfig(
                api_key=env["BREVO_API_KEY"],
                sender_email=env["MAILER_EMAIL"],
                transaction_template_id=cls.validate_integer(env["TRANSACTION_MAIL_TEMPLATE_ID"], 1, 1),
            ),
            rate_limit=cls._rate_limits(env),
            logging=LoggingConfig(level=env["LOG_LEVEL"].upper()),
            environment=env["ENVIRONMENT"],
            debug=cls.validate_boolean(env["DEBUG"], False),
        )

        logger.info(
            f"Configuration loaded: environment={app_config.environment} "
            f"network={app_config.wallet.network} "
            f"fee_estimation={'on' if app_config.fee_oracle.enabled else 'off'} "
            f"(timeout={app_config.fee_oracle.timeout_seconds}s)"
        )
        if not app_config.security.hmac_secret_key:
            logger.warning("HMAC_SECRET_KEY not configured - settlement notifications will be refused")
        if not app_config.security.monitoring_api_key:
            logger.warning("MONITORING_API_KEY not configured - /monitoring/errors is disabled")

        return app_config


def load_config() -> AppConfig:
    """Load .env, then validate the application configuration."""
    load_dotenv()
    return ConfigValidator.load_config()


def load_rate_limits() -> RateLimitConfig:
    """
    Route limits for the slowapi decorators.

    Raises:
        ConfigurationError: If a limit is not in "<count>/<period>" form
    """
    load_dotenv()
    return ConfigValidator._rate_limits(ConfigValidator.optional_environment())


def load_security_config() -> SecurityConfig:
    """Webhook and monitoring secrets, with the replay window clamped to range."""
    load_dotenv()
    return ConfigValidator._security(ConfigValidator.optional_environment())
