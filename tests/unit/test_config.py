import os
import pytest
from unittest.mock import patch

from paygate.core.config import ConfigValidator, load_rate_limits, load_security_config
from paygate.core.exceptions import ConfigurationError


@pytest.fixture
def mock_env_vars():
    """Minimal environment for test isolation"""
    test_env = {
        "MONGO_URL": "mongodb://localhost:27017/test",
        "HMAC_SECRET_KEY": "test_secret_key",
    }
    with patch.dict(os.environ, test_env, clear=True):
        yield test_env


class TestLoadConfig:
    def test_defaults(self, mock_env_vars):
        config = ConfigValidator.load_config()

        assert config.database.url == "mongodb://localhost:27017/test"
        assert config.security.hmac_secret_key == "test_secret_key"
        assert config.wallet.network == "mainnet"
        assert config.fee_oracle.url == "https://mempool.space/api/v1/fees/recommended"
        assert config.fee_oracle.timeout_seconds == 5.0
        assert config.fee_oracle.enabled is True
        assert config.mailer.api_key is None
        assert config.rate_limit.transaction_rate_limit == "30/minute"

    def test_overrides(self, mock_env_vars):
        overrides = {
            "BLOCKCHAIN_NETWORK": "Testnet",
            "FEE_ORACLE_TIMEOUT_SECONDS": "2.5",
            "FEE_ESTIMATION_ENABLED": "false",
            "TRANSACTION_MAIL_TEMPLATE_ID": "12",
        }
        with patch.dict(os.environ, overrides):
            config = ConfigValidator.load_config()

        assert config.wallet.network == "testnet"
        assert config.fee_oracle.timeout_seconds == 2.5
        assert config.fee_oracle.enabled is False
        assert config.mailer.transaction_template_id == 12

    def test_missing_mongo_url(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError):
                ConfigValidator.load_config()

    def test_invalid_mongo_url(self, mock_env_vars):
        with patch.dict(os.environ, {"MONGO_URL": "postgres://localhost/db"}):
            with pytest.raises(ConfigurationError) as exc_info:
                ConfigValidator.load_config()
        assert exc_info.value.config_key == "MONGO_URL"

    def test_invalid_network(self, mock_env_vars):
        with patch.dict(os.environ, {"BLOCKCHAIN_NETWORK": "regtest"}):
            with pytest.raises(ConfigurationError) as exc_info:
                ConfigValidator.load_config()
        assert exc_info.value.config_key == "BLOCKCHAIN_NETWORK"

    def test_invalid_rate_limit(self, mock_env_vars):
        with patch.dict(os.environ, {"WEBHOOK_RATE_LIMIT": "ten per minute"}):
            with pytest.raises(ConfigurationError):
                ConfigValidator.load_config()


class TestValidators:
    @pytest.mark.parametrize("value,expected", [("0", 5.0), ("-1", 5.0), ("abc", 5.0), ("0.5", 0.5)])
    def test_validate_timeout(self, value, expected):
        assert ConfigValidator.validate_timeout(value, 5.0) == expected

    def test_validate_integer_bounds(self):
        assert ConfigValidator.validate_integer("5000", 300, 10, 3600) == 300
        assert ConfigValidator.validate_integer("60", 300, 10, 3600) == 60


class TestImportTimeSections:
    def test_webhook_age_is_clamped(self, mock_env_vars):
        with patch.dict(os.environ, {"MAX_WEBHOOK_AGE_SECONDS": "99999"}):
            security = load_security_config()

        assert security.max_webhook_age_seconds == 300
        assert security.hmac_secret_key == "test_secret_key"

    def test_non_integer_webhook_age_uses_default(self, mock_env_vars):
        with patch.dict(os.environ, {"MAX_WEBHOOK_AGE_SECONDS": "five minutes"}):
            assert load_security_config().max_webhook_age_seconds == 300

    def test_rate_limits_are_validated(self, mock_env_vars):
        with patch.dict(os.environ, {"TRANSACTION_RATE_LIMIT": "5/second"}):
            assert load_rate_limits().transaction_rate_limit == "5/second"

        with patch.dict(os.environ, {"TRANSACTION_RATE_LIMIT": "lots"}):
            with pytest.raises(ConfigurationError) as exc_info:
                load_rate_limits()
        assert exc_info.value.config_key == "TRANSACTION_RATE_LIMIT"
