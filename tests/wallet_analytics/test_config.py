"""
Configuration and Logging Tests.

============================================================
PURPOSE
============================================================
Environment loading, validation and logging setup.

============================================================
"""

import io
import json
import logging
import os
from unittest.mock import patch

import pytest

from wallet_analytics.config import AnalyticsConfig, RetryConfig
from wallet_analytics.exceptions import ConfigurationError
from wallet_analytics.logging_config import setup_logging, split_component


class TestAnalyticsConfig:
    """Tests for AnalyticsConfig."""

    def test_defaults(self):
        config = AnalyticsConfig()

        assert config.cryptocompare_api_key == "demo"
        assert config.max_tokens_to_price == 20
        assert config.max_transactions_per_address == 50_000
        assert config.retry.max_retries == 3
        assert 429 in config.retry.retryable_statuses

    def test_from_env(self):
        """Keys and RPC overrides come from the environment."""
        env = {
            "ETHERSCAN_API_KEY": "eth-key",
            "MORALIS_API_KEY": "moralis-key",
            "MANTLE_RPC_URL": "https://mantle.example/rpc",
            "LISK_RPC_URL": "",
        }
        with patch.dict(os.environ, env, clear=True):
            config = AnalyticsConfig.from_env(dotenv=False)

        assert config.etherscan_api_key == "eth-key"
        assert config.moralis_api_key == "moralis-key"
        assert config.cryptocompare_api_key == "demo"
        assert config.mantle_rpc_url == "https://mantle.example/rpc"
        assert config.lisk_rpc_url is None

    def test_from_env_loads_dotenv(self):
        with patch("wallet_analytics.config.load_dotenv") as load:
            with patch.dict(os.environ, {}, clear=True):
                AnalyticsConfig.from_env()

        load.assert_called_once()

    @pytest.mark.parametrize("kwargs,key", [
        ({"max_transactions_per_address": 0}, "max_transactions_per_address"),
        ({"max_concurrent_price_lookups": 0}, "max_concurrent_price_lookups"),
        ({"default_whale_threshold_usd": -1}, "default_whale_threshold_usd"),
        ({"retry": RetryConfig(max_retries=-1)}, "retry.max_retries"),
    ])
    def test_validate_rejects(self, kwargs, key):
        with pytest.raises(ConfigurationError) as exc_info:
            AnalyticsConfig(**kwargs).validate()

        assert exc_info.value.config_key == key


class TestSetupLogging:
    """Tests for setup_logging."""

    def teardown_method(self):
        logger = logging.getLogger("wallet_analytics")
        logger.handlers = []
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    def test_scoped_to_package_logger(self):
        """The root logger keeps its handlers."""
        root_handlers = list(logging.getLogger().handlers)

        logger = setup_logging(level="debug", stream=io.StringIO())

        assert logger.name == "wallet_analytics"
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert logging.getLogger().handlers == root_handlers

    def test_repeated_setup_replaces_handler(self):
        setup_logging(stream=io.StringIO())
        logger = setup_logging(stream=io.StringIO())

        assert len(logger.handlers) == 1

    def test_text_format(self):
        stream = io.StringIO()
        setup_logging(stream=stream)

        logging.getLogger("wallet_analytics.orchestrator").info("[orchestrator] done")

        line = stream.getvalue().strip()
        assert "| INFO     | wallet_analytics.orchestrator | [orchestrator] done" in line

    def test_json_format_splits_component(self):
        """The bracketed component tag becomes its own field."""
        stream = io.StringIO()
        setup_logging(log_format="json", stream=stream)

        logging.getLogger("wallet_analytics.aggregators.portfolio").warning(
            '[portfolio] Price lookup failed for "TKA"'
        )

        record = json.loads(stream.getvalue())
        assert record["level"] == "WARNING"
        assert record["component"] == "portfolio"
        assert record["message"] == 'Price lookup failed for "TKA"'

    def test_child_debug_filtered_at_info(self):
        stream = io.StringIO()
        setup_logging(level="info", stream=stream)

        logging.getLogger("wallet_analytics.http").debug("[http] retry")

        assert stream.getvalue() == ""

    def test_unknown_level_defaults_to_info(self):
        logger = setup_logging(level="chatty", stream=io.StringIO())
        assert logger.level == logging.INFO

    def test_split_component(self):
        assert split_component("[Ethereum] Fetched 3 rows") == ("Ethereum", "Fetched 3 rows")
        assert split_component("no tag") == (None, "no tag")
