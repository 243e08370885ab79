"""Tests for logging configuration"""
import logging
import os
from unittest.mock import patch

from sql_exporter.config import Settings
from sql_exporter.logging_config import (
    get_logger,
    log_error,
    log_scrape,
    log_server_startup,
    setup_structured_logging,
)

from conftest import STATS_SQL, make_config


class TestLoggingConfig:
    """Test logging configuration and structured logging"""

    def test_setup_structured_logging(self, tmp_path):
        """Test structured logging setup"""
        log_file = tmp_path / "logs" / "test.log"
        settings = Settings(log_file=log_file, log_level="DEBUG")

        setup_structured_logging(settings)

        assert log_file.parent.exists()
        assert logging.getLogger("test").isEnabledFor(logging.DEBUG)

    def test_setup_without_log_file(self):
        settings = Settings(log_level="WARNING")

        setup_structured_logging(settings)

        assert not logging.getLogger("test").isEnabledFor(logging.INFO)

    def test_get_logger(self):
        """Test getting structured logger"""
        logger = get_logger("test_logger")

        assert logger is not None
        assert hasattr(logger, 'info')
        assert hasattr(logger, 'warning')

    def test_log_scrape(self):
        """Test structured scrape logging"""
        logger = get_logger("test")

        # This should not raise an exception
        log_scrape(logger, families_count=3, scrape_time=0.5, failures_total=0)
        log_scrape(logger, families_count=1, scrape_time=1.2, failures_total=4, error="query failed")

    def test_log_server_startup(self):
        """Test structured server startup logging"""
        logger = get_logger("test")

        log_server_startup(logger, Settings(), make_config((STATS_SQL, "stats", "Stats")))

    def test_log_error(self):
        """Test structured error logging"""
        logger = get_logger("test")
        error = ValueError("Test error")

        log_error(logger, error, {"component": "test"})
        log_error(logger, error)

    def test_development_vs_production_logging(self, tmp_path):
        """Test different logging configurations for development vs production"""
        settings = Settings(log_file=tmp_path / "test.log")

        with patch.dict(os.environ, {"ENVIRONMENT": "development"}):
            setup_structured_logging(settings)
            get_logger("test").info("Test development log")

        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            setup_structured_logging(settings)
            get_logger("test").info("Test production log")
