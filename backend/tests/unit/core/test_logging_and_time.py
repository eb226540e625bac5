# backend/tests/unit/core/test_logging_and_time.py
from datetime import datetime, timedelta
import logging

import pytz

from studio_engine.core.logging_config import LOG_FORMAT, configure_logging
from studio_engine.core.timezone_utils import get_studio_now, get_studio_timezone


class TestConfigureLogging:
    def test_quiets_sqlalchemy_without_echo(self):
        configure_logging(logging.INFO)

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_format_names_the_logger(self):
        assert "%(name)s" in LOG_FORMAT
        assert "%(levelname)s" in LOG_FORMAT


class TestStudioTime:
    def test_default_timezone(self):
        assert get_studio_timezone().zone == "Europe/Budapest"

    def test_now_is_naive_wall_clock(self):
        now = get_studio_now("Asia/Tokyo")
        expected = datetime.now(pytz.timezone("Asia/Tokyo")).replace(tzinfo=None)

        assert now.tzinfo is None
        assert abs(expected - now) < timedelta(seconds=5)
