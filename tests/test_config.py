"""Tests for settings validation and derived values."""

import logging
import time
import unittest

from pydantic import ValidationError

from factories import make_settings
from workload_tracker.core.logging_config import LOG_DATEFMT, LOG_FORMAT


class TestSettings(unittest.TestCase):
    """Settings defaults, validators and derived values."""

    def test_defaults(self) -> None:
        settings = make_settings()
        self.assertEqual(settings.API_PREFIX, "/api")
        self.assertEqual(settings.JWT_ALGORITHM, "HS256")
        self.assertTrue(settings.DB_FALLBACK_TO_SQLITE)
        self.assertFalse(settings.is_production)

    def test_only_hs256_is_accepted(self) -> None:
        self.assertEqual(make_settings(JWT_ALGORITHM="hs256").JWT_ALGORITHM, "HS256")
        with self.assertRaises(ValidationError):
            make_settings(JWT_ALGORITHM="RS256")

    def test_rejects_out_of_range_values(self) -> None:
        for overrides in ({"DB_PORT": 0}, {"BCRYPT_ROUNDS": 3}, {"DB_MAX_RETRIES": 0}, {"JWT_SECRET": " "}):
            with self.subTest(overrides=overrides), self.assertRaises(ValidationError):
                make_settings(**overrides)

    def test_missing_mysql_settings(self) -> None:
        settings = make_settings(DB_TYPE="mysql", DB_HOST="db.internal", DB_USER="tracker")
        self.assertEqual(settings.missing_mysql_settings(), ["DB_PASSWORD", "DB_NAME"])

    def test_default_secret_detection(self) -> None:
        settings = make_settings(JWT_SECRET="change-me-in-production", APP_ENV="prod")
        self.assertTrue(settings.uses_default_jwt_secret)
        self.assertTrue(settings.is_production)

    def test_cors_origin_list(self) -> None:
        settings = make_settings(CORS_ORIGINS="https://a.example, https://b.example,")
        self.assertEqual(settings.cors_origin_list, ["https://a.example", "https://b.example"])


class TestLoggingConfig(unittest.TestCase):
    """Log timestamps use local time without a UTC marker."""

    def test_timestamp_format_has_no_zone_suffix(self) -> None:
        record = logging.LogRecord("workload_tracker", logging.INFO, __file__, 1, "msg", None, None)
        stamp = logging.Formatter(LOG_FORMAT, LOG_DATEFMT).formatTime(record, LOG_DATEFMT)
        self.assertEqual(stamp, time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(record.created)))


if __name__ == "__main__":
    unittest.main()
