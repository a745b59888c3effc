import os
import unittest
from unittest.mock import patch

from travelsafe.config import Settings
from travelsafe.errors import ConfigError
from travelsafe.limiter import rate_limit_string
from travelsafe.server import main


class SettingsTests(unittest.TestCase):
    @patch.dict(
        os.environ,
        {"MONGO_URI": "mongodb://db:27017/reports", "API_KEY": "secret", "PORT": "8080"},
        clear=True,
    )
    def test_reads_mongo_uri_api_key_and_port(self):
        settings = Settings(_env_file=None)
        self.assertEqual(settings.database_url, "mongodb://db:27017/reports")
        self.assertEqual(settings.api_key, "secret")
        self.assertEqual(settings.port, 8080)
        settings.validate_for_startup()

    @patch.dict(os.environ, {"DATABASE_URL": "sqlite:///reports.db"}, clear=True)
    def test_database_url_is_accepted_too(self):
        self.assertEqual(Settings(_env_file=None).database_url, "sqlite:///reports.db")

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        settings = Settings(_env_file=None)
        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.rate_limit_max, 100)
        self.assertEqual(settings.rate_limit_window_seconds, 900)
        self.assertEqual(settings.default_list_limit, 10)
        self.assertEqual(rate_limit_string(settings), "100 per 900 seconds")

    @patch.dict(os.environ, {"MONGO_URI": "mongodb://db:27017"}, clear=True)
    def test_missing_api_key_is_a_config_error(self):
        with self.assertRaises(ConfigError):
            Settings(_env_file=None).validate_for_startup()

    @patch.dict(
        os.environ,
        {"API_KEY": "secret", "TRAVELSAFE_USE_IN_MEMORY_BACKENDS": "1"},
        clear=True,
    )
    def test_in_memory_toggle_does_not_need_a_url(self):
        settings = Settings(_env_file=None)
        self.assertTrue(settings.use_in_memory_backends)
        settings.validate_for_startup()


class ServerMainTests(unittest.TestCase):
    @patch("travelsafe.server.uvicorn.run")
    @patch("travelsafe.server.get_settings")
    def test_exits_non_zero_without_api_key(self, mock_settings, mock_run):
        mock_settings.return_value = Settings(
            _env_file=None, api_key=None, use_in_memory_backends=True
        )
        self.assertEqual(main([]), 1)
        mock_run.assert_not_called()

    @patch("travelsafe.server.uvicorn.run")
    @patch("travelsafe.server.get_settings")
    def test_runs_uvicorn_with_overrides(self, mock_settings, mock_run):
        mock_settings.return_value = Settings(
            _env_file=None, api_key="secret", use_in_memory_backends=True
        )
        self.assertEqual(main(["--port", "9001", "--host", "127.0.0.1"]), 0)
        _, kwargs = mock_run.call_args
        self.assertEqual(kwargs["port"], 9001)
        self.assertEqual(kwargs["host"], "127.0.0.1")


if __name__ == "__main__":
    unittest.main()
