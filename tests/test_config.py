import os
import unittest
from unittest import mock

from finplan.config.env import get_api_config, get_logging_config


class TestConfig(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            cfg = get_api_config()
            self.assertIsNone(cfg.api_key)
            self.assertEqual(cfg.rate_limit_n, 5)
            self.assertEqual(cfg.rate_limit_window_sec, 1.0)
            self.assertEqual(get_logging_config().level, "INFO")

    def test_from_env(self):
        env = {"API_KEY": "k", "RATE_LIMIT_N": "10", "RATE_LIMIT_WINDOW_SEC": "2.5", "LOG_LEVEL": "debug"}
        with mock.patch.dict(os.environ, env, clear=True):
            cfg = get_api_config()
            self.assertEqual(cfg.api_key, "k")
            self.assertEqual(cfg.rate_limit_n, 10)
            self.assertEqual(cfg.rate_limit_window_sec, 2.5)
            self.assertEqual(get_logging_config().level, "DEBUG")


if __name__ == '__main__':
    unittest.main()
