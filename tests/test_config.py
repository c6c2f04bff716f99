import unittest

from feedgate.config import DispatchConfig, FeedCheckConfig, ServiceSettings
from feedgate.errors import ConfigurationError


class TestDispatchConfig(unittest.TestCase):
    def test_all_missing_reported_together(self):
        with self.assertRaises(ConfigurationError) as ctx:
            DispatchConfig.from_env({"GITHUB_OWNER": "acme"})
        self.assertEqual(ctx.exception.missing, ["GITHUB_TOKEN", "GITHUB_REPO"])

    def test_blank_values_count_as_missing(self):
        with self.assertRaises(ConfigurationError) as ctx:
            DispatchConfig.from_env({"GITHUB_TOKEN": "  ", "GITHUB_OWNER": "a", "GITHUB_REPO": "b"})
        self.assertEqual(ctx.exception.missing, ["GITHUB_TOKEN"])

    def test_defaults_and_overrides(self):
        cfg = DispatchConfig.from_env({
            "GITHUB_TOKEN": "t", "GITHUB_OWNER": "acme", "GITHUB_REPO": "feeds",
            "GITHUB_REF": "release", "GITHUB_API_URL": "https://ghe.example.com/api/v3/",
        })
        self.assertEqual(cfg.repository, "acme/feeds")
        self.assertEqual(cfg.workflow, "rss-scraper.yml")
        self.assertEqual(cfg.ref, "release")
        self.assertEqual(cfg.api_url, "https://ghe.example.com/api/v3")


class TestFeedCheckConfig(unittest.TestCase):
    def test_defaults(self):
        cfg = FeedCheckConfig.from_env({})
        self.assertEqual(cfg.timeout, 15.0)
        self.assertEqual(cfg.max_bytes, 1_048_576)
        self.assertEqual(cfg.max_redirects, 3)

    def test_overrides(self):
        cfg = FeedCheckConfig.from_env({"FEED_CHECK_TIMEOUT": "2.5", "FEED_CHECK_MAX_REDIRECTS": "0"})
        self.assertEqual(cfg.timeout, 2.5)
        self.assertEqual(cfg.max_redirects, 0)

    def test_malformed_values_fail_fast(self):
        for env in ({"FEED_CHECK_TIMEOUT": "soon"}, {"FEED_CHECK_TIMEOUT": "-1"}, {"FEED_CHECK_MAX_BYTES": "0"}):
            with self.subTest(env=env):
                with self.assertRaises(ConfigurationError):
                    FeedCheckConfig.from_env(env)


class TestServiceSettings(unittest.TestCase):
    def test_rate_limit_toggle(self):
        self.assertTrue(ServiceSettings.from_env({}).rate_limit_enabled)
        self.assertFalse(ServiceSettings.from_env({"RATELIMIT_ENABLED": "false"}).rate_limit_enabled)
        self.assertEqual(ServiceSettings.from_env({"LOG_LEVEL": "debug"}).log_level, "DEBUG")


if __name__ == "__main__":
    unittest.main()
