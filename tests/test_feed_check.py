import unittest
from unittest.mock import patch

import requests

from feedgate.config import FeedCheckConfig
from feedgate.errors import FetchError, InputError
from feedgate.fetching import bounded_fetch as bf
from feedgate.fetching.feed_check import check_feed, transport_error_message
from feedgate.fetching.feed_classifier import NOT_A_FEED_MESSAGE, VALID_MESSAGE
from tests.helpers import fake_response


class TestCheckFeed(unittest.TestCase):
    @patch.object(requests.Session, "get")
    def test_rss_content_type_is_valid(self, mock_get):
        mock_get.return_value = fake_response(200, b"", {"Content-Type": "application/rss+xml"})
        outcome = check_feed("https://example.com/feed.xml")
        self.assertTrue(outcome.valid)
        self.assertEqual(outcome.status, 200)
        self.assertEqual(outcome.message, VALID_MESSAGE)
        self.assertEqual(outcome.content_type, "application/rss+xml")
        self.assertEqual(outcome.matched_signal, "content-type")
        self.assertEqual(outcome.url, "https://example.com/feed.xml")
        kwargs = mock_get.call_args.kwargs
        self.assertFalse(kwargs["allow_redirects"])
        self.assertTrue(kwargs["stream"])

    @patch.object(requests.Session, "get")
    def test_html_page_is_not_a_feed(self, mock_get):
        mock_get.return_value = fake_response(200, b"<html><body>hi</body></html>", {"Content-Type": "text/html"})
        outcome = check_feed("https://example.com/")
        self.assertFalse(outcome.valid)
        self.assertEqual(outcome.message, NOT_A_FEED_MESSAGE)

    @patch.object(requests.Session, "get")
    def test_truncation_reported(self, mock_get):
        mock_get.return_value = fake_response(200, b"<rss>" + b"a" * 5000, {})
        outcome = check_feed("https://example.com/big", FeedCheckConfig(max_bytes=1000))
        self.assertTrue(outcome.truncated)
        self.assertTrue(outcome.valid)

    @patch.object(requests.Session, "get")
    def test_redirect_to_metadata_address_is_refused(self, mock_get):
        mock_get.return_value = fake_response(302, b"", {"Location": "http://169.254.169.254/latest/meta-data"})
        with self.assertRaises(InputError):
            check_feed("https://example.com/feed")
        self.assertEqual(mock_get.call_count, 1)

    @patch.object(requests.Session, "get")
    def test_blocked_host_never_fetched(self, mock_get):
        for url in ("http://192.168.1.1/feed.xml", "http://localhost/", "http://[::1]:8080/"):
            with self.subTest(url=url):
                with self.assertRaises(InputError):
                    check_feed(url)
        mock_get.assert_not_called()

    @patch.object(requests.Session, "get")
    def test_bad_scheme_never_fetched(self, mock_get):
        with self.assertRaises(InputError):
            check_feed("ftp://example.com/feed.xml")
        mock_get.assert_not_called()


class TestTransportErrorMessage(unittest.TestCase):
    def test_known_kinds(self):
        self.assertEqual(transport_error_message(FetchError(bf.DNS_FAILURE, "x")),
                         "Domain not found - please check the URL")
        self.assertEqual(transport_error_message(FetchError(bf.CONNECTION_REFUSED, "x")),
                         "Connection refused - server may be down")
        self.assertEqual(transport_error_message(FetchError(bf.TIMEOUT, "x")),
                         "Request timeout - server took too long to respond")

    def test_fallback_includes_raw_message(self):
        msg = transport_error_message(FetchError(bf.CONNECTION_RESET, "Connection reset by peer"))
        self.assertEqual(msg, "Error testing feed: Connection reset by peer")


if __name__ == "__main__":
    unittest.main()
