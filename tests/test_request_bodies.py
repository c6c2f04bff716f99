import unittest

from feedgate.contracts.request_bodies import (
    FEED_ID_MESSAGE,
    TRIGGER_ENUM_MESSAGE,
    TRIGGER_REQUIRED_MESSAGE,
    URL_REQUIRED_MESSAGE,
    dispatch_error,
    feed_check_error,
    validate_dispatch_request,
    validate_feed_check_request,
)


class TestFeedCheckContract(unittest.TestCase):
    def test_valid(self):
        self.assertIsNone(feed_check_error({"url": "https://example.com/feed"}))
        self.assertEqual(validate_feed_check_request({"url": "x", "extra": 1}), [])

    def test_missing_or_wrong_type(self):
        for payload in ({}, {"url": ""}, {"url": 42}, {"url": None}, [], "url"):
            with self.subTest(payload=payload):
                self.assertEqual(feed_check_error(payload), URL_REQUIRED_MESSAGE)

    def test_validation_errors_name_the_field(self):
        errors = validate_feed_check_request({"url": 42})
        self.assertEqual(len(errors), 1)
        self.assertTrue(errors[0].startswith("url:"))


class TestDispatchContract(unittest.TestCase):
    def test_valid(self):
        self.assertIsNone(dispatch_error({"trigger_type": "new_feed", "feed_id": "abc"}))
        self.assertIsNone(dispatch_error({"trigger_type": "scheduled"}))
        self.assertIsNone(dispatch_error({"trigger_type": "cleanup_only", "feed_id": None}))
        self.assertIsNone(dispatch_error({"trigger_type": "full_refresh", "feed_id": 12}))

    def test_missing_trigger(self):
        for payload in ({}, {"trigger_type": ""}, {"trigger_type": 3}, [], {"feed_id": "x"}):
            with self.subTest(payload=payload):
                self.assertEqual(dispatch_error(payload), TRIGGER_REQUIRED_MESSAGE)

    def test_unknown_trigger_lists_valid_values(self):
        msg = dispatch_error({"trigger_type": "bogus"})
        self.assertEqual(msg, TRIGGER_ENUM_MESSAGE)
        for name in ("new_feed", "full_refresh", "scheduled", "cleanup_only"):
            self.assertIn(name, msg)

    def test_bad_feed_id(self):
        self.assertEqual(dispatch_error({"trigger_type": "new_feed", "feed_id": ["a"]}), FEED_ID_MESSAGE)

    def test_validate_reports_every_problem(self):
        errors = validate_dispatch_request({"trigger_type": "bogus", "feed_id": {}})
        self.assertEqual(len(errors), 2)


if __name__ == "__main__":
    unittest.main()
