"""
Tests for the JSON log formatter.
"""
import unittest
import sys
import os
import json
import logging

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from logging_config import JSONFormatter


def make_record(message, data=None):
    record = logging.LogRecord("playlist.test", logging.INFO, __file__, 10, message, None, None)
    if data is not None:
        record.data = data
    return record


class TestJSONFormatter(unittest.TestCase):
    """Test cases for the JSONFormatter class."""

    def setUp(self):
        self.formatter = JSONFormatter()

    def test_context_fields_are_added(self):
        output = json.loads(self.formatter.format(make_record("Fetched page", {"playlist_id": "PL1", "page": 3})))

        self.assertEqual(output["message"], "Fetched page")
        self.assertEqual(output["playlist_id"], "PL1")
        self.assertEqual(output["page"], 3)

    def test_context_cannot_override_core_fields(self):
        record = make_record("Real message", {"message": "spoofed", "level": "DEBUG", "name": "other", "url": "u"})

        output = json.loads(self.formatter.format(record))

        self.assertEqual(output["message"], "Real message")
        self.assertEqual(output["level"], "INFO")
        self.assertEqual(output["name"], "playlist.test")
        self.assertEqual(output["url"], "u")


if __name__ == '__main__':
    unittest.main()
