import json
import logging
import os
from unittest import mock

from django.test import SimpleTestCase

from ledger_project.logging_config import JsonFormatter, get_logging_config


class LoggingConfigTests(SimpleTestCase):

    def test_debug_uses_console_format(self):
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("LOG_FORMAT", None)
            os.environ.pop("LOG_LEVEL", None)
            config = get_logging_config(debug=True)
        self.assertIn("verbose", config["formatters"])
        self.assertEqual(config["loggers"]["ledger_core"]["level"], "DEBUG")

    def test_production_uses_json(self):
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}):
            os.environ.pop("LOG_FORMAT", None)
            config = get_logging_config(debug=False)
        self.assertIn("json", config["formatters"])
        self.assertEqual(config["handlers"]["console"]["formatter"], "json")
        self.assertEqual(config["loggers"]["celery"]["level"], "WARNING")
        self.assertEqual(config["loggers"]["django.db.backends"]["handlers"], ["null"])


class JsonFormatterTests(SimpleTestCase):

    def _record(self, **extra):
        record = logging.LogRecord(
            "ledger_core.services.periods", logging.INFO, __file__, 1,
            "closed %02d/%d for account %s", (3, 2025, 7), None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_formats_one_json_object(self):
        payload = json.loads(JsonFormatter().format(self._record()))
        self.assertEqual(payload["level"], "INFO")
        self.assertEqual(payload["logger"], "ledger_core.services.periods")
        self.assertEqual(payload["message"], "closed 03/2025 for account 7")
        self.assertNotIn("extra", payload)

    def test_extras_are_kept_and_stringified_when_needed(self):
        payload = json.loads(JsonFormatter().format(self._record(account_id=7, when=object())))
        self.assertEqual(payload["extra"]["account_id"], 7)
        self.assertIsInstance(payload["extra"]["when"], str)
