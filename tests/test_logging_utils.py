import logging
import unittest

from utils import logging_utils
from utils.logging_utils import ExtrasFilter, build_logging_config, get_tagged_logger


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.records.append(record)


class TestLoggingUtils(unittest.TestCase):
    def test_build_logging_config_has_expected_handlers_and_filters(self):
        cfg = build_logging_config(job_name="jobtest")
        self.assertIn("stdout", cfg["handlers"])
        self.assertIn("stderr", cfg["handlers"])
        self.assertIn("extras", cfg["filters"])
        self.assertEqual(cfg["filters"]["job_name"]["job_name"], "jobtest")
        self.assertIn("stdout_max_info", cfg["handlers"]["stdout"]["filters"])
        self.assertNotIn("stdout_max_info", cfg["handlers"]["stderr"]["filters"])

    def test_get_tagged_logger_injects_tag_and_keeps_extras(self):
        handler = _ListHandler()
        logger = get_tagged_logger("advisor.test.tagged", tag="custom_tag")
        base_logger = logger.logger
        base_logger.setLevel(logging.DEBUG)
        base_logger.addHandler(handler)
        base_logger.propagate = False
        try:
            logger.info("hello world", extra={"city": "Lisbon"})

            record = handler.records[-1]
            self.assertEqual(record.tag, "custom_tag")
            self.assertEqual(record.city, "Lisbon")
        finally:
            base_logger.removeHandler(handler)

    def test_default_tag_is_last_name_segment(self):
        handler = _ListHandler()
        logger = get_tagged_logger("advisor.test.segment")
        logger.logger.addHandler(handler)
        logger.logger.propagate = False
        try:
            logger.warning("x")
            self.assertEqual(handler.records[-1].tag, "segment")
        finally:
            logger.logger.removeHandler(handler)

    def test_extras_filter_renders_key_values(self):
        record = logging.LogRecord("n", logging.INFO, "p", 1, "msg", None, None)
        record.tag = "t"
        record.city = "Oslo"
        record.failed = 2
        ExtrasFilter().filter(record)
        self.assertEqual(record.extras, " | city=Oslo failed=2")

        plain = logging.LogRecord("n", logging.INFO, "p", 1, "msg", None, None)
        ExtrasFilter().filter(plain)
        self.assertEqual(plain.extras, "")

    def test_setup_logging_override_applies_filters(self):
        root = logging.getLogger()
        orig_handlers = root.handlers[:]
        orig_level = root.level
        try:
            logging_utils.setup_logging(level="INFO", job_name="jobtest", override_existing=True)
            self.assertTrue(root.handlers)
            self.assertTrue(
                any(
                    any(f.__class__.__name__ == "JobNameFilter" for f in h.filters)
                    for h in root.handlers
                )
            )
        finally:
            root.handlers = orig_handlers
            root.setLevel(orig_level)
            logging_utils._CONFIGURED = False  # reset for other tests


if __name__ == "__main__":
    unittest.main()
