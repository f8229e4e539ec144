import unittest
import logging

from voice_intake.config.logging_config import LOG_FORMAT, configure_logging


class TestLoggingConfig(unittest.TestCase):
    def test_configure_logging(self):
        # Test that the function returns a logger
        logger = configure_logging("INFO")
        self.assertIsInstance(logger, logging.Logger)

        # Test that the logger has the correct name
        self.assertEqual(logger.name, "voice_intake")

        # Test that the logger has the correct level
        self.assertEqual(logger.level, logging.INFO)

        # Test that the logger has the correct handlers and format
        self.assertGreaterEqual(len(logger.handlers), 1)  # At least one handler (console)
        handler = logger.handlers[0]  # Check first handler (should be console handler)
        self.assertIsInstance(handler, logging.StreamHandler)
        self.assertEqual(handler.formatter._fmt, LOG_FORMAT)
        self.assertFalse(logger.propagate)

    def test_level_override_and_reconfigure(self):
        configure_logging("INFO")
        handler_count = len(logging.getLogger("voice_intake").handlers)

        logger = configure_logging("debug")

        self.assertEqual(logger.level, logging.DEBUG)
        # Reconfiguring replaces handlers instead of stacking them
        self.assertEqual(len(logger.handlers), handler_count)

    def test_unknown_level_falls_back_to_info(self):
        logger = configure_logging("LOUD")
        self.assertEqual(logger.level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
