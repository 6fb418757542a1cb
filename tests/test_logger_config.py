"""
Tests for the logging setup.
"""
import os
import tempfile
import unittest
from pathlib import Path

from config.logger_config import setup_logging


class TestSetupLogging(unittest.TestCase):

    def test_current_log_symlink(self):
        with tempfile.TemporaryDirectory() as log_dir:
            setup_logging(log_level="debug", log_dir=log_dir)

            current = Path(log_dir) / "ledger_current.log"
            self.assertTrue(current.is_symlink())
            target = os.readlink(current)
            self.assertTrue(target.startswith("ledger_"))
            self.assertTrue(target.endswith(".log"))


if __name__ == "__main__":
    unittest.main()
