import os
import time
import logging
import tempfile
import unittest

from utils.logging_setup import CLI_LOG_PREFIX
from utils.logging_setup import _cleanup_old_log_files
from utils.logging_setup import _new_run_log_path
from utils.logging_setup import configure_runtime_logging


class TestMainLogging(unittest.TestCase):
    """Tests for runtime log file utilities."""

    def test_new_run_log_path_contains_prefix_and_pid(self) -> None:
        """Generated log path should include prefix and process id.

        Args:
            self: Test case instance.
        """

        with tempfile.TemporaryDirectory() as temp_dir:
            first = _new_run_log_path(log_dir = temp_dir, log_prefix = CLI_LOG_PREFIX)
            time.sleep(0.001)
            second = _new_run_log_path(log_dir = temp_dir, log_prefix = CLI_LOG_PREFIX)

            self.assertTrue(os.path.basename(first).startswith("article_clipper_"))
            self.assertTrue(os.path.basename(first).endswith(f"_{os.getpid()}.log"))
            self.assertNotEqual(first, second)

    def test_cleanup_old_log_files_keeps_latest_ten(self) -> None:
        """Cleanup should keep only the latest files under same prefix.

        Args:
            self: Test case instance.
        """

        with tempfile.TemporaryDirectory() as temp_dir:
            for index in range(12):
                path = os.path.join(temp_dir, f"article_clipper_20260219_120000_{index}.log")
                with open(path, "w", encoding = "utf-8") as file_obj:
                    file_obj.write("x")
                mtime = 1000 + index
                os.utime(path, (mtime, mtime))

            other_path = os.path.join(temp_dir, "another_program.log")
            with open(other_path, "w", encoding = "utf-8") as file_obj:
                file_obj.write("x")

            _cleanup_old_log_files(log_dir = temp_dir, log_prefix = CLI_LOG_PREFIX, max_files = 10)

            remaining = sorted(name for name in os.listdir(temp_dir) if name.startswith("article_clipper_"))
            self.assertEqual(len(remaining), 10)
            self.assertNotIn("article_clipper_20260219_120000_0.log", remaining)
            self.assertNotIn("article_clipper_20260219_120000_1.log", remaining)
            self.assertTrue(os.path.exists(other_path))

    def test_configure_runtime_logging_writes_file(self) -> None:
        """Configured logging should write records to the run log file.

        Args:
            self: Test case instance.
        """

        root_logger = logging.getLogger()
        original_handlers = list(root_logger.handlers)
        original_level = root_logger.level
        try:
            with tempfile.TemporaryDirectory() as temp_dir:
                log_path = configure_runtime_logging(log_dir = temp_dir, log_prefix = "case")
                logging.getLogger("tests.case").info("hello log")
                for handler in root_logger.handlers:
                    handler.flush()

                with open(log_path, "r", encoding = "utf-8") as fp:
                    content = fp.read()
                self.assertIn("tests.case - INFO - hello log", content)
                self.assertEqual(os.path.dirname(log_path), temp_dir)

                for handler in list(root_logger.handlers):
                    handler.close()
                    root_logger.removeHandler(handler)
        finally:
            for handler in original_handlers:
                root_logger.addHandler(handler)
            root_logger.setLevel(original_level)


if __name__ == "__main__":
    unittest.main()
