import os
import sys
import logging
import datetime

logger = logging.getLogger(__name__)

CLI_LOG_DIR = os.path.join("logs", "cli")
CLI_LOG_PREFIX = "article_clipper"
WEB_LOG_DIR = os.path.join("logs", "web")
WEB_LOG_PREFIX = "article_clipper_web"
KEEP_LOG_FILES = 10
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_runtime_logging(
    log_dir: str = CLI_LOG_DIR,
    log_prefix: str = CLI_LOG_PREFIX,
    level: int = logging.INFO
) -> str:
    """Send clipper logs to stdout and to one new file per run.

    Only the newest KEEP_LOG_FILES files with the same prefix are kept.

    Args:
        log_dir: Log directory path.
        log_prefix: Log file name prefix.
        level: Root logger level.
    """

    log_path = _new_run_log_path(log_dir = log_dir, log_prefix = log_prefix)
    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [
        logging.StreamHandler(stream = sys.stdout),
        logging.FileHandler(log_path, encoding = "utf-8")
    ]

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    _cleanup_old_log_files(log_dir = log_dir, log_prefix = log_prefix, max_files = KEEP_LOG_FILES)
    logger.info("clip log file ready: %s", log_path)
    return log_path


def configure_web_logging(level: int = logging.INFO) -> str:
    return configure_runtime_logging(log_dir = WEB_LOG_DIR, log_prefix = WEB_LOG_PREFIX, level = level)


def _new_run_log_path(log_dir: str, log_prefix: str) -> str:
    """Return <log_dir>/<prefix>_<timestamp>_<pid>.log, creating log_dir.

    Args:
        log_dir: Log directory path.
        log_prefix: Log file name prefix.
    """

    os.makedirs(log_dir, exist_ok = True)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return os.path.join(log_dir, f"{log_prefix}_{timestamp}_{os.getpid()}.log")


def _cleanup_old_log_files(log_dir: str, log_prefix: str, max_files: int) -> None:
    """Delete all but the newest max_files logs of one prefix.

    Args:
        log_dir: Existing log directory path.
        log_prefix: Log file name prefix.
        max_files: Max log files to retain.
    """

    run_logs = [
        os.path.join(log_dir, name)
        for name in os.listdir(log_dir)
        if name.startswith(f"{log_prefix}_") and name.endswith(".log")
    ]
    run_logs = [path for path in run_logs if os.path.isfile(path)]
    run_logs.sort(key = os.path.getmtime, reverse = True)
    for stale_path in run_logs[max_files:]:
        try:
            os.remove(stale_path)
        except OSError as exc:
            logger.warning("failed to remove old log file %s: %s", stale_path, str(exc))
