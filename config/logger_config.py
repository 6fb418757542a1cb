"""
Logging configuration with per-run log files and configurable levels.
"""
import os
import logging
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(log_level: str = None, log_dir: str = None):
  """
  Setup logging with a timestamped file per run and a console handler.

  Args:
    log_level: Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to
      LOG_LEVEL from the environment, then INFO.
    log_dir: Directory for log files. Defaults to LOG_DIR, then "logs".
  """
  if log_level is None:
    log_level = os.environ.get("LOG_LEVEL", "INFO")
  log_level = log_level.upper()
  level = getattr(logging, log_level, None)
  if not isinstance(level, int):
    level = logging.INFO

  log_dir = Path(log_dir or os.environ.get("LOG_DIR", "logs"))
  log_dir.mkdir(parents=True, exist_ok=True)

  timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
  current_log_file = log_dir / "ledger_current.log"
  new_log_file = log_dir / f"ledger_{timestamp}.log"

  # A stale regular file from an older run is kept under its mtime
  if current_log_file.exists() and not current_log_file.is_symlink():
    backup_timestamp = datetime.fromtimestamp(
      current_log_file.stat().st_mtime
    ).strftime("%Y%m%d_%H%M%S")
    backup_file = log_dir / f"ledger_{backup_timestamp}.log"
    if not backup_file.exists():
      current_log_file.rename(backup_file)
  elif current_log_file.is_symlink():
    current_log_file.unlink()

  logging.basicConfig(
    level=level,
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
      logging.FileHandler(new_log_file, mode="w"),
      logging.StreamHandler(),
    ],
  )

  logger = logging.getLogger(__name__)

  try:
    if current_log_file.exists() or current_log_file.is_symlink():
      current_log_file.unlink()
    current_log_file.symlink_to(new_log_file.name)
  except OSError as e:
    logger.warning(f"Could not create symlink {current_log_file}: {e}")

  logger.info(f"Logging initialized at level: {log_level}")
  logger.info(f"Log file: {new_log_file}")

  # Suppress noisy libraries
  logging.getLogger("werkzeug").setLevel(logging.WARNING)
  logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

  return logger
