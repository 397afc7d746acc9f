"""
Audit trail file logger.

The audit trail is a dedicated, non-propagating logger writing one line per
change to a size-rotated file, kept apart from the engine's operational log.
"""
import logging
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path


AUDIT_LOGGER_NAME = "fluxquant.audit.trail"
AUDIT_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
FALLBACK_FILENAME = 'fluxquant_audit.log'

DEFAULT_MAX_BYTES = 10_000_000
DEFAULT_BACKUP_COUNT = 5

logger = logging.getLogger(__name__)


def ensure_log_directory(logfile_path):
    """
    Create the audit log's directory and confirm it accepts new files.

    Returns the path to use: ``logfile_path`` itself, or a file in the
    system temp directory when the configured location is unusable.
    """
    target = Path(logfile_path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        marker = target.parent / '.fluxquant_write_check'
        marker.touch()
        marker.unlink()
    except OSError as e:
        fallback = Path(tempfile.gettempdir()) / FALLBACK_FILENAME
        logger.warning(f"Audit log directory {target.parent} unusable ({e}); writing to {fallback}")
        return str(fallback)
    return str(target)


def _rotating_handler(logfile_path, max_bytes, backup_count):
    handler = RotatingFileHandler(
        ensure_log_directory(logfile_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8',
    )
    handler.setFormatter(logging.Formatter(AUDIT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def get_audit_logger(logfile_path, max_bytes=DEFAULT_MAX_BYTES, backup_count=DEFAULT_BACKUP_COUNT):
    """
    Return the audit trail logger, attaching its file handler on first call.

    Later calls return the already configured logger and ignore their
    arguments; call reset_audit_logger() to point it at another file.

    Args:
        logfile_path: Audit log file
        max_bytes: Rotate once the file reaches this size
        backup_count: Rotated files to keep

    Returns:
        logging.Logger
    """
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    if audit.handlers:
        return audit

    audit.setLevel(logging.INFO)
    # keep change records out of the console/operational log
    audit.propagate = False
    audit.addHandler(_rotating_handler(logfile_path, max_bytes, backup_count))
    return audit


def reset_audit_logger():
    """Close and detach the audit handlers (tests switch log files between runs)."""
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    for handler in list(audit.handlers):
        audit.removeHandler(handler)
        handler.close()
