"""
Operational logging for the quota engine and its CLI.

Engine modules log through ``logging.getLogger(__name__)``; this module only
decides where those records go. The audit trail has its own logger (see
fluxquant.audit.logger) and is not affected.
"""

import logging
import logging.handlers
import sys


LOG_FORMAT = '[%(asctime)s] %(levelname)s [%(name)s] %(message)s'

# SQL echo is opt-in through create_quota_engine(echo=True), not the log level
QUIET_LOGGERS = ('sqlalchemy.engine', 'sqlalchemy.pool')


def _file_handler(log_file, formatter):
    try:
        handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding='utf-8'
        )
    except OSError as e:
        print(f"Warning: cannot write log file {log_file}: {e}", file=sys.stderr)
        return None
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_file=None, verbose=False, level='INFO'):
    """
    Route engine log records to stderr and, optionally, a rotating file.

    Args:
        log_file: Extra log file (None = stderr only)
        verbose: Force DEBUG regardless of ``level``
        level: Level name from configuration
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    handlers = [console]

    if log_file:
        handler = _file_handler(log_file, formatter)
        if handler is not None:
            handlers.append(handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.INFO),
        handlers=handlers,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
