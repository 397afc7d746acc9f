"""
Audit logging for quota engine model changes.

Provides an audit trail of INSERT, UPDATE, DELETE operations on engine
models plus the SQL-side counter and quota updates, attributed to the
principal set with acting_as().
"""
from .events import acting_as, init_audit_events, reset_audit_events, responsible_user
from .logger import get_audit_logger, reset_audit_logger


def init_audit(logfile_path=None, config=None):
    """
    Attach audit logging to all sessions.

    Args:
        logfile_path: Path to audit log file (default: configured audit_log_path)
        config: EngineConfig supplying path and rotation (default: get_config())

    Example:
        from fluxquant.audit import init_audit

        init_audit('/var/log/fluxquant/quota_audit.log')
    """
    if config is None:
        from fluxquant.config import get_config
        config = get_config()

    init_audit_events(
        logfile_path or config.audit_log_path,
        max_bytes=config.audit_log_max_bytes,
        backup_count=config.audit_log_backups,
    )


__all__ = [
    'init_audit',
    'init_audit_events',
    'reset_audit_events',
    'acting_as',
    'responsible_user',
    'get_audit_logger',
    'reset_audit_logger',
]
