"""
Typed failures raised by the quota engine.

Every failure carries a stable ``code`` (consumed by the API facade when it
builds error envelopes) and a ``retryable`` flag. Only ``UnavailableError``
is retryable; the others are terminal for the request that raised them.
"""


class QuotaEngineError(Exception):
    """Base exception for all quota engine errors."""
    code = 'internal'
    retryable = False

    def __init__(self, message: str = '', **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {
            'code': self.code,
            'message': self.message,
            'retryable': self.retryable,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class NotFoundError(QuotaEngineError):
    """Referenced project, stage, pool, allocation, user or log does not exist."""
    code = 'not_found'


class InvalidArgumentError(QuotaEngineError):
    """Negative quantities, empty reasons, missing exclusion reasons, bad dates."""
    code = 'invalid_argument'


class ConflictError(QuotaEngineError):
    """Duplicate active allocation, or a quota adjustment with no actual change."""
    code = 'conflict'


class InvalidStateError(QuotaEngineError):
    """Operation not allowed in the current state (disabled allocation, reverted log)."""
    code = 'invalid_state'


class ForbiddenError(QuotaEngineError):
    """Acting principal lacks the permission for the operation."""
    code = 'forbidden'


class UnavailableError(QuotaEngineError):
    """Storage was busy or a concurrent writer won the race; safe to retry."""
    code = 'unavailable'
    retryable = True


class InternalError(QuotaEngineError):
    """Durable write failed for a reason other than contention."""
    code = 'internal'


class ConfigError(InvalidArgumentError):
    """Raised for configuration errors."""
    code = 'config_error'
