"""
Audit logging for governed actions.
"""
import logging

from .conf import newsletter_settings
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Append audit records through the repository.

    Writes are best effort by default: a failed write is logged and the
    caller carries on, since the action being audited has already been
    committed. Set AUDIT_FAIL_SILENTLY to False to surface the failure.
    """

    def __init__(self, repository, fail_silently=None):
        self.repository = repository
        if fail_silently is None:
            fail_silently = newsletter_settings.AUDIT_FAIL_SILENTLY
        self.fail_silently = fail_silently

    def log_action(self, user_id, action, resource, resource_id, details=None,
                   ip_address=None, user_agent=""):
        record = {
            "user_id": str(user_id),
            "action": action,
            "resource": resource,
            "resource_id": str(resource_id),
            "details": details,
            "ip_address": ip_address,
            "user_agent": user_agent or "",
        }
        try:
            self.repository.append_audit_record(record)
        except PersistenceError:
            if not self.fail_silently:
                raise
            logger.exception(
                "Audit write failed: %s %s %s:%s", user_id, action, resource, resource_id
            )
