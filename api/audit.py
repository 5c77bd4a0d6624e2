"""
Audit logging for administrative actions.

Every admin mutation on sections and placed videos is written as one JSON
object per line to a rotating log file, so changes to the homepage can be
traced back to a client and request.
"""

import json
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from api.errors import truncate_string
from config import (
    AUDIT_LOG_BACKUP_COUNT,
    AUDIT_LOG_ENABLED,
    AUDIT_LOG_LEVEL,
    AUDIT_LOG_MAX_BYTES,
    AUDIT_LOG_PATH,
    ERROR_DETAIL_MAX_LENGTH,
)

logger = logging.getLogger(__name__)

# Ensure log directory exists (skip in test mode)
if not os.environ.get("SHOWCASE_TEST_MODE") and AUDIT_LOG_ENABLED:
    try:
        AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        logger.warning(f"Cannot create audit log directory {AUDIT_LOG_PATH.parent}, using console")


class AuditAction(str, Enum):
    """Audit action types for categorization."""

    # Section actions
    SECTION_CREATE = "section_create"
    SECTION_UPDATE = "section_update"
    SECTION_DELETE = "section_delete"
    SECTION_REORDER = "section_reorder"

    # Placed video actions
    SECTION_VIDEO_ADD = "section_video_add"
    SECTION_VIDEO_UPDATE = "section_video_update"
    SECTION_VIDEO_REMOVE = "section_video_remove"
    SECTION_VIDEO_REORDER = "section_video_reorder"

    # Maintenance
    VIDEO_USAGE_RECONCILE = "video_usage_reconcile"


def build_audit_entry(
    action: AuditAction,
    client_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    resource_name: Optional[str] = None,
    details: Optional[dict] = None,
    success: bool = True,
    error: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Assemble an audit entry, leaving out empty fields."""
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action.value,
        "success": success,
    }

    if request_id:
        entry["request_id"] = request_id
    if client_ip:
        entry["client_ip"] = client_ip
    if user_agent:
        entry["user_agent"] = truncate_string(user_agent, ERROR_DETAIL_MAX_LENGTH)
    if resource_type:
        entry["resource_type"] = resource_type
    if resource_id is not None:
        entry["resource_id"] = resource_id
    if resource_name:
        entry["resource_name"] = resource_name
    if details:
        entry["details"] = details
    if error:
        entry["error"] = truncate_string(error, 500)
    return entry


class AuditLogger:
    """
    Structured audit logger for administrative actions.

    Falls back to console logging if the log file cannot be opened.
    """

    def __init__(self):
        self.logger = logging.getLogger("showcase.audit")
        self.logger.setLevel(getattr(logging, AUDIT_LOG_LEVEL, logging.INFO))
        self.logger.propagate = False

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        formatter = logging.Formatter("%(message)s")  # Raw JSON output

        if AUDIT_LOG_ENABLED:
            try:
                file_handler = RotatingFileHandler(
                    AUDIT_LOG_PATH,
                    maxBytes=AUDIT_LOG_MAX_BYTES,
                    backupCount=AUDIT_LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)
            except (PermissionError, OSError) as e:
                logger.warning(f"Cannot open audit log {AUDIT_LOG_PATH} ({e}), using console")
                console_handler = logging.StreamHandler()
                console_handler.setFormatter(formatter)
                self.logger.addHandler(console_handler)
        else:
            self.logger.addHandler(logging.NullHandler())

    def log(self, action: AuditAction, **kwargs):
        """
        Log an audit event.

        Args:
            action: The type of action being performed
            **kwargs: Fields accepted by build_audit_entry (client_ip,
                resource_type, resource_id, details, success, error, ...)
        """
        if not AUDIT_LOG_ENABLED:
            return

        entry = build_audit_entry(action, **kwargs)
        try:
            self.logger.info(json.dumps(entry, default=str))
        except (TypeError, ValueError, OSError) as e:
            # An audit write failure must not fail the admin request
            logger.warning(f"Failed to write audit entry for {action.value}: {e}")


# Singleton instance for use across the application
audit_logger = AuditLogger()


def log_audit(
    action: AuditAction,
    client_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    resource_name: Optional[str] = None,
    details: Optional[dict] = None,
    success: bool = True,
    error: Optional[str] = None,
    request_id: Optional[str] = None,
):
    """
    Convenience function for logging audit events.

    Example usage:
        log_audit(
            AuditAction.SECTION_CREATE,
            client_ip=get_real_ip(request),
            resource_type="section",
            resource_id=section.id,
            resource_name=section.title,
            request_id=get_request_id(request),
        )
    """
    audit_logger.log(
        action,
        client_ip=client_ip,
        user_agent=user_agent,
        resource_type=resource_type,
        resource_id=resource_id,
        resource_name=resource_name,
        details=details,
        success=success,
        error=error,
        request_id=request_id,
    )
