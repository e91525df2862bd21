# LocalPass - Audit Logging
#
# Append-only audit trail for vault lifecycle events (create, unlock, lock,
# import, conflict handling). Entries are JSON lines rendered by structlog
# and written to one file per day.
#
# Never pass passwords, keys or decrypted account data into an event.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of events recorded in the audit log."""

    # Vault lifecycle
    VAULT_CREATED = "vault.created"
    VAULT_UNLOCKED = "vault.unlocked"
    VAULT_UNLOCK_FAILED = "vault.unlock.failed"
    VAULT_LOCKED = "vault.locked"
    VAULT_AUTO_LOCKED = "vault.auto_locked"
    VAULT_SAVED = "vault.saved"
    VAULT_RESET = "vault.reset"

    # Portability
    VAULT_EXPORTED = "vault.exported"
    VAULT_IMPORTED = "vault.imported"
    VAULT_IMPORT_FAILED = "vault.import.failed"

    # Merge engine
    CONFLICT_DETECTED = "vault.conflict.detected"
    CONFLICT_RESOLVED = "vault.conflict.resolved"

    # Account edits
    ACCOUNT_ADDED = "vault.account.added"
    ACCOUNT_UPDATED = "vault.account.updated"
    ACCOUNT_DELETED = "vault.account.deleted"

    # System
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """Severity levels for audit events.

    - INFO: normal activity
    - ALERT: something the user should know about (failed unlock, conflict)
    - CRITICAL: data loss or an unexpected failure
    """

    INFO = "info"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging through structlog
    - Automatic timestamp and event ID
    - OS user / hostname context on every entry
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: configured log dir)
        """
        if log_dir is None:
            from .config import get_settings

            log_dir = get_settings().log_dir
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._file_handler = self._setup_file_handler()
        self.logger = structlog.get_logger("localpass.audit")

    def _setup_file_handler(self) -> logging.Handler:
        """Attach a file handler writing today's log file."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        # structlog already rendered the JSON line
        file_handler.setFormatter(logging.Formatter("%(message)s"))

        audit_logger = logging.getLogger("localpass.audit")
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        return file_handler

    def close(self) -> None:
        """Detach and close the file handler."""
        logging.getLogger("localpass.audit").removeHandler(self._file_handler)
        self._file_handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a vault event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional non-secret details

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())
        self.logger.info(
            "vault_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
            user_context=self._get_default_user_context(),
        )
        return event_id

    def _get_default_user_context(self) -> Dict[str, Any]:
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def log_vault_event(
    event_type: EventType,
    message: str,
    severity: EventSeverity = EventSeverity.INFO,
    details: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Convenience function for logging vault events.

    Usage:
        log_vault_event(
            EventType.VAULT_LOCKED,
            "Vault locked after inactivity",
            details={"timeout_seconds": 600},
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, details)
