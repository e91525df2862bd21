# LocalPass - Core Module
#
# Shared infrastructure used by the vault engine and its surfaces:
# - Audit logging
# - Configuration

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_vault_event,
)
from .config import VaultSettings, get_settings, set_settings

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_vault_event",
    # Configuration
    "VaultSettings",
    "get_settings",
    "set_settings",
]
