# LocalPass - Main Package
#
# Single-user, fully offline password vault: an encrypted vault blob, a
# merge engine for combining copies from different devices, and a local
# API/CLI around them.

__version__ = "1.0.0"
__author__ = "LocalPass Team"
__description__ = "Offline password vault with conflict-aware merging"

from .core import EventSeverity, EventType, get_audit_logger, get_settings
from .vault import SessionLockManager, VaultStore, VaultTransfer

__all__ = [
    "__version__",
    "VaultStore",
    "VaultTransfer",
    "SessionLockManager",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "get_settings",
]
