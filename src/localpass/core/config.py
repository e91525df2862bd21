# LocalPass - Runtime Configuration
#
# Settings come from environment variables, optionally seeded from a .env
# file in the working directory. Defaults keep everything under ./data and
# ./audit_logs so a fresh checkout runs without any setup.

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_VAULT_PATH = "data/vault.json"
DEFAULT_LOG_DIR = "audit_logs"
DEFAULT_AUTO_LOCK_MINUTES = 10
DEFAULT_KDF_ITERATIONS = 210_000

ENV_VAULT_PATH = "LOCALPASS_VAULT_PATH"
ENV_LOG_DIR = "LOCALPASS_LOG_DIR"
ENV_AUTO_LOCK_MINUTES = "LOCALPASS_AUTO_LOCK_MINUTES"
ENV_KDF_ITERATIONS = "LOCALPASS_KDF_ITERATIONS"


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


@dataclass(frozen=True)
class VaultSettings:
    """Resolved settings for one LocalPass installation.

    Attributes:
        vault_path: Location of the single persisted vault blob.
        log_dir: Directory for the daily audit log files.
        auto_lock_minutes: Inactivity window before the session locks.
        kdf_iterations: PBKDF2 rounds. Lowering this is only meant for tests;
            blobs written with a different count will not unlock.
    """

    vault_path: Path = Path(DEFAULT_VAULT_PATH)
    log_dir: Path = Path(DEFAULT_LOG_DIR)
    auto_lock_minutes: int = DEFAULT_AUTO_LOCK_MINUTES
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS

    @property
    def auto_lock_seconds(self) -> float:
        return self.auto_lock_minutes * 60.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "VaultSettings":
        """Build settings from a mapping (defaults to ``os.environ``)."""
        if env is None:
            env = os.environ
        return cls(
            vault_path=Path(env.get(ENV_VAULT_PATH) or DEFAULT_VAULT_PATH),
            log_dir=Path(env.get(ENV_LOG_DIR) or DEFAULT_LOG_DIR),
            auto_lock_minutes=_positive_int(
                env, ENV_AUTO_LOCK_MINUTES, DEFAULT_AUTO_LOCK_MINUTES
            ),
            kdf_iterations=_positive_int(
                env, ENV_KDF_ITERATIONS, DEFAULT_KDF_ITERATIONS
            ),
        )


# ── Singleton ────────────────────────────────────────────────────────

_settings: Optional[VaultSettings] = None


def get_settings() -> VaultSettings:
    """Load settings once per process (reads .env on first call)."""
    global _settings
    if _settings is None:
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
        _settings = VaultSettings.from_env()
    return _settings


def set_settings(settings: Optional[VaultSettings]) -> None:
    """Replace the cached settings (for testing)."""
    global _settings
    _settings = settings
