"""
Shared pytest fixtures for the LocalPass test suite.

Autouse fixtures below isolate tests from live application data:
  - Settings     -> temp vault path, temp log dir, fast KDF
  - Audit logger -> temp directory (prevents test events in the real log)
"""

import pytest

TEST_KDF_ITERATIONS = 1_000


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path):
    """Point the cached settings at tmp_path and use a cheap KDF."""
    import localpass.core.config as config_mod

    old_settings = config_mod._settings
    config_mod.set_settings(
        config_mod.VaultSettings(
            vault_path=tmp_path / "data" / "vault.json",
            log_dir=tmp_path / "audit_logs",
            kdf_iterations=TEST_KDF_ITERATIONS,
        )
    )

    yield

    config_mod.set_settings(old_settings)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(_isolate_settings):
    """Give every test a fresh AuditLogger writing under tmp_path.

    The singleton is reset so the next get_audit_logger() call creates a
    logger from the (temporary) settings above.
    """
    import localpass.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    yield

    if audit_mod._audit_logger is not None:
        audit_mod._audit_logger.close()
    audit_mod._audit_logger = old_logger


@pytest.fixture
def vault_path(tmp_path):
    return tmp_path / "vault.json"


@pytest.fixture
def store(vault_path):
    """A fresh, uninitialized VaultStore with a fast KDF."""
    from localpass.vault import VaultStore

    return VaultStore(vault_path, kdf_iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def make_account():
    """Factory for AccountEntry objects with an optional fixed timestamp."""
    from localpass.vault import AccountEntry

    def _make(site="example.com", user="alice", password="pw", updated_at=None, **kwargs):
        account = AccountEntry(site=site, user=user, password=password, **kwargs)
        if updated_at is not None:
            account.updated_at = updated_at
            account.created_at = updated_at
        return account

    return _make
