"""Tests for vault export / import.

Covers: export package shape, payload validation before decryption,
adoption into an empty store, merging into an unlocked store and the
typed ImportResult.
"""

import json

import pytest


def _other_store(tmp_path, store, name="other.json"):
    from localpass.vault import VaultStore

    return VaultStore(tmp_path / name, kdf_iterations=store.kdf_iterations)


# ── Payload parsing ─────────────────────────────────────────────────


class TestParseImportPayload:
    @pytest.mark.asyncio
    async def test_accepts_export_package(self, store):
        from localpass.vault import VaultTransfer
        from localpass.vault.transfer import parse_import_payload

        await store.initialize("master-pass")
        text = VaultTransfer(store).export_json()
        blob = parse_import_payload(text)
        assert blob == store.load_blob()

    @pytest.mark.asyncio
    async def test_accepts_bare_blob(self, store, vault_path):
        from localpass.vault.transfer import parse_import_payload

        await store.initialize("master-pass")
        blob = parse_import_payload(vault_path.read_bytes())
        assert blob == store.load_blob()

    @pytest.mark.asyncio
    async def test_accepts_byte_order_mark(self, store, vault_path):
        from localpass.vault.transfer import parse_import_payload

        await store.initialize("master-pass")
        text = "\ufeff" + vault_path.read_text(encoding="utf-8") + "\n"
        assert parse_import_payload(text) == store.load_blob()

    @pytest.mark.parametrize(
        "payload",
        [
            "",
            "   ",
            "not json",
            "[1, 2, 3]",
            '"a string"',
            "{}",
            '{"salt": "AAAAAAAAAAAAAAAAAAAAAA==", "iv": "AAAAAAAAAAAAAAAA"}',
            '{"vaultData": {}}',
            '{"vaultData": "oops"}',
        ],
    )
    def test_rejects_malformed(self, payload):
        from localpass.vault import ImportFormatError
        from localpass.vault.transfer import parse_import_payload

        with pytest.raises(ImportFormatError):
            parse_import_payload(payload)

    def test_rejects_bad_base64(self):
        from localpass.vault import ImportFormatError
        from localpass.vault.transfer import parse_import_payload

        payload = json.dumps({"salt": "!!!", "iv": "!!!", "data": "!!!"})
        with pytest.raises(ImportFormatError):
            parse_import_payload(payload)

    def test_rejects_non_utf8_bytes(self):
        from localpass.vault import ImportFormatError
        from localpass.vault.transfer import parse_import_payload

        with pytest.raises(ImportFormatError):
            parse_import_payload(b"\xff\xfe\xfd")

    def test_error_names_missing_field(self):
        from localpass.vault import ImportFormatError
        from localpass.vault.transfer import parse_import_payload

        payload = json.dumps({"salt": "AAAAAAAAAAAAAAAAAAAAAA==", "iv": "AAAAAAAAAAAAAAAA"})
        with pytest.raises(ImportFormatError, match="data"):
            parse_import_payload(payload)


# ── Export ──────────────────────────────────────────────────────────


class TestExport:
    def test_export_without_vault(self, store):
        from localpass.vault import NoPersistedVault, VaultTransfer

        with pytest.raises(NoPersistedVault):
            VaultTransfer(store).export_package()

    @pytest.mark.asyncio
    async def test_export_package_fields(self, store):
        from localpass.vault import VaultTransfer

        vault = await store.initialize("master-pass")
        data = json.loads(VaultTransfer(store).export_json())
        assert data["exportVersion"] == "1.0"
        assert data["deviceId"] == vault.device_id
        assert data["exportedAt"]
        assert set(data["vaultData"]) == {"salt", "iv", "data", "vaultVersion"}

    @pytest.mark.asyncio
    async def test_export_requires_unlocked_vault(self, store):
        from localpass.vault import VaultLocked, VaultTransfer

        await store.initialize("master-pass")
        store.lock()
        with pytest.raises(VaultLocked):
            VaultTransfer(store).export_package()

    @pytest.mark.asyncio
    async def test_export_contains_no_plaintext(self, store):
        from localpass.vault import VaultTransfer

        await store.initialize("master-pass")
        await store.add_account("example.com", "alice", "very-secret-value")
        text = VaultTransfer(store).export_json()
        assert "very-secret-value" not in text
        assert "example.com" not in text


# ── Import ──────────────────────────────────────────────────────────


class TestImport:
    @pytest.mark.asyncio
    async def test_roundtrip_into_fresh_store(self, store, tmp_path):
        from localpass.vault import VaultState, VaultTransfer

        await store.initialize("master-pass")
        await store.add_account("example.com", "alice", "pw1")
        await store.add_account("github.com", "bob", "pw2", notes="work")
        text = VaultTransfer(store).export_json()

        target = _other_store(tmp_path, store)
        vault = await VaultTransfer(target).import_package(text, "master-pass")

        def _as_set(accounts):
            return {(a.id, a.site, a.user, a.password, a.notes, a.updated_at) for a in accounts}

        assert _as_set(vault.accounts) == _as_set(store.vault.accounts)
        assert target.state is VaultState.UNLOCKED

        target.lock()
        assert await target.unlock("master-pass") is True
        assert _as_set(target.vault.accounts) == _as_set(store.vault.accounts)

    @pytest.mark.asyncio
    async def test_missing_data_fails_before_decrypt(self, store, tmp_path, monkeypatch):
        from localpass.vault import EncryptionService, ImportFormatError, VaultTransfer

        await store.initialize("master-pass")
        package = json.loads(VaultTransfer(store).export_json())
        del package["vaultData"]["data"]

        def _no_decrypt(*args, **kwargs):
            raise AssertionError("decrypt must not be called")

        monkeypatch.setattr(EncryptionService, "decrypt", staticmethod(_no_decrypt))
        monkeypatch.setattr(EncryptionService, "derive_key", staticmethod(_no_decrypt))

        target = _other_store(tmp_path, store)
        with pytest.raises(ImportFormatError):
            await VaultTransfer(target).import_package(json.dumps(package), "master-pass")

    @pytest.mark.asyncio
    async def test_wrong_password(self, store, tmp_path):
        from localpass.vault import ImportWrongPassword, VaultState, VaultTransfer

        await store.initialize("master-pass")
        text = VaultTransfer(store).export_json()

        target = _other_store(tmp_path, store)
        with pytest.raises(ImportWrongPassword):
            await VaultTransfer(target).import_package(text, "wrong-pass")
        assert target.state is VaultState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_import_bare_blob(self, store, vault_path, tmp_path):
        from localpass.vault import VaultTransfer

        await store.initialize("master-pass")
        await store.add_account("example.com", "alice", "pw1")

        target = _other_store(tmp_path, store)
        vault = await VaultTransfer(target).import_package(
            vault_path.read_bytes(), "master-pass"
        )
        assert [a.site for a in vault.accounts] == ["example.com"]

    @pytest.mark.asyncio
    async def test_import_into_locked_store_is_refused(self, store, tmp_path):
        from localpass.vault import VaultLocked, VaultTransfer

        await store.initialize("master-pass")
        text = VaultTransfer(store).export_json()

        target = _other_store(tmp_path, store)
        await target.initialize("target-pass")
        target.lock()
        before = target.load_blob()

        with pytest.raises(VaultLocked):
            await VaultTransfer(target).import_package(text, "master-pass")
        assert target.load_blob() == before

    @pytest.mark.asyncio
    async def test_auto_lock_during_decrypt_keeps_local_vault(self, store, tmp_path):
        from localpass.vault import VaultLocked, VaultTransfer

        await store.initialize("source-pass")
        await store.add_account("example.com", "alice", "imported-pw")
        text = VaultTransfer(store).export_json()

        target = _other_store(tmp_path, store)
        await target.initialize("target-pass")
        await target.add_account("local-only.com", "carol", "x")

        decrypt = target.decrypt_foreign

        async def _decrypt_then_lock(blob, password):
            plaintext = await decrypt(blob, password)
            target.lock(reason="inactivity")
            return plaintext

        target.decrypt_foreign = _decrypt_then_lock
        with pytest.raises(VaultLocked):
            await VaultTransfer(target).import_package(text, "source-pass")

        assert await target.unlock("source-pass") is False
        assert await target.unlock("target-pass") is True
        assert [a.site for a in target.vault.accounts] == ["local-only.com"]

    @pytest.mark.asyncio
    async def test_merge_into_unlocked_store(self, store, tmp_path):
        from localpass.vault import VaultTransfer

        await store.initialize("source-pass")
        await store.add_account("example.com", "alice", "imported-pw")
        await store.add_account("github.com", "bob", "shared")
        text = VaultTransfer(store).export_json()

        target = _other_store(tmp_path, store)
        await target.initialize("target-pass")
        await target.add_account("example.com", "alice", "local-pw")
        await target.add_account("local-only.com", "carol", "x")

        vault = await VaultTransfer(target).import_package(text, "source-pass")

        assert sorted(a.site for a in vault.accounts) == [
            "example.com", "github.com", "local-only.com",
        ]
        assert len(vault.conflicts) == 1
        conflict = vault.conflicts[0]
        assert conflict.version_local.password == "local-pw"
        assert conflict.version_imported.password == "imported-pw"

        # Still sealed under the local master password
        target.lock()
        assert await target.unlock("source-pass") is False
        assert await target.unlock("target-pass") is True
        assert len(target.vault.conflicts) == 1

    @pytest.mark.asyncio
    async def test_importing_twice_does_not_duplicate_conflicts(self, store, tmp_path):
        from localpass.vault import VaultTransfer

        await store.initialize("source-pass")
        await store.add_account("example.com", "alice", "imported-pw")
        text = VaultTransfer(store).export_json()

        target = _other_store(tmp_path, store)
        await target.initialize("target-pass")
        await target.add_account("example.com", "alice", "local-pw")

        transfer = VaultTransfer(target)
        await transfer.import_package(text, "source-pass")
        vault = await transfer.import_package(text, "source-pass")
        assert len(vault.conflicts) == 1
        assert len(vault.accounts) == 1

    @pytest.mark.asyncio
    async def test_imported_conflicts_are_carried_over(self, store, tmp_path):
        from localpass.vault import VaultTransfer

        await store.initialize("source-pass")
        await store.add_account("example.com", "alice", "a")
        await store.add_account("example.com", "alice", "b")
        assert len(store.vault.conflicts) == 1
        text = VaultTransfer(store).export_json()

        target = _other_store(tmp_path, store)
        await target.initialize("target-pass")
        vault = await VaultTransfer(target).import_package(text, "source-pass")
        assert len(vault.conflicts) == 1
        assert vault.conflicts[0].conflict_id == store.vault.conflicts[0].conflict_id

    @pytest.mark.asyncio
    async def test_undecodable_plaintext_is_format_error(self, store, tmp_path):
        from localpass.vault import EncryptionService, ImportFormatError, VaultTransfer
        from localpass.vault.schemas import VaultEncryptedFile

        salt = EncryptionService.generate_salt()
        key = EncryptionService.derive_key("pw", salt, store.kdf_iterations)
        ciphertext, nonce = EncryptionService.encrypt(b"not json at all", key)
        blob = VaultEncryptedFile(
            salt=EncryptionService.encode_for_storage(salt),
            iv=EncryptionService.encode_for_storage(nonce),
            data=EncryptionService.encode_for_storage(ciphertext),
        )

        with pytest.raises(ImportFormatError):
            await VaultTransfer(store).import_package(json.dumps(blob.to_dict()), "pw")

    @pytest.mark.asyncio
    async def test_lenient_import_skips_garbled_entries(self, store):
        from localpass.vault import EncryptionService, VaultTransfer
        from localpass.vault.schemas import VaultEncryptedFile

        plaintext = json.dumps({
            "accounts": [
                {
                    "id": "1",
                    "site": "example.com",
                    "user": "alice",
                    "password": "pw",
                    "createdAt": "2024-01-01T00:00:00.000Z",
                    "updatedAt": "2024-01-01T00:00:00.000Z",
                },
                {"site": "broken.com"},
            ],
            "conflicts": "garbled",
        }).encode("utf-8")
        salt = EncryptionService.generate_salt()
        key = EncryptionService.derive_key("pw", salt, store.kdf_iterations)
        ciphertext, nonce = EncryptionService.encrypt(plaintext, key)
        blob = VaultEncryptedFile(
            salt=EncryptionService.encode_for_storage(salt),
            iv=EncryptionService.encode_for_storage(nonce),
            data=EncryptionService.encode_for_storage(ciphertext),
        )

        vault = await VaultTransfer(store).import_package(json.dumps(blob.to_dict()), "pw")
        assert [a.site for a in vault.accounts] == ["example.com"]
        assert vault.conflicts == []
        assert vault.device_id


class TestTryImport:
    @pytest.mark.asyncio
    async def test_success(self, store, tmp_path):
        from localpass.vault import VaultTransfer

        await store.initialize("master-pass")
        text = VaultTransfer(store).export_json()

        result = await VaultTransfer(_other_store(tmp_path, store)).try_import(
            text, "master-pass"
        )
        assert result.ok
        assert result.failure is None
        assert result.vault is not None

    @pytest.mark.asyncio
    async def test_wrong_password_kind(self, store, tmp_path):
        from localpass.vault import FailureKind, VaultTransfer

        await store.initialize("master-pass")
        text = VaultTransfer(store).export_json()

        result = await VaultTransfer(_other_store(tmp_path, store)).try_import(text, "nope")
        assert not result.ok
        assert result.failure is FailureKind.IMPORT_WRONG_PASSWORD
        assert result.vault is None

    @pytest.mark.asyncio
    async def test_format_error_kind(self, store):
        from localpass.vault import FailureKind, VaultTransfer

        result = await VaultTransfer(store).try_import('{"salt": "x"}', "pw")
        assert not result.ok
        assert result.failure is FailureKind.IMPORT_FORMAT_ERROR
        assert result.message
