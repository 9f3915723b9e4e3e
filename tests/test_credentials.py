"""Tests for encrypted storage credentials."""

import hashlib

import pytest
from sqlalchemy import select

from files_core.exceptions import EntityNotFound
from files_core.models.database import Credential
from files_core.services.credentials import StorageCredentials
from files_core.services.encryption import EncryptionService, derive_key


class TestEncryptionService:
    def test_round_trip(self):
        service = EncryptionService(derive_key("secret"))
        encrypted = service.encrypt("alice@example.com")

        assert EncryptionService.is_encrypted(encrypted)
        iv, tag, ciphertext = encrypted.split(":")
        assert len(bytes.fromhex(iv)) == 12
        assert len(bytes.fromhex(tag)) == 16
        assert service.decrypt(encrypted) == "alice@example.com"

    def test_random_iv_per_value(self):
        service = EncryptionService(derive_key("secret"))
        assert service.encrypt("same") != service.encrypt("same")

    def test_wrong_key(self):
        encrypted = EncryptionService(derive_key("one")).encrypt("text")
        with pytest.raises(ValueError):
            EncryptionService(derive_key("two")).decrypt(encrypted)

    def test_bad_format(self):
        service = EncryptionService(derive_key("secret"))
        with pytest.raises(ValueError):
            service.decrypt("not-encrypted")

    def test_hex_key_used_directly(self):
        hex_key = "ab" * 32
        assert derive_key(hex_key) == bytes.fromhex(hex_key)
        assert derive_key("plain text") == hashlib.sha256(b"plain text").digest()

    def test_fallback_key_warns(self, caplog):
        key = derive_key(None, "app-secret")
        assert key == hashlib.sha256(b"app-secretstorage-encryption").digest()
        assert "ENCRYPTION_SECRET_KEY is not set" in caplog.text

    def test_key_length_checked(self):
        with pytest.raises(ValueError):
            EncryptionService(b"short")


class TestCredentialStore:
    async def test_round_trip(self, container, alice):
        view = await container.credentials.upsert(alice.id, "alice-key", "alice-secret")
        assert view.email == "alice-key"
        assert not hasattr(view, "password")

        fetched = await container.credentials.get(alice.id)
        assert fetched.email == "alice-key"
        assert fetched.is_active

    async def test_values_are_encrypted_at_rest(self, container, alice):
        await container.credentials.upsert(alice.id, "alice-key", "alice-secret")
        async with container.session_factory() as db:
            record = (await db.execute(select(Credential))).scalar_one()
        assert "alice-key" not in record.email
        assert "alice-secret" not in record.password
        assert record.email.count(":") == 2

    async def test_upsert_replaces(self, container, alice):
        await container.credentials.upsert(alice.id, "old", "old-secret")
        await container.credentials.upsert(alice.id, "new", "new-secret")

        assert await container.credentials.get_credentials_for_use(alice.id) == StorageCredentials("new", "new-secret")
        async with container.session_factory() as db:
            records = (await db.execute(select(Credential))).scalars().all()
        assert len(records) == 1

    async def test_inactive_not_used(self, container, alice):
        await container.credentials.upsert(alice.id, "key", "secret")
        await container.credentials.toggle_active(alice.id, False)

        assert await container.credentials.get_credentials_for_use(alice.id) is None
        assert not await container.credentials.has_active(alice.id)
        assert (await container.credentials.get(alice.id)).is_active is False

    async def test_corrupted_record_reads_as_absent(self, container, alice):
        await container.credentials.upsert(alice.id, "key", "secret")
        async with container.session_factory() as db:
            record = (await db.execute(select(Credential))).scalar_one()
            record.email = "00:11:22"
            await db.commit()

        assert await container.credentials.get(alice.id) is None
        assert await container.credentials.get_credentials_for_use(alice.id) is None

    async def test_delete(self, container, alice):
        await container.credentials.upsert(alice.id, "key", "secret")
        await container.credentials.delete(alice.id)
        assert await container.credentials.get(alice.id) is None

        with pytest.raises(EntityNotFound):
            await container.credentials.delete(alice.id)
        with pytest.raises(EntityNotFound):
            await container.credentials.toggle_active(alice.id, True)

    async def test_actions_are_logged(self, container, alice):
        await container.credentials.upsert(alice.id, "key", "secret")
        await container.credentials.toggle_active(alice.id, False)
        await container.credentials.delete(alice.id)

        actions = [log.action for log in await container.activity.get_user_logs(alice.id)]
        assert {"CREDENTIAL_UPSERT", "CREDENTIAL_TOGGLE", "CREDENTIAL_DELETE"} <= set(actions)
        for log in await container.activity.get_user_logs(alice.id):
            assert "secret" not in (log.details or "")
