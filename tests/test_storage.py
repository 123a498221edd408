"""Tests for record encryption and the durable key-value stores."""
import pytest
from cryptography.fernet import InvalidToken

from storefront_session.storage import EncryptedFileStore, MemoryStore, StoreCrypto


class TestStoreCrypto:
    def test_encrypt_decrypt_roundtrip(self, tmp_path):
        crypto = StoreCrypto(key_path=tmp_path / "test.key")
        data = {"sessionId": "guest_1_abc", "cart": [{"productId": "P1", "quantity": 2}]}
        encrypted = crypto.encrypt(data)
        assert b"guest_1_abc" not in encrypted
        assert crypto.decrypt(encrypted) == data

    def test_key_created_on_first_use(self, tmp_path):
        key_path = tmp_path / "test.key"
        assert not key_path.exists()
        StoreCrypto(key_path=key_path).encrypt({"test": True})
        assert key_path.exists()

    def test_key_reused_across_instances(self, tmp_path):
        key_path = tmp_path / "test.key"
        encrypted = StoreCrypto(key_path=key_path).encrypt("token-value")
        assert StoreCrypto(key_path=key_path).decrypt(encrypted) == "token-value"

    def test_tampered_data_raises(self, tmp_path):
        crypto = StoreCrypto(key_path=tmp_path / "test.key")
        encrypted = crypto.encrypt({"secret": "data"})
        tampered = encrypted[:-5] + b"XXXXX"
        with pytest.raises(InvalidToken):
            crypto.decrypt(tampered)


class TestEncryptedFileStore:
    def test_set_get_remove(self, tmp_path):
        store = EncryptedFileStore(tmp_path / "state")
        store.set("authToken", "abc")
        assert store.get("authToken") == "abc"
        assert (tmp_path / "state" / "authToken.enc").exists()
        store.remove("authToken")
        assert store.get("authToken") is None

    def test_missing_key_is_none(self, tmp_path):
        assert EncryptedFileStore(tmp_path).get("user") is None

    def test_remove_missing_key_is_noop(self, tmp_path):
        EncryptedFileStore(tmp_path).remove("user")

    def test_survives_new_instance(self, tmp_path):
        EncryptedFileStore(tmp_path).set("user", {"id": "u1"})
        assert EncryptedFileStore(tmp_path).get("user") == {"id": "u1"}

    def test_unreadable_record_is_discarded(self, tmp_path):
        store = EncryptedFileStore(tmp_path)
        store.set("user", {"id": "u1"})
        (tmp_path / "user.enc").write_bytes(b"garbage")
        assert store.get("user") is None

    def test_rejects_path_like_keys(self, tmp_path):
        store = EncryptedFileStore(tmp_path)
        with pytest.raises(ValueError):
            store.set("../escape", 1)
        with pytest.raises(ValueError):
            store.get("")


class TestMemoryStore:
    def test_values_are_copies(self):
        store = MemoryStore()
        value = {"cart": []}
        store.set("guest_session", value)
        value["cart"].append("mutated")
        assert store.get("guest_session") == {"cart": []}
