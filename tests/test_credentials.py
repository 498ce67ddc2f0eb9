import hashlib
import hmac

import pytest

from bucketgate import credentials
from bucketgate.buckets import BucketStore
from bucketgate.credentials import CredentialStore, generate_access_key, hash_secret, verify_secret
from bucketgate.roles import Role


def test_hash_is_deterministic_hex_sha256():
    assert hash_secret("abc") == hashlib.sha256(b"abc").hexdigest()
    assert hash_secret("abc") == hash_secret("abc")


def test_verify_secret():
    stored = hash_secret("right")
    assert verify_secret("right", stored)
    assert not verify_secret("wrong", stored)
    assert not verify_secret("", stored)


def test_verify_secret_uses_constant_time_compare(monkeypatch):
    seen = []
    real = hmac.compare_digest

    def spy(a, b):
        seen.append((a, b))
        return real(a, b)

    monkeypatch.setattr(credentials.hmac, "compare_digest", spy)
    verify_secret("x", hash_secret("y"))
    assert len(seen) == 1


def test_generated_keys_are_unique_and_never_reserved():
    pairs = {generate_access_key() for _ in range(50)}
    assert len(pairs) == 50
    assert all(key_id != "admin" and len(secret) >= 40 for key_id, secret in pairs)


@pytest.fixture
def bucket_id(db):
    bucket, _ = BucketStore(db).create_with_keys("creds")
    return bucket.id


class TestCredentialStore:
    def test_create_stores_only_hash(self, db, bucket_id):
        store = CredentialStore(db)
        store.delete_by_role(bucket_id, Role.READ_ONLY)
        key, secret = store.create(bucket_id, Role.READ_ONLY)
        db.commit()

        loaded = store.get_by_key_id(key.key_id)
        assert loaded.secret_hash == hash_secret(secret)
        assert loaded.secret_hash != secret
        assert loaded.role is Role.READ_ONLY

    def test_lookup_unknown_key(self, db, bucket_id):
        assert CredentialStore(db).get_by_key_id("nope") is None

    def test_list_by_bucket_in_role_order(self, db, bucket_id):
        roles = [k.role for k in CredentialStore(db).list_by_bucket(bucket_id)]
        assert roles == [Role.READ_ONLY, Role.READ_WRITE, Role.ALL]

    def test_delete_by_role(self, db, bucket_id):
        store = CredentialStore(db)
        assert store.delete_by_role(bucket_id, Role.READ_WRITE) == 1
        db.commit()
        assert [k.role for k in store.list_by_bucket(bucket_id)] == [Role.READ_ONLY, Role.ALL]
        assert store.delete_by_role(bucket_id, Role.READ_WRITE) == 0

    def test_recreate_replaces_the_key_for_a_role(self, db, bucket_id):
        store = CredentialStore(db)
        old = next(k for k in store.list_by_bucket(bucket_id) if k.role is Role.ALL).key_id

        new, secret = store.recreate(bucket_id, Role.ALL)
        db.commit()

        assert store.get_by_key_id(old) is None
        assert verify_secret(secret, store.get_by_key_id(new.key_id).secret_hash)
        assert len(store.list_by_bucket(bucket_id)) == 3
