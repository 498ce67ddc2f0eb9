import hashlib
import hmac
import secrets
from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .models import AccessKey
from .roles import Role

SUPERUSER_KEY_ID = "admin"

def generate_access_key() -> Tuple[str, str]:
    while True:
        key_id = secrets.token_urlsafe(20)
        if key_id != SUPERUSER_KEY_ID:
            break
    return key_id, secrets.token_urlsafe(32)

def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()

def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))

def verify_secret(secret: str, stored_hash: str) -> bool:
    return constant_time_equals(hash_secret(secret), stored_hash)

class CredentialStore:
    """Persistence for access keys. Callers own the transaction boundary."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_key_id(self, key_id: str) -> Optional[AccessKey]:
        return self.db.execute(select(AccessKey).where(AccessKey.key_id == key_id)).scalar_one_or_none()

    def create(self, bucket_id: int, role: Role) -> Tuple[AccessKey, str]:
        key_id, secret = generate_access_key()
        key = AccessKey(bucket_id=bucket_id, key_id=key_id, secret_hash=hash_secret(secret), role=role)
        self.db.add(key)
        self.db.flush()
        return key, secret

    def delete_by_role(self, bucket_id: int, role: Role) -> int:
        result = self.db.execute(
            delete(AccessKey).where(AccessKey.bucket_id == bucket_id, AccessKey.role == role)
        )
        return result.rowcount

    def list_by_bucket(self, bucket_id: int) -> List[AccessKey]:
        keys = self.db.execute(select(AccessKey).where(AccessKey.bucket_id == bucket_id)).scalars().all()
        return sorted(keys, key=lambda k: k.role.level)

    def recreate(self, bucket_id: int, role: Role) -> Tuple[AccessKey, str]:
        self.delete_by_role(bucket_id, role)
        return self.create(bucket_id, role)
