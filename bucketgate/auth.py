import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, Header, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .buckets import BucketStore
from .credentials import SUPERUSER_KEY_ID, CredentialStore, constant_time_equals, verify_secret
from .db import get_db
from .errors import (
    BucketScopeMismatch,
    CredentialError,
    CredentialInvalid,
    CredentialMalformed,
    CredentialMissing,
    GatewayError,
    InsufficientRole,
    StorageFailure,
)
from .roles import AuthLevel, Role, admits

logger = logging.getLogger(__name__)

AUTH_SCHEME = "Bearer"

@dataclass(frozen=True)
class Identity:
    key_id: str
    bucket_id: Optional[int]
    role: Role

    @property
    def all_buckets(self) -> bool:
        return self.bucket_id is None

def parse_credentials(header: Optional[str]) -> Tuple[str, str]:
    if not header:
        raise CredentialMissing("missing authorization header")

    scheme, _, credentials = header.partition(" ")
    if scheme != AUTH_SCHEME or not credentials:
        raise CredentialMalformed("invalid format - expected 'Bearer <key_id>:<secret>'")

    key_id, sep, secret = credentials.partition(":")
    if not sep or not key_id:
        raise CredentialMalformed("invalid credentials format - expected 'key_id:secret'")
    return key_id, secret

def claimed_key_id(header: Optional[str]) -> Optional[str]:
    try:
        return parse_credentials(header)[0]
    except CredentialError:
        return None

def _authenticate_superuser(secret: str, admin_password: Optional[str]) -> Identity:
    if not admin_password:
        raise CredentialInvalid("admin authentication not configured")
    if not constant_time_equals(secret, admin_password):
        raise CredentialInvalid("invalid admin password")
    return Identity(key_id=SUPERUSER_KEY_ID, bucket_id=None, role=Role.ALL)

def authenticate(
    db: Session,
    header: Optional[str],
    required: AuthLevel,
    admin_password: Optional[str] = None,
    bucket_name: Optional[str] = None,
) -> Identity:
    key_id, secret = parse_credentials(header)

    if key_id == SUPERUSER_KEY_ID:
        # role "all" and no bucket scope: every level and bucket is admitted
        return _authenticate_superuser(secret, admin_password)

    try:
        access_key = CredentialStore(db).get_by_key_id(key_id)
    except SQLAlchemyError as exc:
        raise StorageFailure(diagnostic="database error") from exc
    if access_key is None:
        raise CredentialInvalid("key_id not found")
    if not verify_secret(secret, access_key.secret_hash):
        raise CredentialInvalid("secret mismatch")

    if not admits(access_key.role, required):
        raise InsufficientRole(diagnostic=f"role {access_key.role.value} below required level {required.name}")

    if bucket_name:
        try:
            bucket = BucketStore(db).get_by_name(bucket_name)
        except SQLAlchemyError as exc:
            raise StorageFailure(diagnostic="database error") from exc
        if bucket.id != access_key.bucket_id:
            raise BucketScopeMismatch(diagnostic="key is scoped to a different bucket")

    return Identity(key_id=access_key.key_id, bucket_id=access_key.bucket_id, role=access_key.role)

class AuthGate:
    """FastAPI dependency enforcing ``level`` on the route it guards.

    The bucket named by the route's ``bucket_name`` path parameter, when there
    is one, must be the bucket the key belongs to.
    """

    def __init__(self, level: AuthLevel):
        self.level = level

    def __call__(
        self,
        request: Request,
        authorization: Optional[str] = Header(default=None),
        db: Session = Depends(get_db),
    ) -> Optional[Identity]:
        if self.level == AuthLevel.NONE:
            return None

        bucket_name = request.path_params.get("bucket_name")
        try:
            identity = authenticate(
                db,
                authorization,
                self.level,
                admin_password=request.app.state.settings.admin_password,
                bucket_name=bucket_name,
            )
        except GatewayError as exc:
            key_id = claimed_key_id(authorization)
            request.state.key_id = key_id
            logger.info(
                "Denied %s %s for key_id=%s: %s (%s)",
                request.method, request.url.path, key_id, type(exc).__name__, exc.diagnostic or exc.message,
                extra={"key_id": key_id},
            )
            raise

        request.state.key_id = identity.key_id
        return identity

def require(level: AuthLevel) -> AuthGate:
    return AuthGate(level)

def require_superuser(identity: Identity) -> None:
    if not identity.all_buckets:
        raise BucketScopeMismatch(diagnostic="route requires the superuser")
