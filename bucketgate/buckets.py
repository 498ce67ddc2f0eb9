import logging
from typing import List, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .credentials import CredentialStore
from .errors import AccessKeyNotFound, BucketAlreadyExists, BucketNotEmpty, BucketNotFound, Conflict, StorageFailure
from .models import AccessKey, Bucket
from .roles import Role

logger = logging.getLogger(__name__)

class BucketStore:
    def __init__(self, db: Session):
        self.db = db
        self.credentials = CredentialStore(db)

    def get_by_name(self, name: str) -> Bucket:
        bucket = self.db.execute(select(Bucket).where(Bucket.name == name)).scalar_one_or_none()
        if bucket is None:
            raise BucketNotFound()
        return bucket

    def list_all(self) -> List[Bucket]:
        return list(self.db.execute(select(Bucket).order_by(Bucket.created_at.desc(), Bucket.id.desc())).scalars())

    def create_with_keys(self, name: str) -> Tuple[Bucket, List[Tuple[AccessKey, str]]]:
        """Create a bucket and one access key per role in a single transaction."""
        bucket = Bucket(name=name)
        self.db.add(bucket)
        try:
            self.db.flush()
            keys = [self.credentials.create(bucket.id, role) for role in Role]
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise BucketAlreadyExists()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageFailure("failed to create bucket", diagnostic=type(exc).__name__) from exc
        self.db.refresh(bucket)
        logger.info("Created bucket %s with %d access keys", name, len(keys))
        return bucket, keys

    def delete(self, name: str) -> None:
        bucket = self.get_by_name(name)
        try:
            self.db.execute(delete(Bucket).where(Bucket.id == bucket.id))
            self.db.commit()
        except IntegrityError:
            # remaining access keys or objects still reference the bucket
            self.db.rollback()
            raise BucketNotEmpty()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageFailure("failed to delete bucket", diagnostic=type(exc).__name__) from exc
        logger.info("Deleted bucket %s", name)

    def recreate_key(self, name: str, role: Role) -> Tuple[AccessKey, str]:
        bucket = self.get_by_name(name)
        try:
            key, secret = self.credentials.recreate(bucket.id, role)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("access key is being recreated concurrently")
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageFailure("failed to create access key", diagnostic=type(exc).__name__) from exc
        self.db.refresh(key)
        logger.info("Recreated %s access key for bucket %s", role.value, name)
        return key, secret

    def delete_key(self, name: str, role: Role) -> None:
        bucket = self.get_by_name(name)
        try:
            deleted = self.credentials.delete_by_role(bucket.id, role)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageFailure("failed to delete access key", diagnostic=type(exc).__name__) from exc
        if not deleted:
            raise AccessKeyNotFound()
        logger.info("Deleted %s access key for bucket %s", role.value, name)

    def list_keys(self, name: str) -> List[AccessKey]:
        bucket = self.get_by_name(name)
        return self.credentials.list_by_bucket(bucket.id)
