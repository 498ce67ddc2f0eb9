import hashlib
import logging
import os
from typing import List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .buckets import BucketStore
from .errors import Conflict, IntegrityViolation, InvalidArgument, ObjectAlreadyExists, ObjectNotFound, StorageFailure
from .models import Bucket, Object
from .paths import ensure_bucket_objects_dir, object_path, validate_stored_path
from .saga import Saga

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

def normalize_object_key(object_key: Optional[str]) -> str:
    key = (object_key or "").strip()
    if not key or "\x00" in key:
        raise InvalidArgument("invalid object key")
    return key

def compute_checksum(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()

class ObjectLifecycleManager:
    def __init__(self, db: Session, data_root: str):
        self.db = db
        self.data_root = data_root
        self.buckets = BucketStore(db)

    # -- reads -----------------------------------------------------------------

    def _get_row(self, bucket: Bucket, object_key: str, include_pending: bool = False) -> Object:
        query = select(Object).where(Object.bucket_id == bucket.id, Object.object_key == object_key)
        if not include_pending:
            # an empty path marks an upload that has not finished
            query = query.where(Object.file_path != "")
        obj = self.db.execute(query).scalar_one_or_none()
        if obj is None:
            raise ObjectNotFound()
        return obj

    def get(self, bucket_name: str, object_key: str) -> Object:
        key = normalize_object_key(object_key)
        bucket = self.buckets.get_by_name(bucket_name)
        return self._get_row(bucket, key)

    def list_objects(self, bucket_name: str) -> List[Object]:
        bucket = self.buckets.get_by_name(bucket_name)
        query = select(Object).where(Object.bucket_id == bucket.id, Object.file_path != "").order_by(Object.id)
        return list(self.db.execute(query).scalars())

    def read(self, bucket_name: str, object_key: str) -> Tuple[Object, bytes]:
        key = normalize_object_key(object_key)
        bucket = self.buckets.get_by_name(bucket_name)
        obj = self._get_row(bucket, key)
        path = self._checked_path(bucket, obj)
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except FileNotFoundError:
            logger.error("Object %s/%s has metadata but no file at %s", bucket.name, key, path)
            raise StorageFailure("object file missing")
        except OSError as exc:
            raise StorageFailure("failed to read object", diagnostic=exc.strerror) from exc
        return obj, data

    def _checked_path(self, bucket: Bucket, obj: Object) -> str:
        try:
            return validate_stored_path(self.data_root, bucket.id, obj.file_path)
        except IntegrityViolation:
            logger.error(
                "Integrity violation: object %s/%s (id=%s) has stored path %r outside its bucket directory",
                bucket.name, obj.object_key, obj.id, obj.file_path,
            )
            raise

    # -- upload ----------------------------------------------------------------

    def upload(self, bucket_name: str, object_key: str, content: bytes, content_type: Optional[str] = None) -> Object:
        key = normalize_object_key(object_key)
        bucket = self.buckets.get_by_name(bucket_name)
        bucket_id, bucket_name = bucket.id, bucket.name
        content_type = (content_type or "").strip() or DEFAULT_CONTENT_TYPE

        obj = self._insert_placeholder(bucket_id, key, content, content_type)
        object_id = obj.id

        with Saga(f"upload {bucket_name}/{key}") as saga:
            saga.on_rollback(self._delete_row, object_id, description="delete metadata row")

            path = object_path(self.data_root, bucket_id, object_id)
            try:
                ensure_bucket_objects_dir(self.data_root, bucket_id)
            except OSError as exc:
                raise StorageFailure("failed to create storage directory", diagnostic=exc.strerror) from exc

            saga.on_rollback(self._remove_file, path, description="remove object file")
            try:
                self._write_file(path, content)
            except OSError as exc:
                raise StorageFailure("failed to write object file", diagnostic=exc.strerror) from exc

            self._finalize(obj, path)

        logger.info("Stored object %s/%s (%d bytes) at %s", bucket_name, key, obj.size, path)
        return obj

    def _insert_placeholder(self, bucket_id: int, key: str, content: bytes, content_type: str) -> Object:
        obj = Object(
            bucket_id=bucket_id,
            object_key=key,
            file_path="",
            size=len(content),
            checksum_sha256=compute_checksum(content),
            content_type=content_type,
        )
        self.db.add(obj)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ObjectAlreadyExists()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageFailure("failed to create object", diagnostic=type(exc).__name__) from exc
        return obj

    def _finalize(self, obj: Object, path: str) -> None:
        try:
            result = self.db.execute(
                update(Object).where(Object.id == obj.id, Object.file_path == "").values(file_path=path),
                execution_options={"synchronize_session": False},
            )
            if result.rowcount != 1:
                # placeholder row was removed by a concurrent delete
                self.db.rollback()
                raise Conflict("object was deleted during upload")
            self.db.commit()
            self.db.refresh(obj)
        except SQLAlchemyError as exc:
            raise StorageFailure("failed to update object metadata", diagnostic=type(exc).__name__) from exc

    def _delete_row(self, object_id: int) -> None:
        self.db.rollback()
        self.db.execute(delete(Object).where(Object.id == object_id))
        self.db.commit()

    @staticmethod
    def _write_file(path: str, content: bytes) -> None:
        with open(path, "wb") as fh:
            fh.write(content)

    @staticmethod
    def _remove_file(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass

    # -- delete ----------------------------------------------------------------

    def delete(self, bucket_name: str, object_key: str) -> None:
        key = normalize_object_key(object_key)
        bucket = self.buckets.get_by_name(bucket_name)
        obj = self._get_row(bucket, key, include_pending=True)

        if obj.file_path:
            path = self._checked_path(bucket, obj)
            try:
                self._remove_file(path)
            except OSError as exc:
                raise StorageFailure("failed to delete object file", diagnostic=exc.strerror) from exc
        else:
            logger.warning("Deleting object %s/%s that was never finalized", bucket.name, key)

        try:
            self.db.execute(delete(Object).where(Object.id == obj.id))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageFailure("failed to delete object", diagnostic=type(exc).__name__) from exc
        logger.info("Deleted object %s/%s", bucket.name, key)
