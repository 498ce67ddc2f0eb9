import os

from .errors import IntegrityViolation

def bucket_objects_dir(data_root: str, bucket_id: int) -> str:
    return os.path.join(data_root, "buckets", str(bucket_id), "objects")

def object_path(data_root: str, bucket_id: int, object_id: int) -> str:
    return os.path.join(bucket_objects_dir(data_root, bucket_id), str(object_id))

def ensure_bucket_objects_dir(data_root: str, bucket_id: int) -> str:
    path = bucket_objects_dir(data_root, bucket_id)
    os.makedirs(path, mode=0o755, exist_ok=True)
    return path

def _canonical(path: str) -> str:
    return os.path.normcase(os.path.abspath(os.path.normpath(path)))

def validate_stored_path(data_root: str, bucket_id: int, stored_path: str) -> str:
    """Return the canonical form of ``stored_path`` or raise IntegrityViolation.

    The check is lexical and component-wise: the stored path must lie strictly
    below ``<data_root>/buckets/<bucket_id>/objects`` after both sides are
    normalised, so ``..`` segments, sibling directories such as ``objects2``
    and other buckets' directories are all rejected.
    """
    if not stored_path or "\x00" in stored_path:
        raise IntegrityViolation(diagnostic="empty or malformed stored path")

    prefix = _canonical(bucket_objects_dir(data_root, bucket_id))
    candidate = _canonical(stored_path)
    if candidate == prefix or not candidate.startswith(prefix + os.sep):
        raise IntegrityViolation(diagnostic="stored path outside bucket directory")
    return candidate
