import os

import pytest

from bucketgate.errors import IntegrityViolation
from bucketgate.paths import bucket_objects_dir, ensure_bucket_objects_dir, object_path, validate_stored_path


def test_object_path_layout():
    assert object_path("data", 7, 42) == os.path.join("data", "buckets", "7", "objects", "42")


def test_object_path_is_inside_bucket_dir():
    assert os.path.dirname(object_path("/srv", 3, 9)) == bucket_objects_dir("/srv", 3)


def test_ensure_bucket_objects_dir_is_idempotent(tmp_path):
    first = ensure_bucket_objects_dir(str(tmp_path), 1)
    second = ensure_bucket_objects_dir(str(tmp_path), 1)
    assert first == second
    assert os.path.isdir(first)


class TestValidateStoredPath:
    def test_accepts_derived_path(self, tmp_path):
        root = str(tmp_path)
        path = object_path(root, 5, 11)
        assert validate_stored_path(root, 5, path) == os.path.abspath(path)

    def test_accepts_relative_data_root(self):
        validate_stored_path("data", 1, os.path.join("data", "buckets", "1", "objects", "3"))

    @pytest.mark.parametrize(
        "stored",
        [
            "",
            "/etc/passwd",
            os.path.join("data", "buckets", "2", "objects", "3"),
            os.path.join("data", "buckets", "1", "objects2", "3"),
            os.path.join("data", "buckets", "1", "objects", "..", "..", "2", "objects", "3"),
            os.path.join("data", "buckets", "1", "objects"),
            "data/buckets/1/objects/3\x00",
        ],
    )
    def test_rejects_paths_outside_bucket(self, stored):
        with pytest.raises(IntegrityViolation) as excinfo:
            validate_stored_path("data", 1, stored)
        assert excinfo.value.http_status == 500
        assert excinfo.value.message == "invalid stored path"

    def test_dotdot_that_stays_inside_is_accepted(self):
        stored = os.path.join("data", "buckets", "1", "objects", "x", "..", "3")
        validate_stored_path("data", 1, stored)
