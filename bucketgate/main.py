import base64
import logging
import os
import secrets
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from .auth import Identity, require, require_superuser
from .buckets import BucketStore
from .config import Settings, load_settings
from .db import get_db, make_engine, make_session_factory, wait_for_db
from .errors import CredentialError, GatewayError
from .models import Base
from .objects import ObjectLifecycleManager
from .roles import AuthLevel, Role
from .schemas import (
    AccessKeyOut,
    AccessKeyWithSecretOut,
    BucketCreate,
    BucketCreatedOut,
    BucketOut,
    ObjectOut,
    ObjectWithContentOut,
)

logger = logging.getLogger(__name__)

_QUIET_PATHS = {"/health"}

def _key_with_secret(key, secret: str) -> AccessKeyWithSecretOut:
    return AccessKeyWithSecretOut(**AccessKeyOut.model_validate(key).model_dump(), secret=secret)

def _object_headers(obj) -> dict:
    return {
        "ETag": obj.checksum_sha256,
        "X-Checksum-Sha256": obj.checksum_sha256,
    }

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    engine = make_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        wait_for_db(engine)
        Base.metadata.create_all(bind=engine)
        os.makedirs(settings.data_root, exist_ok=True)
        if not settings.admin_password:
            logger.warning("ADMIN_PASSWORD not set: superuser login is disabled")
        logger.info("Serving objects from %s", os.path.abspath(settings.data_root))
        yield
        engine.dispose()

    app = FastAPI(title="bucketgate", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)

    _register_exception_handlers(app)
    _register_middleware(app)
    _register_routes(app)
    return app

def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> Response:
        headers = {}
        if exc.diagnostic:
            headers["X-Auth-Error"] = exc.diagnostic
        if isinstance(exc, CredentialError):
            headers["WWW-Authenticate"] = "Bearer"
        if request.method == "HEAD":
            return Response(status_code=exc.http_status, headers=headers)
        return JSONResponse(
            status_code=exc.http_status,
            content={"detail": exc.message, "code": exc.code},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
        logger.exception("Unhandled exception in %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "internal error", "code": "InternalError"})

def _register_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-Id") or secrets.token_hex(8)
        request.state.request_id = request_id
        start = time.monotonic()

        response = await call_next(request)

        duration_ms = round((time.monotonic() - start) * 1000, 2)
        response.headers["X-Request-Id"] = request_id
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "%s %s %d %.2fms",
                request.method, request.url.path, response.status_code, duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "request_id": request_id,
                    "key_id": getattr(request.state, "key_id", None),
                },
            )
        return response

def _register_routes(app: FastAPI) -> None:
    data_root = app.state.settings.data_root

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # -- buckets ---------------------------------------------------------------

    @app.post("/buckets", response_model=BucketCreatedOut, status_code=status.HTTP_201_CREATED)
    def create_bucket(payload: BucketCreate, db: Session = Depends(get_db), identity: Identity = Depends(require(AuthLevel.ALL))):
        require_superuser(identity)
        bucket, keys = BucketStore(db).create_with_keys(payload.name)
        return BucketCreatedOut(
            name=bucket.name,
            created_at=bucket.created_at,
            access_keys=[_key_with_secret(key, secret) for key, secret in keys],
        )

    @app.get("/buckets", response_model=list[BucketOut])
    def list_buckets(db: Session = Depends(get_db), identity: Identity = Depends(require(AuthLevel.READ_ONLY))):
        require_superuser(identity)
        return [BucketOut.model_validate(b) for b in BucketStore(db).list_all()]

    @app.get("/buckets/{bucket_name}", response_model=BucketOut)
    def get_bucket(bucket_name: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.READ_ONLY))):
        return BucketOut.model_validate(BucketStore(db).get_by_name(bucket_name))

    @app.delete("/buckets/{bucket_name}", status_code=204)
    def delete_bucket(bucket_name: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.ALL))):
        BucketStore(db).delete(bucket_name)
        return Response(status_code=204)

    # -- access keys -----------------------------------------------------------

    @app.get("/buckets/{bucket_name}/keys", response_model=list[AccessKeyOut])
    def list_access_keys(bucket_name: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.ALL))):
        return [AccessKeyOut.model_validate(k) for k in BucketStore(db).list_keys(bucket_name)]

    @app.post("/buckets/{bucket_name}/keys/{role}", response_model=AccessKeyWithSecretOut, status_code=status.HTTP_201_CREATED)
    def recreate_access_key(bucket_name: str, role: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.ALL))):
        key, secret = BucketStore(db).recreate_key(bucket_name, Role.parse(role))
        return _key_with_secret(key, secret)

    @app.delete("/buckets/{bucket_name}/keys/{role}", status_code=204)
    def delete_access_key(bucket_name: str, role: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.ALL))):
        BucketStore(db).delete_key(bucket_name, Role.parse(role))
        return Response(status_code=204)

    # -- objects ---------------------------------------------------------------

    @app.get("/buckets/{bucket_name}/objects", response_model=list[ObjectOut])
    def list_objects(bucket_name: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.READ_ONLY))):
        objects = ObjectLifecycleManager(db, data_root).list_objects(bucket_name)
        return [ObjectOut.model_validate(o) for o in objects]

    @app.put("/buckets/{bucket_name}/objects/{object_key:path}", response_model=ObjectOut, status_code=status.HTTP_201_CREATED)
    def upload_object(
        bucket_name: str,
        object_key: str,
        file: UploadFile = File(...),
        db: Session = Depends(get_db),
        _=Depends(require(AuthLevel.READ_WRITE)),
    ):
        content = file.file.read()
        obj = ObjectLifecycleManager(db, data_root).upload(bucket_name, object_key, content, file.content_type)
        return ObjectOut.model_validate(obj)

    @app.head("/buckets/{bucket_name}/objects/{object_key:path}")
    def head_object(bucket_name: str, object_key: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.READ_ONLY))):
        obj = ObjectLifecycleManager(db, data_root).get(bucket_name, object_key)
        headers = _object_headers(obj)
        headers["Content-Length"] = str(obj.size)
        headers["Content-Type"] = obj.content_type
        return Response(status_code=200, headers=headers)

    @app.get("/buckets/{bucket_name}/objects/{object_key:path}")
    def download_object(bucket_name: str, object_key: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.READ_ONLY))):
        obj, content = ObjectLifecycleManager(db, data_root).read(bucket_name, object_key)
        return Response(content=content, media_type=obj.content_type, headers=_object_headers(obj))

    @app.get("/buckets/{bucket_name}/metadata/{object_key:path}", response_model=ObjectOut)
    def object_metadata(bucket_name: str, object_key: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.READ_ONLY))):
        return ObjectOut.model_validate(ObjectLifecycleManager(db, data_root).get(bucket_name, object_key))

    @app.get("/buckets/{bucket_name}/all/{object_key:path}", response_model=ObjectWithContentOut)
    def object_with_content(bucket_name: str, object_key: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.READ_ONLY))):
        obj, content = ObjectLifecycleManager(db, data_root).read(bucket_name, object_key)
        return ObjectWithContentOut(
            **ObjectOut.model_validate(obj).model_dump(),
            content=base64.b64encode(content).decode("ascii"),
        )

    @app.delete("/buckets/{bucket_name}/objects/{object_key:path}", status_code=204)
    def delete_object(bucket_name: str, object_key: str, db: Session = Depends(get_db), _=Depends(require(AuthLevel.READ_WRITE))):
        ObjectLifecycleManager(db, data_root).delete(bucket_name, object_key)
        return Response(status_code=204)
