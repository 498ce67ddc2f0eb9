from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .roles import Role

class Base(DeclarativeBase):
    pass

class Bucket(Base):
    __tablename__ = "buckets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # no cascades: a bucket with keys or objects must fail to delete
    access_keys: Mapped[list["AccessKey"]] = relationship(back_populates="bucket", passive_deletes="all")
    objects: Mapped[list["Object"]] = relationship(back_populates="bucket", passive_deletes="all")

class AccessKey(Base):
    __tablename__ = "access_keys"
    __table_args__ = (
        UniqueConstraint("bucket_id", "role", name="uq_bucket_role"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    bucket_id: Mapped[int] = mapped_column(ForeignKey("buckets.id", ondelete="RESTRICT"), nullable=False)

    key_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    secret_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, values_callable=lambda roles: [r.value for r in roles], native_enum=False, length=16),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    bucket: Mapped[Bucket] = relationship(back_populates="access_keys")

    @property
    def bucket_name(self) -> str:
        return self.bucket.name

class Object(Base):
    __tablename__ = "objects"
    __table_args__ = (
        UniqueConstraint("bucket_id", "object_key", name="uq_bucket_object_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    bucket_id: Mapped[int] = mapped_column(ForeignKey("buckets.id", ondelete="RESTRICT"), nullable=False)

    object_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    # "" until the upload is finalized
    file_path: Mapped[str] = mapped_column(String(4096), nullable=False, default="")
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    checksum_sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    bucket: Mapped[Bucket] = relationship(back_populates="objects")

    @property
    def bucket_name(self) -> str:
        return self.bucket.name
