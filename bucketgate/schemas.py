from datetime import datetime

from pydantic import BaseModel, Field

from .roles import Role

class BucketCreate(BaseModel):
    name: str = Field(min_length=3, max_length=63, pattern=r"^[^/\s\x00]+$")

class BucketOut(BaseModel):
    name: str
    created_at: datetime

    class Config:
        from_attributes = True

class AccessKeyOut(BaseModel):
    bucket_name: str
    key_id: str
    role: Role
    created_at: datetime

    class Config:
        from_attributes = True

class AccessKeyWithSecretOut(AccessKeyOut):
    # only ever returned once, when the key is created
    secret: str

class BucketCreatedOut(BucketOut):
    access_keys: list[AccessKeyWithSecretOut]

class ObjectOut(BaseModel):
    bucket_name: str
    object_key: str
    size: int
    checksum_sha256: str
    content_type: str
    created_at: datetime

    class Config:
        from_attributes = True

class ObjectWithContentOut(ObjectOut):
    content: str = Field(description="base64-encoded object bytes")
