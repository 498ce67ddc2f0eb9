import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

class Settings(BaseModel):
    database_url: str = "sqlite:///buckitup.db"
    data_root: str = "data"
    admin_password: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = Field(default="text", pattern="^(text|json)$")
    host: str = "0.0.0.0"
    port: int = 8080

def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ

    database_url = env.get("DATABASE_URL")
    if not database_url:
        db_path = env.get("BUCKET_DB_PATH", "buckitup.db")
        database_url = f"sqlite:///{db_path}"

    values = {
        "database_url": database_url,
        "data_root": env.get("BUCK_DATA_PATH") or "data",
        # empty means "not configured": superuser login stays disabled
        "admin_password": env.get("ADMIN_PASSWORD") or None,
        "log_level": env.get("LOG_LEVEL", "INFO"),
        "log_format": env.get("LOG_FORMAT", "text"),
        "host": env.get("HOST", "0.0.0.0"),
    }
    if env.get("PORT"):
        values["port"] = int(env["PORT"])
    return Settings(**values)
