from __future__ import annotations

import shlex
import sys

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "sitemap_service"
    mongo_max_pool_size: int = 10

    # Site
    base_url: str = "https://example.com"

    # Static sitemap document
    sitemap_path: str = "public/sitemap.xml"
    sitemap_cache_ttl: float = 3600.0

    # External regenerator
    sitemap_generate_command: str = f"{shlex.quote(sys.executable)} -m app.workers.generate"
    sitemap_generate_cwd: str | None = None

    # Opaque identity set by the upstream gateway
    identity_header: str = "X-Authenticated-User"

    # Logging
    log_level: str = "INFO"


settings = Settings()
