import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early so env vars are available for YAML interpolation
load_dotenv(Path.cwd() / ".env")

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")


def _env_value(match: re.Match) -> str:
    name = match.group(1)
    try:
        return os.environ[name]
    except KeyError:
        raise ValueError(f"Environment variable ${name} not set") from None


def interpolate_env_vars(value):
    """Replace ``$VAR_NAME`` references in strings, recursing into dicts and lists.

    Raises:
        ValueError: If a referenced variable is not set.
    """
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(_env_value, value)
    if isinstance(value, dict):
        return {key: interpolate_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    return Path(os.environ.get("PIXVAULT_CONFIG", Path.cwd() / "app.yaml"))


def load_app_config() -> dict:
    """Load and parse app.yaml with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"app.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./pixvault.db"
    pool_size: int = 5
    pool_overflow: int = 10
    pool_timeout: int = 30
    pool_pre_ping: bool = True
    echo: bool = False


class S3Config(BaseModel):
    """S3-compatible bucket configuration."""

    bucket: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    prefix: str = ""


class StorageConfig(BaseModel):
    """Durable object storage configuration."""

    backend: str = "local"
    local_path: str = "./storage"
    s3: S3Config = S3Config()
    timeout: float = 30.0
    delete_batch_size: int = 1000


class CacheConfig(BaseModel):
    """Thumbnail cache configuration."""

    root: str = "./cache"
    quality: int = 80
    max_width: int = 4096


class IngestConfig(BaseModel):
    """Upload limits."""

    max_upload_size: int = 20 * 1024 * 1024
    max_files: int = 500


class CatalogConfig(BaseModel):
    """Listing and batch statement configuration."""

    default_page_size: int = 50
    max_page_size: int = 500
    # Pixel-area thresholds; an area equal to a threshold falls in the higher bucket
    high_threshold: int = 1024 * 1568
    ultra_threshold: int = 1080 * 1920
    chunk_size: int = 500


class AuthConfig(BaseModel):
    """Admin token configuration."""

    admin_secret: str | None = None
    token_ttl: int = 60 * 60 * 24 * 7


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PIXVAULT_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    log_level: str = "INFO"

    db: DatabaseConfig = DatabaseConfig()
    storage: StorageConfig = StorageConfig()
    cache: CacheConfig = CacheConfig()
    ingest: IngestConfig = IngestConfig()
    catalog: CatalogConfig = CatalogConfig()
    auth: AuthConfig = AuthConfig()


_SECTIONS = {
    "db": DatabaseConfig,
    "storage": StorageConfig,
    "cache": CacheConfig,
    "ingest": IngestConfig,
    "catalog": CatalogConfig,
    "auth": AuthConfig,
}


@lru_cache
def get_settings() -> Settings:
    """Settings from the environment, overlaid with app.yaml when it exists.

    A section present in app.yaml replaces that section wholesale.
    """
    settings = Settings()
    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return settings

    updates = {
        section: model(**app_config[section])
        for section, model in _SECTIONS.items()
        if section in app_config
    }
    if "log_level" in app_config:
        updates["log_level"] = app_config["log_level"]
    return settings.model_copy(update=updates) if updates else settings
