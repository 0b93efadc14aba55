import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .secrets import database_uri_from_secret, fetch_vault_secret

load_dotenv(".env")

PACKAGE_DIR = Path(__file__).resolve().parent


def _default_database_uri() -> str:
    env_uri = os.getenv("APP_DATABASE_URI") or os.getenv("DATABASE_URI")
    if env_uri:
        return env_uri

    host = os.getenv("MONGO_HOST", "localhost")
    port = os.getenv("MONGO_PORT", "27017")
    return f"mongodb://{host}:{port}"


class Settings(BaseSettings):
    app_name: str = "Bookstore"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3030
    database_uri: str = Field(default_factory=_default_database_uri)
    database_name: str = "exercise-2"
    collection_name: str = "information"
    connect_timeout_ms: int = 10000
    seed_data: bool = True
    templates_dir: Path = PACKAGE_DIR / "templates"
    static_dir: Path = PACKAGE_DIR / "static"
    require_https: bool = False
    strict_security: bool = False
    otel_enabled: bool = True
    vault_addr: str | None = None
    vault_token: str | None = None
    vault_kv_mount: str = "kv"
    vault_secret_path: str = "bookstore/config"

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


def get_settings() -> Settings:
    settings = Settings()
    if settings.vault_addr and settings.vault_token:
        secret = fetch_vault_secret(
            addr=settings.vault_addr,
            token=settings.vault_token,
            mount=settings.vault_kv_mount,
            path=settings.vault_secret_path,
        )
        database_uri = database_uri_from_secret(secret)
        if database_uri:
            settings.database_uri = database_uri
    if settings.strict_security:
        insecure_markers = ("admin:admin@", "root:example@", "changeme", "change-me", "replace-me")
        if settings.database_uri and any(marker in settings.database_uri for marker in insecure_markers):
            raise RuntimeError("Insecure database credentials detected")
        if settings.vault_token and settings.vault_token.lower() == "root":
            raise RuntimeError("Insecure Vault token detected")
    return settings
