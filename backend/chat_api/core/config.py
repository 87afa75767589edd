from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "chat-api"
    app_env: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./chat.sqlite"

    # JWT (identity provider tokens)
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str | None = None
    JWT_EXPIRE_MINUTES: int = 60

    # "jwt" verifies tokens locally, "remote" asks the identity provider
    identity_backend: str = "jwt"
    identity_url: str = ""
    identity_api_key: str = ""

    # Blob storage for attachments
    blob_backend: str = "local"
    storage_bucket: str = "chat_media"
    storage_dir: str = "./storage"
    storage_public_url: str = "http://localhost:8000/media"
    storage_api_url: str = ""
    storage_api_key: str = ""

    # Profile lookup for room listings (empty = no lookup)
    profiles_url: str = ""
    profiles_api_key: str = ""

    preview_length: int = 100
    max_attachment_bytes: int = 10 * 1024 * 1024  # 10 MB
    max_attachments: int = 10
    upload_workers: int = 4

    send_rate_limit: int = 30
    send_rate_window_seconds: int = 60
    report_rate_limit: int = 10

    # Authorization checks the original service left open
    PIN_REQUIRES_PARTICIPANT: bool = True
    DELETE_REQUIRES_PARTICIPANT: bool = True
    ENFORCE_BLOCKS: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
