from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/db.sqlite3"
    api_key: str = ""  # empty = no auth check (local dev)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    data_dir: str = "./data"

    storage_backend: str = "local"  # "local" or "s3"
    storage_dir: str = "./data/storage"
    storage_bucket: str = "postures"
    storage_signing_secret: str = "change-me"
    storage_public_read: bool = False
    public_base_url: str = "http://localhost:8000"
    s3_region: str | None = None
    s3_endpoint_url: str | None = None

    max_photo_size_bytes: int = 10 * 1024 * 1024  # 10MB
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
