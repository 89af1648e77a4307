import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5432/docflow"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Upload settings
    upload_dir: str = os.getenv("UPLOAD_DIR", "public/uploads")
    upload_url_prefix: str = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
    upload_max_size_bytes: int = int(
        os.getenv("UPLOAD_MAX_SIZE_BYTES", str(50 * 1024 * 1024))
    )  # 50MB
    upload_allowed_types: str = os.getenv(
        "UPLOAD_ALLOWED_TYPES",
        "image/jpeg,image/png,image/gif,application/pdf,video/mp4,video/quicktime",
    )

    # S3-compatible bucket
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "documents")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")
    s3_public_url: str = os.getenv("S3_PUBLIC_URL", "")
    s3_presigned_url_expiry: int = int(os.getenv("S3_PRESIGNED_URL_EXPIRY", "3600"))

    # SMTP relay
    smtp_host: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_start_tls: bool = _env_bool("SMTP_START_TLS", "true")
    from_email: str = os.getenv("FROM_EMAIL", "noreply@documentflow.com")
    app_url: str = os.getenv("APP_URL", "http://localhost:5000")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "text")

    seed_sample_data: bool = _env_bool("SEED_SAMPLE_DATA", "false")

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "DocumentFlow")
    brand_tagline: str = os.getenv(
        "BRAND_TAGLINE", "Smart document collection and compliance tracking"
    )


settings = Settings()
