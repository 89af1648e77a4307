import logging
import time
import uuid
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import boto3
from botocore.config import Config

from docflow.config import settings

logger = logging.getLogger(__name__)

REMOTE = "s3"
LOCAL = "local"

# bytes kept from the client file name in a local key
MAX_NAME_BYTES = 100
MAX_SUFFIX_BYTES = 16


class StorageError(Exception):
    pass


def _safe_name(value: str) -> str:
    name = PurePosixPath(str(value).replace("\\", "/")).name
    if name in {"", ".", ".."}:
        raise StorageError(f"Invalid file name: {value!r}")
    return name


def _suffix(name: str) -> str:
    suffix = PurePosixPath(name).suffix
    return suffix if len(suffix.encode()) <= MAX_SUFFIX_BYTES else ""


def _short_name(value: str) -> str:
    name = _safe_name(value)
    if len(name.encode()) <= MAX_NAME_BYTES:
        return name
    suffix = _suffix(name)
    stem = name[: len(name) - len(suffix)]
    budget = MAX_NAME_BYTES - len(suffix.encode())
    return stem.encode()[:budget].decode(errors="ignore") + suffix


class RemoteStore:
    """S3-compatible bucket, keyed ``owner/timestamp-random.ext``."""

    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not RemoteStore.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def generate_key(owner_id: str, logical_name: str) -> str:
        suffix = _suffix(_safe_name(logical_name))
        timestamp = int(time.time() * 1000)
        return f"{_safe_name(owner_id)}/{timestamp}-{uuid.uuid4()}{suffix}"

    @staticmethod
    def upload(content: bytes, key: str, content_type: str) -> str:
        client = RemoteStore._get_client()
        client.put_object(
            Bucket=settings.s3_bucket_name,
            Key=key,
            Body=content,
            ContentType=content_type or "application/octet-stream",
        )
        logger.info("Uploaded %s to bucket %s", key, settings.s3_bucket_name)
        return key

    @staticmethod
    def delete(key: str) -> None:
        client = RemoteStore._get_client()
        client.delete_object(Bucket=settings.s3_bucket_name, Key=key)
        logger.info("Deleted %s from bucket %s", key, settings.s3_bucket_name)

    @staticmethod
    def public_url(key: str) -> str:
        if settings.s3_public_url:
            return f"{settings.s3_public_url.rstrip('/')}/{key}"
        client = RemoteStore._get_client()
        url: str = client.generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.s3_bucket_name, "Key": key},
            ExpiresIn=settings.s3_presigned_url_expiry,
        )
        return url


class LocalStore:
    """Files under ``UPLOAD_DIR``, keyed ``owner/timestamp-random-filename``."""

    @staticmethod
    def root() -> Path:
        return Path(settings.upload_dir)

    @staticmethod
    def save(content: bytes, owner_id: str, logical_name: str) -> str:
        owner = _safe_name(owner_id)
        filename = (
            f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{_short_name(logical_name)}"
        )
        owner_dir = LocalStore.root() / owner
        owner_dir.mkdir(parents=True, exist_ok=True)
        with open(owner_dir / filename, "xb") as f:
            f.write(content)
        logger.info("Saved %s/%s to local storage", owner, filename)
        return f"{owner}/{filename}"

    @staticmethod
    def resolve(relative_path: str) -> Path:
        parts = PurePosixPath(relative_path).parts
        if len(parts) != 2:
            raise StorageError(f"Invalid local path: {relative_path!r}")
        return LocalStore.root() / _safe_name(parts[0]) / _safe_name(parts[1])

    @staticmethod
    def delete(relative_path: str) -> None:
        path = LocalStore.resolve(relative_path)
        if path.exists():
            path.unlink()
            logger.info("Deleted %s from local storage", relative_path)
        else:
            logger.info("Local file %s already absent", relative_path)

    @staticmethod
    def public_url(relative_path: str) -> str:
        return f"{settings.upload_url_prefix.rstrip('/')}/{relative_path}"


def make_locator(backend: str, reference: str) -> str:
    return f"{backend}:{reference}"


def parse_locator(locator: str) -> tuple[str, str]:
    """Split a locator into ``(backend, reference)``.

    Locators written by this service always carry their backend tag. Untagged
    values (full URLs or ``/uploads/...`` paths) are accepted for rows stored
    before the tag existed.
    """
    for backend in (REMOTE, LOCAL):
        prefix = f"{backend}:"
        if locator.startswith(prefix):
            return backend, locator[len(prefix) :]

    if locator.startswith(("http://", "https://")):
        path = urlparse(locator).path.lstrip("/")
        marker = f"{settings.s3_bucket_name}/"
        if marker in path:
            path = path.split(marker, 1)[1]
        return REMOTE, path

    prefix = settings.upload_url_prefix.strip("/") + "/"
    path = locator.lstrip("/")
    if path.startswith(prefix):
        path = path[len(prefix) :]
    return LOCAL, path


class StorageService:
    @staticmethod
    def upload(
        content: bytes, logical_name: str, owner_id: str, content_type: str
    ) -> str:
        if RemoteStore.is_configured():
            try:
                key = RemoteStore.generate_key(owner_id, logical_name)
                RemoteStore.upload(content, key, content_type)
                return make_locator(REMOTE, key)
            except Exception as e:
                logger.warning(
                    "Remote upload failed for %s, using local storage: %s",
                    logical_name,
                    e,
                )
        try:
            return make_locator(LOCAL, LocalStore.save(content, owner_id, logical_name))
        except OSError as e:
            logger.exception("Local storage failed for %s", logical_name)
            raise StorageError(f"Could not store file: {e}") from e

    @staticmethod
    def delete(locator: str) -> None:
        backend, reference = parse_locator(locator)
        try:
            if backend == REMOTE:
                RemoteStore.delete(reference)
            else:
                LocalStore.delete(reference)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Could not delete {locator}: {e}") from e

    @staticmethod
    def public_url(locator: str) -> str:
        backend, reference = parse_locator(locator)
        if backend == REMOTE:
            return RemoteStore.public_url(reference)
        return LocalStore.public_url(reference)

    @staticmethod
    def backend_of(locator: str) -> str:
        return parse_locator(locator)[0]


storage = StorageService()
