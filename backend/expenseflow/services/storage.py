"""MinIO object storage wrapper for receipts, invoices and payment proofs."""
import io
import logging
import uuid

from minio import Minio
from minio.error import S3Error

from expenseflow.core.config import settings
from expenseflow.core.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}

# ─── Client singleton ───

def _build_client() -> Minio:
    return Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


_client: Minio | None = None


def get_client() -> Minio:
    global _client
    if _client is None:
        _client = _build_client()
    return _client


# ─── Bucket bootstrap ───

def ensure_bucket(bucket: str = settings.MINIO_BUCKET_NAME) -> None:
    """Create bucket if it does not already exist. Called on startup."""
    client = get_client()
    try:
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
            logger.info("Created MinIO bucket: %s", bucket)
        else:
            logger.debug("MinIO bucket already exists: %s", bucket)
    except S3Error as exc:
        logger.error("Failed to ensure MinIO bucket %s: %s", bucket, exc)
        raise


# ─── Core operations ───

def upload_file(
    bucket: str,
    object_name: str,
    data: bytes | io.IOBase,
    content_type: str,
) -> str:
    """Upload bytes or file-like object to MinIO. Returns the object path."""
    client = get_client()

    if isinstance(data, bytes):
        stream = io.BytesIO(data)
        length = len(data)
    else:
        data.seek(0, 2)
        length = data.tell()
        data.seek(0)
        stream = data

    client.put_object(
        bucket_name=bucket,
        object_name=object_name,
        data=stream,
        length=length,
        content_type=content_type,
    )
    logger.info("Uploaded %s/%s (%d bytes)", bucket, object_name, length)
    return object_name


def validate_document(content_type: str | None, size: int) -> str:
    """Return the file extension for an accepted upload or raise ValidationError."""
    extension = ALLOWED_CONTENT_TYPES.get((content_type or "").lower())
    if extension is None:
        raise ValidationError("Only JPEG, PNG, WebP and PDF files are allowed.")
    if size == 0:
        raise ValidationError("Uploaded file is empty.")
    if size > settings.UPLOAD_MAX_BYTES:
        raise ValidationError(
            f"File exceeds the {settings.UPLOAD_MAX_BYTES // (1024 * 1024)} MB limit."
        )
    return extension


def store_document(kind: str, data: bytes, content_type: str | None) -> str:
    """Validate and upload a supporting document, returning its public URL."""
    extension = validate_document(content_type, len(data))
    object_name = f"{kind}/{uuid.uuid4().hex}.{extension}"
    upload_file(settings.MINIO_BUCKET_NAME, object_name, data, content_type)
    return object_url(object_name)


def object_url(object_name: str, bucket: str = settings.MINIO_BUCKET_NAME) -> str:
    scheme = "https" if settings.MINIO_SECURE else "http"
    return f"{scheme}://{settings.MINIO_ENDPOINT}/{bucket}/{object_name}"
