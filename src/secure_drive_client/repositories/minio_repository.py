import logging
from io import BytesIO

from minio import Minio
from minio.error import S3Error
from secure_drive_client.exceptions import MinioError, BlobNotFoundError
from secure_drive_client.utils.io_async import run_io_bound
from secure_drive_client.config import MinioConfig
import urllib3 

logger = logging.getLogger(__name__)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}


def _wrap(e: S3Error, object_name: str) -> MinioError:
    if e.code in _MISSING_CODES:
        return BlobNotFoundError(f"Object '{object_name}' not found: {e.code}")
    return MinioError(str(e))


class MinioRepository:
    """
    Объектное хранилище: put / get / update по ключу.
    Клиент minio синхронный, все вызовы уходят в executor.
    """
    def __init__(self, settings: MinioConfig):
        http_client = None
        if settings.secure:
            http_client = urllib3.PoolManager(
                cert_reqs='CERT_NONE',
            )
        self._client = Minio(
            endpoint=settings.endpoint,
            access_key=settings.accesskey,
            secret_key=settings.secretkey,
            secure=settings.secure,
            http_client=http_client
        )
        self._bucket = settings.bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _ensure_bucket(self):
        exists = await run_io_bound(self._client.bucket_exists, self._bucket)
        if not exists:
            await run_io_bound(self._client.make_bucket, self._bucket)


    async def check_connection(self):
        """Проверяет соединение с MinIO и наличие бакета."""
        logger.debug(f"Checking MinIO connection and bucket '{self._bucket}' existence...")
        try:
            await self._ensure_bucket()
            logger.debug("MinIO connection and bucket presence confirmed.")
        except S3Error as e:
            logger.error(f"MinIO connection failed: {e}")
            raise MinioError(str(e)) from e
        
    async def put_object(self, object_name: str, data: bytes, content_type: str | None = None):
        try:
            await self._ensure_bucket()
            await run_io_bound(
                self._client.put_object,
                self._bucket,
                object_name,
                BytesIO(data),
                len(data),
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as e:
            raise _wrap(e, object_name) from e

    async def update_object(self, object_name: str, data: bytes, content_type: str | None = None):
        """Перезаписывает существующий объект. Если объекта нет - BlobNotFoundError."""
        try:
            await run_io_bound(self._client.stat_object, self._bucket, object_name)
        except S3Error as e:
            raise _wrap(e, object_name) from e
        await self.put_object(object_name, data, content_type)

    async def get_object(self, object_name: str) -> bytes:
        resp = None
        try:
            resp = await run_io_bound(self._client.get_object, self._bucket, object_name)
            return await run_io_bound(resp.read)
        except S3Error as e:
            raise _wrap(e, object_name) from e
        finally:
            if resp is not None:
                resp.close()
                resp.release_conn()

    async def remove_object(self, object_name: str):
        try:
            await run_io_bound(self._client.remove_object, self._bucket, object_name)
        except S3Error as e:
            raise _wrap(e, object_name) from e
