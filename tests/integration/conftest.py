import os

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from secure_drive_client import DriveClient, create_drive_client
from secure_drive_client.config import get_settings, reset_settings
from secure_drive_client.crypto import CipherEngine
from secure_drive_client.db.base import Base

if os.environ.get("DRIVE_INTEGRATION") != "1":
    collect_ignore_glob = ["test_*.py"]


@pytest.fixture(scope="session")
def _test_containers():
    """
    Запускает PostgreSQL и MinIO в Docker один раз на сессию
    и выставляет переменные окружения, которые прочитает get_settings().
    """
    from testcontainers.minio import MinioContainer
    from testcontainers.postgres import PostgresContainer

    postgres = PostgresContainer("postgres:15")
    minio = MinioContainer("minio/minio:latest", access_key="minioadmin", secret_key="minioadmin")
    postgres.start()
    minio.start()

    os.environ["POSTGRES_USER"] = postgres.username
    os.environ["POSTGRES_PASSWORD"] = postgres.password
    os.environ["POSTGRES_DB"] = postgres.dbname
    os.environ["POSTGRES_HOST"] = postgres.get_container_host_ip()
    os.environ["POSTGRES_PORT"] = str(postgres.get_exposed_port(5432))

    minio_config = minio.get_config()
    os.environ["MINIO_ENDPOINT"] = minio_config["endpoint"].replace("http://", "")
    os.environ["MINIO_ACCESSKEY"] = minio_config["access_key"]
    os.environ["MINIO_SECRETKEY"] = minio_config["secret_key"]
    os.environ["MINIO_SECURE"] = "False"
    os.environ["MINIO_BUCKET"] = "test-bucket"
    os.environ["CRYPTO_ENCRYPTION_KEY"] = CipherEngine.generate_key_hex()
    reset_settings()

    yield
    postgres.stop()
    minio.stop()
    reset_settings()


@pytest_asyncio.fixture(scope="function")
async def pg_drive(_test_containers, tmp_path) -> DriveClient:
    """DriveClient на настоящих PostgreSQL и MinIO, таблицы создаются и удаляются на каждый тест."""
    settings = get_settings()
    engine = create_async_engine(settings.postgres.get_pg_dsn())
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    config = settings.to_client_config()
    config.media.temp_dir = str(tmp_path)
    client = create_drive_client(config, engine=engine)
    await client.blobs.check_connection()
    yield client

    await client.wait_for_background_tasks()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await client.aclose()
