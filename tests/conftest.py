import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from secure_drive_client import DriveClient, create_drive_client
from secure_drive_client.config import DriveClientConfig, CryptoConfig, MediaConfig
from secure_drive_client.db.base import Base

from drive_fakes import TEST_KEY_HEX, InMemoryBlobStore, StubProber, StubTagParser


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def client_config(temp_dir) -> DriveClientConfig:
    return DriveClientConfig(
        crypto=CryptoConfig(encryption_key=TEST_KEY_HEX),
        media=MediaConfig(temp_dir=str(temp_dir)),
    )


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """
    SQLite-файл на тест, с включёнными внешними ключами (каскадное удаление).
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'drive.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def tag_parser() -> StubTagParser:
    return StubTagParser()


@pytest.fixture
def video_prober() -> StubProber:
    return StubProber()


@pytest_asyncio.fixture(scope="function")
async def drive(client_config, db_engine, blob_store, tag_parser, video_prober) -> DriveClient:
    """
    Собирает DriveClient через фабрику, как в приложении, но на sqlite и хранилище в памяти.
    """
    client = create_drive_client(
        client_config,
        engine=db_engine,
        blob_store=blob_store,
        tag_parser=tag_parser,
        video_prober=video_prober,
    )
    yield client
    await client.wait_for_background_tasks()


@pytest_asyncio.fixture
async def owner(drive):
    return await drive.create_user("owner@example.com", "owner-pass", "Owner")


@pytest_asyncio.fixture
async def stranger(drive):
    return await drive.create_user("stranger@example.com", "stranger-pass", "Stranger")
