# Файл: src/secure_drive_client/config.py

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

# --- 1. Настройки PostgreSQL ---
class PostgresConfig(BaseModel):
    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "drive"

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool  = True
    application_name: str = "secure_drive_client"
    
    def get_pg_dsn(self) -> str:
        """Собирает DSN для SQLAlchemy из полей этого объекта."""
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"

# --- 2. Настройки MinIO ---
class MinioConfig(BaseModel):
    endpoint: str = "localhost:9000"
    accesskey: str = "minioadmin"
    secretkey: str = "minioadmin"
    bucket: str = "drive"
    secure: bool = False


# --- 3. Ключ шифрования ---
class CryptoConfig(BaseModel):
    # 64 hex-символа = 32 байта ключа AES-256
    encryption_key: str = Field("", description="AES-256 key as 64 hex characters")


# --- 4. Медиа: ffmpeg, временные файлы, политика по типам ---
class MediaConfig(BaseModel):
    ffprobe_path: str = "ffprobe"
    ffmpeg_path: str = "ffmpeg"
    temp_dir: str = "/tmp/secure_drive"
    thumbnail_timestamp: str = "00:00:01.000"
    thumbnail_size: str = "320x240"
    probe_timeout: float = 60.0

    plain_text_kind: str = "text/plain"
    audio_prefix: str = "audio/"
    video_prefix: str = "video/"


class AuthConfig(BaseModel):
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60


# --- 5. Основной класс для явной передачи конфигурации ---
class DriveClientConfig(BaseModel):
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    crypto: CryptoConfig = Field(default_factory=CryptoConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)

# --- 6. Settings читает всё то же самое из окружения / .env ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter='_',
        # CRYPTO_ENCRYPTION_KEY -> crypto.encryption_key, а не crypto.encryption.key
        env_nested_max_split=1,
        extra='ignore'
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    crypto: CryptoConfig = Field(default_factory=CryptoConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    def to_client_config(self) -> DriveClientConfig:
        return DriveClientConfig(
            postgres=self.postgres, minio=self.minio, crypto=self.crypto, media=self.media
        )

# Ленивая инициализация, чтобы не падать с ошибкой валидации при импорте
_cached_settings: Optional[Settings] = None

def get_settings() -> Settings:
    """
    Возвращает синглтон-экземпляр настроек, создавая его при первом вызове.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def reset_settings() -> None:
    """Сбрасывает кеш настроек (нужно тестам, которые меняют окружение)."""
    global _cached_settings
    _cached_settings = None
