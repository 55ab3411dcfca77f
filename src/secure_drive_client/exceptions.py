class DriveClientError(Exception):
    """Base class."""


class ConfigurationError(DriveClientError):
    """Неверная конфигурация. Процесс не должен стартовать."""


class DatabaseError(DriveClientError):
    pass


class NotFoundError(DriveClientError):
    pass


class FileNotFoundInDriveError(NotFoundError):
    pass


class MinioError(DriveClientError):
    pass


class BlobNotFoundError(MinioError):
    pass


class AccessDeniedError(DriveClientError):
    pass


class GrantExistsError(AccessDeniedError):
    pass


class IntegrityError(DriveClientError):
    """Тег не сошёлся, поле повреждено или ключ не тот."""


class DecryptionFailed(DriveClientError):
    """Содержимое файла в хранилище нельзя расшифровать. Это ошибка сервера, а не клиента."""


class UploadFailed(DriveClientError):
    pass


class MetadataExtractionFailed(DriveClientError):
    pass


class ConflictError(DriveClientError):
    pass


class UnsupportedKindError(DriveClientError):
    """Операция не применима к файлу такого типа (например, текстовая правка бинарного файла)."""
