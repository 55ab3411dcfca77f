from .minio_repository import MinioRepository
from .pg_repositoryFile import FileRepository
from .pg_repositoryPermission import PermissionRepository
from .pg_repositoryMediaMeta import MediaMetaRepository
from .pg_repositoryShare import ShareRepository
from .pg_repositoryUser import UserRepository

__all__ = [
    "MinioRepository", 
    "FileRepository", 
    "PermissionRepository",  
    "MediaMetaRepository",
    "ShareRepository",
    "UserRepository",
]
