from .file import StoredFileInDB, FileListItem, DownloadResult
from .media import AudioTags, AudioMetadataIn, AudioMetadataInDB, VideoProbe, VideoMetadataInDB
from .user import UserInDB

__all__ = [
    "StoredFileInDB", "FileListItem", "DownloadResult",
    "AudioTags", "AudioMetadataIn", "AudioMetadataInDB", "VideoProbe", "VideoMetadataInDB",
    "UserInDB",
]
