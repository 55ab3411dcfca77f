from .upload import UploadPipeline, UploadState, thumbnail_key
from .read import ReadPipeline

__all__ = ["UploadPipeline", "UploadState", "ReadPipeline", "thumbnail_key"]
