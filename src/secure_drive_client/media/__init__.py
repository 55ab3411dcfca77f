from .tags import TagParser, MutagenTagParser, extract_audio_tags
from .probe import VideoProber, FFmpegProber

__all__ = ["TagParser", "MutagenTagParser", "extract_audio_tags", "VideoProber", "FFmpegProber"]
