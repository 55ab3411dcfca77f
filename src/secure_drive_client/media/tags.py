"""
Извлечение тегов из аудио (title / artist / album / обложка).

Парсер получает уже РАСШИФРОВАННЫЕ байты: за расшифровку отвечает вызывающий код.
"""
import base64
import logging
from io import BytesIO
from typing import Optional, Protocol

import mutagen
from mutagen.flac import Picture
from mutagen.id3 import ID3
from mutagen.mp4 import MP4Cover, MP4Tags

from secure_drive_client.exceptions import MetadataExtractionFailed
from secure_drive_client.models.media import AudioTags

logger = logging.getLogger(__name__)

_ID3_KEYS = {"title": "TIT2", "artist": "TPE1", "album": "TALB"}
_MP4_KEYS = {"title": "\xa9nam", "artist": "\xa9ART", "album": "\xa9alb"}
_MP4_COVER_MIME = {MP4Cover.FORMAT_JPEG: "image/jpeg", MP4Cover.FORMAT_PNG: "image/png"}


class TagParser(Protocol):
    def parse(self, data: bytes, declared_kind: str) -> AudioTags: ...


def to_data_uri(mime: str, payload: bytes) -> str:
    return f"data:{mime or 'application/octet-stream'};base64,{base64.b64encode(payload).decode('ascii')}"


def _text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    elif hasattr(value, "text"):  # ID3 frame
        value = value.text[0] if value.text else None
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class MutagenTagParser:
    """TagParser на mutagen: ID3 (mp3/wav/aiff), Vorbis comments (ogg/flac), MP4 atoms (m4a)."""

    def parse(self, data: bytes, declared_kind: str) -> AudioTags:
        audio = mutagen.File(BytesIO(data))
        if audio is None:
            raise MetadataExtractionFailed(f"Unrecognized audio container for kind '{declared_kind}'")
        tags = audio.tags
        if tags is None:
            logger.debug("Audio file of kind %s has no tags", declared_kind)
            return AudioTags()

        if isinstance(tags, ID3):
            fields = {name: _text(tags.get(key)) for name, key in _ID3_KEYS.items()}
            apic = tags.getall("APIC")
            cover = to_data_uri(apic[0].mime, apic[0].data) if apic else None
        elif isinstance(tags, MP4Tags):
            fields = {name: _text(tags.get(key)) for name, key in _MP4_KEYS.items()}
            covers = tags.get("covr") or []
            cover = to_data_uri(_MP4_COVER_MIME.get(covers[0].imageformat, "image/jpeg"), bytes(covers[0])) if covers else None
        else:
            # Vorbis comments: ключи регистронезависимые
            fields = {name: _text(tags.get(name)) for name in ("title", "artist", "album")}
            cover = self._vorbis_cover(audio, tags)

        return AudioTags(cover_data_uri=cover, **fields)

    @staticmethod
    def _vorbis_cover(audio, tags) -> Optional[str]:
        pictures = getattr(audio, "pictures", None) or []
        if pictures:
            return to_data_uri(pictures[0].mime, pictures[0].data)
        blocks = tags.get("metadata_block_picture") or []
        if blocks:
            pic = Picture(base64.b64decode(blocks[0]))
            return to_data_uri(pic.mime, pic.data)
        return None


def extract_audio_tags(parser: TagParser, data: bytes, declared_kind: str) -> AudioTags:
    """
    Единая граница ошибок: любое исключение парсера превращается в MetadataExtractionFailed.
    """
    try:
        return parser.parse(data, declared_kind)
    except MetadataExtractionFailed:
        raise
    except Exception as e:
        raise MetadataExtractionFailed(f"Tag parser failed for kind '{declared_kind}': {e}") from e
