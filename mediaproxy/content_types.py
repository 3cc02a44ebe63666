from pathlib import PurePosixPath

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "mp4": "video/mp4",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "txt": "text/plain",
    "json": "application/json",
}

MEDIA_EXTENSIONS = {"mp4", "webm", "mov", "mp3", "m4a"}

ENCRYPTED_SUFFIX = ".enc"


def extension_of(filename: str) -> str:
    """Lowercase extension without the dot, ignoring a trailing ``.enc``."""
    name = strip_encrypted_suffix(filename)
    return PurePosixPath(name).suffix.lstrip(".").lower()


def is_encrypted(filename: str) -> bool:
    return filename.lower().endswith(ENCRYPTED_SUFFIX)


def strip_encrypted_suffix(filename: str) -> str:
    if is_encrypted(filename):
        return filename[: -len(ENCRYPTED_SUFFIX)]
    return filename


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(extension_of(filename), DEFAULT_CONTENT_TYPE)


def is_media(filename: str) -> bool:
    return extension_of(filename) in MEDIA_EXTENSIONS
