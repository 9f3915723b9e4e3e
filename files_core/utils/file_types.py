# files_core/utils/file_types.py
"""File extension, MIME type and document category helpers"""
import mimetypes

DEFAULT_CATEGORY = "document"
DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "txt": "text/plain",
    "md": "text/markdown",
    "csv": "text/csv",
    "json": "application/json",
    "zip": "application/zip",
}

EXTENSION_CATEGORIES = {
    "pdf": "pdf",
    "doc": "document",
    "docx": "document",
    "odt": "document",
    "rtf": "document",
    "txt": "text",
    "md": "text",
    "csv": "spreadsheet",
    "xls": "spreadsheet",
    "xlsx": "spreadsheet",
    "ods": "spreadsheet",
    "ppt": "presentation",
    "pptx": "presentation",
    "odp": "presentation",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "gif": "image",
    "webp": "image",
    "svg": "image",
    "mp3": "audio",
    "wav": "audio",
    "ogg": "audio",
    "mp4": "video",
    "mov": "video",
    "mkv": "video",
    "zip": "archive",
    "tar": "archive",
    "gz": "archive",
    "7z": "archive",
    "json": "data",
    "xml": "data",
}

# checked in order, first prefix wins
MIME_PREFIX_CATEGORIES = [
    ("application/pdf", "pdf"),
    ("image/", "image"),
    ("audio/", "audio"),
    ("video/", "video"),
    ("text/csv", "spreadsheet"),
    ("text/", "text"),
    ("application/vnd.ms-excel", "spreadsheet"),
    ("application/vnd.openxmlformats-officedocument.spreadsheetml", "spreadsheet"),
    ("application/vnd.ms-powerpoint", "presentation"),
    ("application/vnd.openxmlformats-officedocument.presentationml", "presentation"),
    ("application/zip", "archive"),
    ("application/x-tar", "archive"),
    ("application/gzip", "archive"),
    ("application/json", "data"),
]


def get_extension(file_name: str) -> str:
    """Lower-cased extension without the dot, or '' when there is none"""
    if not file_name or "." not in file_name.strip("."):
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


def get_mime_type(extension: str) -> str:
    ext = (extension or "").lower().lstrip(".")
    if ext in MIME_TYPES:
        return MIME_TYPES[ext]
    guessed, _ = mimetypes.guess_type(f"file.{ext}") if ext else (None, None)
    return guessed or DEFAULT_MIME_TYPE


def detect_category(file_name: str, mime_type: str = None) -> str:
    """Category from extension, then MIME prefix, then the default"""
    ext = get_extension(file_name)
    if ext in EXTENSION_CATEGORIES:
        return EXTENSION_CATEGORIES[ext]

    if mime_type:
        mime = mime_type.lower()
        for prefix, category in MIME_PREFIX_CATEGORIES:
            if mime.startswith(prefix):
                return category

    return DEFAULT_CATEGORY
