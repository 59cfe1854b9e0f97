from config import config

PRESENTATION_BUCKET_NAME = config.storage.bucket_name
PRESENTATION_MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024

PRESENTATION_ALLOWED_EXTENSIONS = (".ppt", ".pptx")
PRESENTATION_ALLOWED_MIME_TYPES = (
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
)
PRESENTATION_DEFAULT_MIME_TYPE = "application/octet-stream"


def get_presentation_extension(file_name):
    normalized = (file_name or "").strip().lower()
    dot_index = normalized.rfind(".")
    if dot_index < 0:
        return ""
    return normalized[dot_index:]


def is_presentation_extension_allowed(file_name):
    return get_presentation_extension(file_name) in PRESENTATION_ALLOWED_EXTENSIONS


def is_presentation_mime_type_allowed(mime_type):
    return (mime_type or "").strip().lower() in PRESENTATION_ALLOWED_MIME_TYPES


def validate_presentation_file(file_name, size, mime_type=None):
    """
    Check an uploaded deck in a fixed order and return the first problem,
    or None when the file is acceptable.
    """
    name = (file_name or "").strip()
    if not name:
        return "Presentation file is required."

    if size <= 0:
        return "Presentation file is empty."

    if size > PRESENTATION_MAX_FILE_SIZE_BYTES:
        return "Presentation file size must be 5 MB or less."

    if not is_presentation_extension_allowed(name):
        return "Only .ppt or .pptx files are allowed."

    if mime_type and not is_presentation_mime_type_allowed(mime_type):
        return "Invalid presentation file type."

    return None


def build_presentation_storage_path(user_id, team_id, extension):
    return f"{user_id}/{team_id}/submission{extension}"
