from pathlib import PurePosixPath


def source_key(original_file_path: str) -> str:
    """Uploads are keyed by bare filename; any folder prefix in the message is dropped."""
    return PurePosixPath(original_file_path.replace("\\", "/")).name


def base_name(original_file_path: str) -> str:
    """'uploads/v1.mp4' -> 'v1'. Used to name every artifact of the job."""
    return PurePosixPath(source_key(original_file_path)).stem


# Separators of packager stream descriptors ("in=...,stream=...,output=...")
DESCRIPTOR_RESERVED = (",", "=")
