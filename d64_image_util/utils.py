"""
Utility functions for the D64 disk image utility.
"""

import os
import re

from .constants import (
    FILE_NAME_SIZE,
    FILE_PRG,
    FILE_TYPE_EXTENSIONS,
    FILE_TYPE_NAMES,
    INVALID_FILENAME_CHARS,
    PAD_BYTE,
)
from .exceptions import InvalidFilenameError, InvalidFileTypeError
from .models import DirectoryEntry

IMAGE_EXTENSION = '.d64'


def validate_filename(filename: str) -> str:
    """
    Validate a CBM file name.

    Names are 1-16 latin-1 characters without the characters CBM DOS
    reserves for patterns and command syntax. Case is preserved.
    Raises InvalidFilenameError if the name cannot be stored.
    """
    if not filename:
        raise InvalidFilenameError("Filename cannot be empty")
    if len(filename) > FILE_NAME_SIZE:
        raise InvalidFilenameError(f"Filename '{filename}' exceeds {FILE_NAME_SIZE} characters")

    for char in filename:
        if char in INVALID_FILENAME_CHARS:
            raise InvalidFilenameError(f"Invalid character '{char}' in filename")
        if ord(char) > 0xFF or ord(char) == PAD_BYTE:
            raise InvalidFilenameError(f"Character {char!r} cannot be stored in a CBM filename")

    return filename


def host_to_cbm_name(host_path: str) -> str:
    """Derive a CBM name from a host file name: extension dropped, upper case, 16 chars."""
    stem = os.path.splitext(os.path.basename(host_path))[0]
    return stem.upper()[:FILE_NAME_SIZE]


def parse_image_path(path_spec: str) -> tuple[str | None, str | None]:
    """
    Parse path into (image_path, internal_name).

    Examples:
        'disk.d64:HELLO' -> ('disk.d64', 'HELLO')
        'disk.d64:' -> ('disk.d64', None)
        'disk.d64' -> ('disk.d64', None)
        'hello.prg' -> (None, 'hello.prg')
    """
    idx = path_spec.lower().find(IMAGE_EXTENSION)
    if idx == -1:
        # Regular filesystem path
        return (None, path_spec)

    split_pos = idx + len(IMAGE_EXTENSION)
    image_path = path_spec[:split_pos]
    remainder = path_spec[split_pos:]

    if remainder.startswith(':') and len(remainder) > 1:
        return (image_path, remainder[1:])
    return (image_path, None)


def has_wildcards(pattern: str) -> bool:
    """Check if a string contains wildcard characters."""
    return '*' in pattern or '?' in pattern


def match_filename(pattern: str, filename: str) -> bool:
    """
    Match a wildcard pattern against a CBM file name, ignoring case.
    Supports * (any characters) and ? (single character).
    """
    regex = ''.join(
        '.*' if char == '*' else '.' if char == '?' else re.escape(char)
        for char in pattern
    )
    return re.fullmatch(regex, filename, re.IGNORECASE | re.DOTALL) is not None


def match_entries(entries: list[DirectoryEntry], pattern: str) -> list[DirectoryEntry]:
    """
    Filter directory entries by wildcard pattern.
    Without wildcards the name must match exactly.
    """
    if not has_wildcards(pattern):
        return [e for e in entries if e.name == pattern]
    return [e for e in entries if match_filename(pattern, e.name)]


def file_type_from_name(type_name: str) -> int:
    """Map 'PRG', 'seq', ... to a file type value."""
    for value, name in FILE_TYPE_NAMES.items():
        if name == type_name.upper():
            return value
    raise InvalidFileTypeError(f"Unknown file type: {type_name}")


def file_type_from_extension(host_path: str) -> int:
    """File type for a host file; unknown extensions are stored as PRG."""
    ext = os.path.splitext(host_path)[1].lower()
    for value, mapped in FILE_TYPE_EXTENSIONS.items():
        if mapped == ext:
            return value
    return FILE_PRG


def extension_for_type(file_type: int) -> str:
    """Host extension used when extracting a file of this type."""
    try:
        return FILE_TYPE_EXTENSIONS[file_type]
    except KeyError:
        raise InvalidFileTypeError(f"No extension for file type {file_type}") from None
