"""
D64 Disk Image Utility

A Python package for reading, writing, and maintaining Commodore 1541
disk images (.d64, 35 and 40 tracks): chained PRG/SEQ/USR files, REL
files with side sectors, directory maintenance and BAM verification.
"""

from .constants import (
    DEFAULT_DISK_NAME,
    FILE_DEL,
    FILE_PRG,
    FILE_REL,
    FILE_SEQ,
    FILE_USR,
    INTERLEAVE,
    PAYLOAD_SIZE,
    SECTOR_SIZE,
    TRACKS_35,
    TRACKS_40,
)
from .exceptions import (
    CorruptedDiskError,
    D64Error,
    DirectoryFullError,
    DiskError,
    DiskFullError,
    FileNotFoundError,
    InvalidFilenameError,
    InvalidFileTypeError,
    InvalidFormatError,
    InvalidLocationError,
    InvalidRelStructureError,
    NotRelFileError,
)
from .disk import D64DiskImage
from .formatter import OutputFormatter
from .geometry import GEOMETRY_35, GEOMETRY_40, Geometry, geometry_for_size, geometry_for_tracks
from .models import DirectoryEntry, EntryHandle, SideSector, TrackSector
from .utils import (
    has_wildcards,
    match_entries,
    match_filename,
    parse_image_path,
    validate_filename,
)
from .verify import VerificationResult, format_verification_result, verify_disk
from .commands import cmd_copy, cmd_delete, cmd_info, cmd_list, cmd_verify

__version__ = "1.0.0"

__all__ = [
    # Main disk image class
    "D64DiskImage",
    # Geometry
    "Geometry",
    "GEOMETRY_35",
    "GEOMETRY_40",
    "geometry_for_size",
    "geometry_for_tracks",
    # Data models
    "DirectoryEntry",
    "EntryHandle",
    "SideSector",
    "TrackSector",
    # Verification
    "VerificationResult",
    "verify_disk",
    "format_verification_result",
    # Exceptions
    "D64Error",
    "DiskError",
    "InvalidLocationError",
    "InvalidFormatError",
    "DiskFullError",
    "DirectoryFullError",
    "InvalidFilenameError",
    "InvalidFileTypeError",
    "FileNotFoundError",
    "NotRelFileError",
    "InvalidRelStructureError",
    "CorruptedDiskError",
    # Utilities
    "validate_filename",
    "parse_image_path",
    "has_wildcards",
    "match_filename",
    "match_entries",
    # Commands
    "cmd_info",
    "cmd_list",
    "cmd_copy",
    "cmd_delete",
    "cmd_verify",
    # Output
    "OutputFormatter",
    # Constants
    "SECTOR_SIZE",
    "PAYLOAD_SIZE",
    "TRACKS_35",
    "TRACKS_40",
    "INTERLEAVE",
    "DEFAULT_DISK_NAME",
    "FILE_DEL",
    "FILE_SEQ",
    "FILE_PRG",
    "FILE_USR",
    "FILE_REL",
]
