"""
Custom exceptions for the D64 disk image utility.
"""


class D64Error(Exception):
    """Base exception for all D64 disk errors."""
    pass


class DiskError(D64Error):
    """Error reading/writing disk image."""
    pass


class InvalidLocationError(DiskError):
    """Track or sector outside the disk geometry."""
    pass


class InvalidFormatError(DiskError):
    """Image size or structure is not a D64 image."""
    pass


class DiskFullError(D64Error):
    """No free sector left under the allocation policy."""
    pass


class DirectoryFullError(DiskFullError):
    """No free directory entries and no room to extend the directory."""
    pass


class InvalidFilenameError(D64Error):
    """Filename is empty, too long, or contains reserved characters."""
    pass


class InvalidFileTypeError(D64Error):
    """File type cannot be stored or extracted."""
    pass


class FileNotFoundError(D64Error):
    """File not found in disk image."""
    pass


class NotRelFileError(D64Error):
    """Directory entry is not a relative (REL) file."""
    pass


class InvalidRelStructureError(D64Error):
    """REL file record length or side sectors are invalid."""
    pass


class CorruptedDiskError(D64Error):
    """Disk structure is corrupted."""
    pass
