"""
Disk image creation for D64 disk images.

Provides functions to create blank, formatted 35 and 40 track images.
"""

from .constants import DEFAULT_DISK_NAME, TRACKS_35, TRACKS_40
from .disk import D64DiskImage
from .exceptions import DiskError
from .utils import validate_filename


def create_d64(
    path: str,
    tracks: int = TRACKS_35,
    name: str = DEFAULT_DISK_NAME,
    disk_id: str | None = None
) -> None:
    """
    Create a blank D64 disk image.

    Args:
        path: Path for the new disk image file
        tracks: 35 (standard 1541) or 40 (extended, DolphinDOS BAM)
        name: Disk name (16 characters max)
        disk_id: Optional 2-character disk id

    Raises:
        DiskError: If creation fails
    """
    if tracks not in (TRACKS_35, TRACKS_40):
        raise DiskError(f"Invalid track count: {tracks}. Use 35 or 40.")
    validate_filename(name)
    if disk_id is not None and len(disk_id) > 2:
        raise DiskError(f"Disk id '{disk_id}' exceeds 2 characters")

    disk = D64DiskImage(tracks, name, disk_id)

    try:
        with open(path, 'wb') as f:
            disk.save(f)
    except OSError as e:
        raise DiskError(f"Failed to create disk image: {e}")


def get_supported_formats() -> dict:
    """
    Get information about supported disk formats.

    Returns:
        Dictionary with format information
    """
    return {
        'd64': {
            '35': {
                'description': 'Commodore 1541, 35 tracks',
                'size': 174848,
                'blocks_free': 664,
            },
            '40': {
                'description': 'Commodore 1541, 40 tracks (DolphinDOS BAM)',
                'size': 196608,
                'blocks_free': 749,
            },
        },
    }
