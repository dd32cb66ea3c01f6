"""
Disk geometry for 35 and 40 track D64 images.

Tracks are numbered from 1, sectors from 0. Outer tracks hold more sectors
than inner ones, so the byte offset of a track is the running sum of the
sector counts before it.
"""

from dataclasses import dataclass, field

from .constants import (
    D64_DISK35_SZ,
    D64_DISK40_SZ,
    DIRECTORY_TRACK,
    SECTOR_SIZE,
    SECTORS_PER_TRACK,
    TRACKS_35,
    TRACKS_40,
)
from .exceptions import DiskError, InvalidFormatError, InvalidLocationError


@dataclass(frozen=True)
class Geometry:
    """Immutable track layout of one disk variant."""
    tracks: int
    sectors_per_track: tuple[int, ...] = field(init=False)
    track_offsets: tuple[int, ...] = field(init=False)

    def __post_init__(self):
        if self.tracks not in (TRACKS_35, TRACKS_40):
            raise DiskError(f"Invalid disk type: {self.tracks} tracks")

        counts = tuple(SECTORS_PER_TRACK[:self.tracks])
        offsets = []
        position = 0
        for count in counts:
            offsets.append(position)
            position += count * SECTOR_SIZE

        object.__setattr__(self, 'sectors_per_track', counts)
        object.__setattr__(self, 'track_offsets', tuple(offsets))

    @property
    def total_sectors(self) -> int:
        return sum(self.sectors_per_track)

    @property
    def image_size(self) -> int:
        return self.total_sectors * SECTOR_SIZE

    @property
    def directory_track_sectors(self) -> int:
        return self.sectors_for_track(DIRECTORY_TRACK)

    def sectors_for_track(self, track: int) -> int:
        """Number of sectors on a track (0 for a track outside the disk)."""
        if 1 <= track <= self.tracks:
            return self.sectors_per_track[track - 1]
        return 0

    def is_valid(self, track: int, sector: int) -> bool:
        return 1 <= track <= self.tracks and 0 <= sector < self.sectors_per_track[track - 1]

    def offset_of(self, track: int, sector: int) -> int:
        """Byte offset of a sector inside the image buffer."""
        if not self.is_valid(track, sector):
            raise InvalidLocationError(f"Invalid track/sector: {track}/{sector}")
        return self.track_offsets[track - 1] + sector * SECTOR_SIZE

    def locations(self):
        """Yield every valid (track, sector) in image order."""
        for track in range(1, self.tracks + 1):
            for sector in range(self.sectors_per_track[track - 1]):
                yield track, sector


GEOMETRY_35 = Geometry(TRACKS_35)
GEOMETRY_40 = Geometry(TRACKS_40)

_GEOMETRY_BY_SIZE = {
    D64_DISK35_SZ: GEOMETRY_35,
    D64_DISK40_SZ: GEOMETRY_40,
}


def geometry_for_tracks(tracks: int) -> Geometry:
    """Return the geometry for a track count (35 or 40)."""
    if tracks == TRACKS_35:
        return GEOMETRY_35
    if tracks == TRACKS_40:
        return GEOMETRY_40
    raise DiskError(f"Invalid disk type: {tracks} tracks")


def geometry_for_size(size: int) -> Geometry:
    """Pick the geometry variant strictly from an image's byte length."""
    try:
        return _GEOMETRY_BY_SIZE[size]
    except KeyError:
        raise InvalidFormatError(
            f"Invalid D64 image size: {size} bytes "
            f"(expected {D64_DISK35_SZ} or {D64_DISK40_SZ})"
        ) from None
