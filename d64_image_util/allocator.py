"""
Sector allocation policy.

Sectors are placed on the tracks nearest the directory track first, to keep
head travel short: 18, 17, 19, 16, 20 ... 1, 35, then 36-40 on 40-track
images. Within a track, sectors are spaced by an interleave from the last
sector handed out on that track. The directory grows through the same
search, so file data may share track 18 with it.
"""

from typing import Iterable

from .constants import DIRECTORY_TRACK, INTERLEAVE, TRACKS_35
from .logging_config import get_logger
from .models import TrackSector

logger = get_logger('allocator')


def search_order(tracks: int) -> list[int]:
    """Track order used when allocating sectors, starting at the directory track."""
    order = [DIRECTORY_TRACK]
    for distance in range(1, TRACKS_35):
        below = DIRECTORY_TRACK - distance
        above = DIRECTORY_TRACK + distance
        if below >= 1:
            order.append(below)
        if above <= TRACKS_35:
            order.append(above)
    order.extend(range(TRACKS_35 + 1, tracks + 1))
    return order


class SectorAllocator:
    """Hands out free sectors and remembers the last sector used per track."""

    def __init__(self, disk):
        self._disk = disk
        self.last_sector_used: list[int] = []
        self.reset()

    def reset(self) -> None:
        """Forget allocation history, e.g. after format or load."""
        self.last_sector_used = [0] * (self._disk.geometry.tracks + 1)

    @property
    def search_order(self) -> list[int]:
        return search_order(self._disk.geometry.tracks)

    def allocate_on_track(self, track: int, interleave: int = INTERLEAVE) -> int | None:
        """
        Allocate one sector on a track.

        The scan starts ``interleave`` sectors after the last sector used on
        the track and wraps around.

        Returns:
            Sector number, or None if the track has no free sector
        """
        bam = self._disk.bam
        sectors = self._disk.geometry.sectors_for_track(track)
        if sectors == 0 or bam.free_count(track) == 0:
            return None

        start = (self.last_sector_used[track] + interleave) % sectors
        for step in range(sectors):
            sector = (start + step) % sectors
            if bam.is_free(track, sector) and bam.mark_used(track, sector):
                self.last_sector_used[track] = sector
                logger.debug(f"Allocated sector {track}/{sector}")
                return sector

        logger.warning(f"Track {track} free count is {bam.free_count(track)} "
                       f"but no free sector was found")
        return None

    def allocate_any(self) -> TrackSector | None:
        """Allocate a sector on the first track in search order with room."""
        for track in self.search_order:
            sector = self.allocate_on_track(track)
            if sector is not None:
                return TrackSector(track, sector)
        return None

    def release(self, locations: Iterable[TrackSector]) -> None:
        """Return sectors to the free pool, e.g. when an operation is rolled back."""
        for location in locations:
            if not self._disk.bam.mark_free(location.track, location.sector):
                logger.warning(f"Sector {location} was already free")
