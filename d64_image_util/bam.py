"""
Block Availability Map (BAM) for D64 disk images.

The BAM lives at track 18 sector 0. Besides the disk header (name, id,
DOS type) it holds one 4-byte record per track: a free-sector count
followed by a 24-bit bitmap where a set bit marks a free sector. Tracks
36-40 of a 40-track image use the DolphinDOS area at offset 0xAC.

The free count is a cache of the bitmap. Every mutation here updates both
together; the verifier checks that they still agree.
"""

from .constants import (
    BAM_DIR_START,
    BAM_DISK_ID,
    BAM_DISK_NAME,
    BAM_DOS_TYPE,
    BAM_DOS_VERSION,
    BAM_EXTENDED_TRACKS,
    BAM_PAD1,
    BAM_PAD2,
    BAM_SECTOR,
    BAM_TRACK_ENTRY_SIZE,
    BAM_TRACKS,
    BAM_UNUSED,
    DIRECTORY_SECTOR,
    DIRECTORY_TRACK,
    DISK_ID_SIZE,
    DISK_NAME_SIZE,
    DOS_TYPE,
    DOS_VERSION,
    PAD_BYTE,
    SECTOR_SIZE,
    TRACKS_35,
)
from .logging_config import get_logger
from .models import TrackSector, decode_name, encode_name

logger = get_logger('bam')

RESERVED_SECTORS = (
    TrackSector(DIRECTORY_TRACK, BAM_SECTOR),
    TrackSector(DIRECTORY_TRACK, DIRECTORY_SECTOR),
)


class BlockAvailabilityMap:
    """Allocation bitmap and header fields stored in the BAM sector."""

    def __init__(self, disk):
        self._disk = disk

    # =========================================================================
    # Raw access
    # =========================================================================

    def _get(self, offset: int, length: int = 1) -> bytes:
        return self._disk.read_bytes(DIRECTORY_TRACK, BAM_SECTOR, offset, length)

    def _put(self, offset: int, data: bytes) -> None:
        self._disk.write_bytes(DIRECTORY_TRACK, BAM_SECTOR, offset, data)

    @staticmethod
    def _entry_offset(track: int) -> int:
        if track <= TRACKS_35:
            return BAM_TRACKS + (track - 1) * BAM_TRACK_ENTRY_SIZE
        return BAM_EXTENDED_TRACKS + (track - TRACKS_35 - 1) * BAM_TRACK_ENTRY_SIZE

    def _valid(self, track: int, sector: int) -> bool:
        return self._disk.geometry.is_valid(track, sector)

    # =========================================================================
    # Per-track records
    # =========================================================================

    def free_count(self, track: int) -> int:
        """Stored free-sector count of a track."""
        return self._get(self._entry_offset(track))[0]

    def set_free_count(self, track: int, count: int) -> None:
        self._put(self._entry_offset(track), bytes([count & 0xFF]))

    def bitmap(self, track: int) -> int:
        """24-bit free bitmap of a track, bit n set when sector n is free."""
        raw = self._get(self._entry_offset(track) + 1, 3)
        return raw[0] | (raw[1] << 8) | (raw[2] << 16)

    def _set_bitmap(self, track: int, value: int) -> None:
        raw = bytes([value & 0xFF, (value >> 8) & 0xFF, (value >> 16) & 0xFF])
        self._put(self._entry_offset(track) + 1, raw)

    def count_free_bits(self, track: int) -> int:
        """Population count of the bitmap over the sectors the track has."""
        sectors = self._disk.geometry.sectors_for_track(track)
        return bin(self.bitmap(track) & ((1 << sectors) - 1)).count('1')

    def is_free(self, track: int, sector: int) -> bool:
        if not self._valid(track, sector):
            return False
        return bool(self.bitmap(track) & (1 << sector))

    def is_reserved(self, track: int, sector: int) -> bool:
        return (track, sector) in RESERVED_SECTORS

    def set_sector_bit(self, track: int, sector: int, free: bool) -> None:
        """Flip one bitmap bit without touching the free count (repair path)."""
        bits = self.bitmap(track)
        if free:
            bits |= 1 << sector
        else:
            bits &= ~(1 << sector)
        self._set_bitmap(track, bits)

    # =========================================================================
    # Allocation primitives
    # =========================================================================

    def mark_used(self, track: int, sector: int) -> bool:
        """
        Mark a sector allocated.

        Returns False, changing nothing, when the location is invalid,
        reserved, or already in use.
        """
        if not self._valid(track, sector):
            logger.warning(f"Invalid track/sector {track}/{sector} in BAM")
            return False
        if self.is_reserved(track, sector):
            logger.warning(f"Attempt to allocate reserved sector {track}/{sector} ignored")
            return False

        bits = self.bitmap(track)
        if not bits & (1 << sector):
            return False

        self._set_bitmap(track, bits & ~(1 << sector))
        self.set_free_count(track, self.free_count(track) - 1)
        return True

    def mark_free(self, track: int, sector: int) -> bool:
        """
        Mark a sector free.

        Returns False, changing nothing, when the location is invalid,
        reserved, or already free.
        """
        if not self._valid(track, sector):
            logger.warning(f"Invalid track/sector {track}/{sector} in BAM")
            return False
        if self.is_reserved(track, sector):
            logger.warning(f"Attempt to free reserved sector {track}/{sector} ignored")
            return False

        bits = self.bitmap(track)
        if bits & (1 << sector):
            return False

        self._set_bitmap(track, bits | (1 << sector))
        self.set_free_count(track, self.free_count(track) + 1)
        return True

    def total_free_sectors(self) -> int:
        """Blocks free, not counting the directory track."""
        return sum(
            self.free_count(track)
            for track in range(1, self._disk.geometry.tracks + 1)
            if track != DIRECTORY_TRACK
        )

    def allocatable_sectors(self) -> int:
        """Free sectors the allocator can still hand out, directory track included."""
        return sum(self.free_count(track) for track in range(1, self._disk.geometry.tracks + 1))

    # =========================================================================
    # Header fields
    # =========================================================================

    def initialize(self, name: str, disk_id: str | None = None) -> None:
        """Write a fresh BAM: header, every sector free, reserved sectors used."""
        header = bytearray(SECTOR_SIZE)
        TrackSector(DIRECTORY_TRACK, DIRECTORY_SECTOR).pack_into(header, BAM_DIR_START)
        header[BAM_DOS_VERSION] = DOS_VERSION
        header[BAM_UNUSED] = 0
        header[BAM_DISK_NAME:BAM_DISK_NAME + DISK_NAME_SIZE] = encode_name(name, DISK_NAME_SIZE)
        header[BAM_PAD1:BAM_PAD1 + 2] = bytes([PAD_BYTE, PAD_BYTE])
        header[BAM_DISK_ID:BAM_DISK_ID + DISK_ID_SIZE] = encode_name(disk_id or '', DISK_ID_SIZE)
        header[BAM_PAD2] = PAD_BYTE
        header[BAM_DOS_TYPE:BAM_DOS_TYPE + 2] = DOS_TYPE
        # everything from BAM_UNUSED3 on stays zero, extended track area included
        self._disk.write_bytes(DIRECTORY_TRACK, BAM_SECTOR, 0, bytes(header))

        for track in range(1, self._disk.geometry.tracks + 1):
            sectors = self._disk.geometry.sectors_for_track(track)
            self._set_bitmap(track, (1 << sectors) - 1)
            self.set_free_count(track, sectors)

        for location in RESERVED_SECTORS:
            self._reserve(*location)

    def _reserve(self, track: int, sector: int) -> None:
        """Allocate a reserved sector; only used while formatting."""
        bits = self.bitmap(track)
        if bits & (1 << sector):
            self._set_bitmap(track, bits & ~(1 << sector))
            self.set_free_count(track, self.free_count(track) - 1)

    @property
    def directory_start(self) -> TrackSector:
        return TrackSector.unpack_from(self._get(BAM_DIR_START, 2), 0)

    @property
    def disk_name(self) -> str:
        return decode_name(self._get(BAM_DISK_NAME, DISK_NAME_SIZE))

    def rename_disk(self, name: str) -> None:
        self._put(BAM_DISK_NAME, encode_name(name, DISK_NAME_SIZE))

    @property
    def disk_id(self) -> str:
        return decode_name(self._get(BAM_DISK_ID, DISK_ID_SIZE))

    @property
    def dos_type(self) -> str:
        return self._get(BAM_DOS_TYPE, 2).decode('latin-1')
