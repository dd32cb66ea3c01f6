"""
Chained (PRG/SEQ/USR/DEL) file storage.

Each data sector starts with a link to the next sector followed by 254
payload bytes. The last sector has track 0 in its link and the sector byte
holds the number of valid payload bytes instead of a sector number.
"""

from typing import Iterator

from .constants import FILE_DEL, FILE_USR, LINK_SIZE, PAYLOAD_SIZE, SECTOR_SIZE
from .exceptions import CorruptedDiskError, DiskFullError, InvalidFileTypeError
from .logging_config import get_logger
from .models import DirectoryEntry, TrackSector

logger = get_logger('chained')


def sectors_needed(size: int) -> int:
    """Number of data sectors for a file of ``size`` bytes (at least one)."""
    return max(1, -(-size // PAYLOAD_SIZE))


class ChainedFileStore:
    """Reads and writes files stored as a linked list of sectors."""

    def __init__(self, disk):
        self._disk = disk

    def iter_chain(self, start: TrackSector) -> Iterator[TrackSector]:
        """
        Yield the sectors of a chain in order.

        Raises:
            CorruptedDiskError: If a link points outside the disk or the chain loops
        """
        geometry = self._disk.geometry
        seen = set()
        location = start

        while not location.is_end:
            if not geometry.is_valid(*location):
                raise CorruptedDiskError(f"Chain link {location} is outside the disk")
            if location in seen:
                raise CorruptedDiskError(f"Circular chain detected at {location}")
            seen.add(location)
            yield location
            location = self._disk.link_of(location)

    def read(self, entry: DirectoryEntry) -> bytes:
        """Read the contents of a chained file."""
        result = bytearray()
        for location in self.iter_chain(entry.start):
            data = self._disk.read_bytes(location.track, location.sector, 0, SECTOR_SIZE)
            link = TrackSector.unpack_from(data, 0)
            if link.is_end:
                count = min(link.sector, PAYLOAD_SIZE)
                result.extend(data[LINK_SIZE:LINK_SIZE + count])
            else:
                result.extend(data[LINK_SIZE:])
        return bytes(result)

    @staticmethod
    def blocks_needed(file_type: int, data: bytes) -> int:
        """Check the file type and return the sectors the data will occupy."""
        if not FILE_DEL <= file_type <= FILE_USR:
            raise InvalidFileTypeError(f"Cannot store file type {file_type} as a chained file")
        return sectors_needed(len(data))

    def write(self, name: str, file_type: int, data: bytes) -> DirectoryEntry:
        """
        Store a file and add its directory entry.

        On a full disk every sector taken by this call is released again
        before DiskFullError propagates.

        Args:
            name: CBM file name (already validated)
            file_type: FILE_DEL, FILE_SEQ, FILE_PRG or FILE_USR
            data: File contents

        Returns:
            The directory entry that was written

        Raises:
            InvalidFileTypeError: For REL or unknown types
            DiskFullError: If there is no room for the data or the entry
        """
        count = self.blocks_needed(file_type, data)
        allocator = self._disk.allocator
        allocated: list[TrackSector] = []

        for _ in range(count):
            location = allocator.allocate_any()
            if location is None:
                allocator.release(allocated)
                logger.warning(f"Disk full writing {name}: needed {count} blocks, "
                               f"found {len(allocated)}")
                raise DiskFullError(f"Disk full: {name} needs {count} blocks")
            allocated.append(location)

        for i, location in enumerate(allocated):
            chunk = data[i * PAYLOAD_SIZE:(i + 1) * PAYLOAD_SIZE]
            if i + 1 < count:
                link = allocated[i + 1]
            else:
                link = TrackSector(0, len(chunk))
            sector = bytes(link) + chunk + bytes(PAYLOAD_SIZE - len(chunk))
            self._disk.write_bytes(location.track, location.sector, 0, sector)

        entry = DirectoryEntry.new(name, file_type, allocated[0])
        entry.block_count = count

        try:
            self._disk.directory.add(entry)
        except DiskFullError:
            allocator.release(allocated)
            raise

        logger.debug(f"Wrote {name}: {len(data)} bytes in {count} blocks from {allocated[0]}")
        return entry
