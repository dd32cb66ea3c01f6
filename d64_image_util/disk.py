"""
D64 disk image class.

D64DiskImage owns the whole image as one fixed-size buffer. The BAM,
allocator, directory and file stores are helpers that read and write the
buffer through this object; none of them keeps a copy of it.
"""

import os
from typing import BinaryIO, Iterator

from .allocator import SectorAllocator
from .bam import BlockAvailabilityMap
from .chained import ChainedFileStore
from .constants import (
    DEFAULT_DISK_NAME,
    DIRECTORY_SECTOR,
    DIRECTORY_TRACK,
    FILE_PRG,
    FORMAT_FILL,
    LAST_DIR_SECTOR,
    SECTOR_SIZE,
    TRACKS_35,
)
from .directory import Directory
from .exceptions import (
    CorruptedDiskError,
    DiskError,
    DiskFullError,
    FileNotFoundError,
    InvalidLocationError,
)
from .geometry import Geometry, geometry_for_size, geometry_for_tracks
from .logging_config import get_logger
from .models import DirectoryEntry, TrackSector
from .relfile import RelFileStore
from .utils import extension_for_type, match_entries, validate_filename
from .verify import VerificationResult, verify_disk

logger = get_logger('disk')


class ImageFileMixin:
    """
    Mixin binding an in-memory image to a file on the host.
    Changes are written back by flush() when the image is writable.
    """

    image_path: str | None
    readonly: bool
    _file: BinaryIO | None
    _dirty: bool

    @staticmethod
    def _open_file(image_path: str, readonly: bool) -> BinaryIO:
        """Open the disk image file."""
        mode = 'rb' if readonly else 'r+b'
        try:
            return open(image_path, mode)
        except OSError as e:
            raise DiskError(f"Cannot open disk image: {e}")

    def _attach(self, image_path: str, handle: BinaryIO, readonly: bool) -> None:
        self.image_path = image_path
        self.readonly = readonly
        self._file = handle
        self._dirty = False

    def flush(self) -> None:
        """Write pending changes back to the image file."""
        if self._file is None or self.readonly or not self._dirty:
            return
        try:
            self._file.seek(0)
            self._file.write(self.to_bytes())
            self._file.flush()
        except OSError as e:
            raise DiskError(f"Cannot write disk image: {e}")
        self._dirty = False

    def close(self) -> None:
        """Close the disk image."""
        try:
            self.flush()
        finally:
            if self._file:
                self._file.close()
                self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class D64DiskImage(ImageFileMixin):
    """Commodore 1541 disk image (35 or 40 tracks)."""

    def __init__(self, tracks: int = TRACKS_35, name: str = DEFAULT_DISK_NAME,
                 disk_id: str | None = None):
        """Create a blank, formatted image."""
        self.geometry: Geometry = geometry_for_tracks(tracks)
        self._data = bytearray(self.geometry.image_size)

        self.image_path = None
        self.readonly = False
        self._file = None
        self._dirty = False

        self.bam = BlockAvailabilityMap(self)
        self.allocator = SectorAllocator(self)
        self.directory = Directory(self)
        self.chained = ChainedFileStore(self)
        self.rel = RelFileStore(self)

        self.format(name, disk_id)

    def __repr__(self) -> str:
        return f"<D64DiskImage {self.disk_name!r} {self.tracks} tracks>"

    # =========================================================================
    # Construction and persistence
    # =========================================================================

    @classmethod
    def from_bytes(cls, data: bytes) -> 'D64DiskImage':
        """
        Build an image from raw bytes.

        The variant is chosen from the length alone. An image whose BAM or
        directory header does not check out is replaced by a blank disk.

        Raises:
            InvalidFormatError: If the length is not a D64 image size
        """
        geometry = geometry_for_size(len(data))
        disk = cls(geometry.tracks)
        disk._data[:] = data
        disk.allocator.reset()

        if not disk.validate():
            logger.warning("Disk image failed validation, formatting a new disk")
            disk.format(DEFAULT_DISK_NAME)
        return disk

    @classmethod
    def load(cls, stream: BinaryIO) -> 'D64DiskImage':
        """Read a whole image from a binary stream."""
        try:
            data = stream.read()
        except OSError as e:
            raise DiskError(f"Cannot read disk image: {e}")
        return cls.from_bytes(data)

    @classmethod
    def open(cls, image_path: str, readonly: bool = True) -> 'D64DiskImage':
        """
        Open an image file. With readonly=False, changes are written back
        on flush()/close().
        """
        handle = cls._open_file(image_path, readonly)
        try:
            disk = cls.load(handle)
        except Exception:
            handle.close()
            raise
        disk._attach(image_path, handle, readonly)
        return disk

    def save(self, stream: BinaryIO) -> None:
        """Write the raw image to a binary stream."""
        try:
            stream.write(self.to_bytes())
        except OSError as e:
            raise DiskError(f"Cannot write disk image: {e}")

    def to_bytes(self) -> bytes:
        return bytes(self._data)

    def format(self, name: str = DEFAULT_DISK_NAME, disk_id: str | None = None) -> None:
        """Wipe the image and write a fresh BAM and empty directory."""
        self._check_writable()
        self._data[:] = bytes([FORMAT_FILL]) * len(self._data)
        self._dirty = True

        self.bam.initialize(name, disk_id)

        directory = bytearray(SECTOR_SIZE)
        TrackSector(0, LAST_DIR_SECTOR).pack_into(directory, 0)
        self.write_bytes(DIRECTORY_TRACK, DIRECTORY_SECTOR, 0, bytes(directory))

        self.allocator.reset()
        logger.debug(f"Formatted {self.tracks}-track disk '{name}'")

    def validate(self) -> bool:
        """Check the BAM directory pointer and the first directory link."""
        if self.bam.directory_start != (DIRECTORY_TRACK, DIRECTORY_SECTOR):
            return False
        link = self.link_of(TrackSector(DIRECTORY_TRACK, DIRECTORY_SECTOR))
        if link == (0, LAST_DIR_SECTOR):
            return True
        return self.geometry.is_valid(*link)

    @property
    def tracks(self) -> int:
        return self.geometry.tracks

    @property
    def dirty(self) -> bool:
        return self._dirty

    # =========================================================================
    # Sector access
    # =========================================================================

    def _check_writable(self) -> None:
        if self.readonly:
            raise DiskError("Disk image opened in read-only mode")

    def offset_of(self, track: int, sector: int) -> int:
        return self.geometry.offset_of(track, sector)

    def read_bytes(self, track: int, sector: int, offset: int = 0,
                   length: int = SECTOR_SIZE) -> bytes:
        """
        Read bytes inside one sector.

        Raises:
            InvalidLocationError: If the location or range is outside the sector
        """
        if offset < 0 or length < 0 or offset + length > SECTOR_SIZE:
            raise InvalidLocationError(f"Range {offset}+{length} outside sector {track}/{sector}")
        start = self.geometry.offset_of(track, sector) + offset
        return bytes(self._data[start:start + length])

    def write_bytes(self, track: int, sector: int, offset: int, data: bytes) -> None:
        """
        Write bytes inside one sector.

        Raises:
            InvalidLocationError: If the location or range is outside the sector
            DiskError: If the image is read-only
        """
        self._check_writable()
        if offset < 0 or offset + len(data) > SECTOR_SIZE:
            raise InvalidLocationError(f"Range {offset}+{len(data)} outside sector {track}/{sector}")
        start = self.geometry.offset_of(track, sector) + offset
        self._data[start:start + len(data)] = data
        self._dirty = True

    def link_of(self, location: TrackSector) -> TrackSector:
        """The track/sector link stored in the first two bytes of a sector."""
        return TrackSector.unpack_from(self.read_bytes(location.track, location.sector, 0, 2), 0)

    def read_byte(self, track: int, sector: int, offset: int) -> int | None:
        """Read one byte; None for a location outside the disk."""
        try:
            return self.read_bytes(track, sector, offset, 1)[0]
        except InvalidLocationError as e:
            logger.warning(str(e))
            return None

    def write_byte(self, track: int, sector: int, offset: int, value: int) -> bool:
        """Write one byte; False for a location outside the disk."""
        try:
            self.write_bytes(track, sector, offset, bytes([value & 0xFF]))
        except InvalidLocationError as e:
            logger.warning(str(e))
            return False
        return True

    def read_sector(self, track: int, sector: int) -> bytes | None:
        """Read a whole sector; None for a location outside the disk."""
        try:
            return self.read_bytes(track, sector)
        except InvalidLocationError as e:
            logger.warning(str(e))
            return None

    def write_sector(self, track: int, sector: int, data: bytes) -> bool:
        """Write a whole sector; False for a bad location or a size other than 256."""
        if len(data) != SECTOR_SIZE:
            logger.warning(f"Invalid sector size: {len(data)}")
            return False
        try:
            self.write_bytes(track, sector, 0, data)
        except InvalidLocationError as e:
            logger.warning(str(e))
            return False
        return True

    # =========================================================================
    # Disk header
    # =========================================================================

    @property
    def disk_name(self) -> str:
        return self.bam.disk_name

    def rename_disk(self, name: str) -> None:
        self.bam.rename_disk(validate_filename(name))

    @property
    def disk_id(self) -> str:
        return self.bam.disk_id

    @property
    def dos_type(self) -> str:
        return self.bam.dos_type

    def total_free_sectors(self) -> int:
        return self.bam.total_free_sectors()

    # =========================================================================
    # Files
    # =========================================================================

    def list_files(self, pattern: str | None = None) -> list[DirectoryEntry]:
        """Allocated directory entries, optionally filtered by a wildcard pattern."""
        entries = self.directory.list_entries()
        if pattern:
            entries = match_entries(entries, pattern)
        return entries

    def find_file(self, name: str) -> DirectoryEntry | None:
        found = self.directory.lookup(name)
        return found[1] if found else None

    def _require_file(self, name: str) -> DirectoryEntry:
        entry = self.find_file(name)
        if entry is None:
            raise FileNotFoundError(f"File not found: {name}")
        return entry

    def add_file(self, name: str, data: bytes, file_type: int = FILE_PRG,
                 replace: bool = False) -> DirectoryEntry:
        """
        Write a PRG/SEQ/USR/DEL file.

        With replace=True an existing file of the same name is removed
        once the new contents are known to fit; otherwise a duplicate
        entry is added.
        """
        validate_filename(name)
        self._check_writable()
        data = bytes(data)
        blocks = self.chained.blocks_needed(file_type, data)
        if replace:
            self._make_room(name, blocks)
        return self.chained.write(name, file_type, data)

    def add_rel_file(self, name: str, record_size: int, data: bytes,
                     replace: bool = False) -> DirectoryEntry:
        """Write a REL file with fixed-size records."""
        validate_filename(name)
        self._check_writable()
        data = bytes(data)
        blocks = self.rel.blocks_needed(name, record_size, data)
        if replace:
            self._make_room(name, blocks)
        return self.rel.write(name, record_size, data)

    def _make_room(self, name: str, blocks: int) -> None:
        """
        Remove the file being replaced, leaving it untouched if the new one cannot fit.

        Raises:
            DiskFullError: If ``blocks`` exceeds the free sectors plus those of the old file
        """
        entry = self.find_file(name)
        if entry is None:
            return

        try:
            owned = sum(1 for _ in self.iter_file_sectors(entry))
        except CorruptedDiskError as e:
            logger.warning(f"Cannot size {name} for replacement: {e}")
            owned = 0

        available = self.bam.allocatable_sectors() + owned
        if blocks > available:
            raise DiskFullError(f"Disk full: {name} needs {blocks} blocks, "
                                f"{available} available after replacing it")
        self.remove_file(name)

    def read_entry(self, entry: DirectoryEntry) -> bytes:
        if entry.is_rel:
            return self.rel.read(entry)
        return self.chained.read(entry)

    def read_file(self, name: str) -> bytes:
        """Read a file's contents by name."""
        return self.read_entry(self._require_file(name))

    def extract_file(self, name: str, dest_dir: str = '.') -> str:
        """
        Write a file to the host as <name><ext>, the extension taken from its type.

        Returns:
            Path of the written file
        """
        entry = self._require_file(name)
        ext = extension_for_type(entry.file_type)
        data = self.read_entry(entry)

        host_name = name.replace('/', '_').replace(os.sep, '_') + ext
        path = os.path.join(dest_dir, host_name)
        try:
            with open(path, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise DiskError(f"Cannot write {path}: {e}")
        return path

    def remove_file(self, name: str) -> DirectoryEntry:
        self._check_writable()
        return self.directory.remove(name)

    def rename_file(self, old_name: str, new_name: str) -> DirectoryEntry:
        validate_filename(new_name)
        self._check_writable()
        return self.directory.rename(old_name, new_name)

    def lock_file(self, name: str, locked: bool = True) -> DirectoryEntry:
        self._check_writable()
        return self.directory.lock(name, locked)

    def iter_file_sectors(self, entry: DirectoryEntry) -> Iterator[TrackSector]:
        """Every sector a file owns; side sectors included for REL files."""
        if entry.is_rel:
            return self.rel.iter_sectors(entry)
        return self.chained.iter_chain(entry.start)

    # =========================================================================
    # Directory maintenance
    # =========================================================================

    def reorder_directory(self, names: list[str]) -> bool:
        self._check_writable()
        return self.directory.reorder(names)

    def sort_directory(self, key=None, compare=None, reverse: bool = False) -> bool:
        self._check_writable()
        return self.directory.sort(key=key, compare=compare, reverse=reverse)

    def move_file_first(self, name: str) -> bool:
        self._check_writable()
        return self.directory.move_first(name)

    def compact_directory(self) -> bool:
        self._check_writable()
        return self.directory.compact()

    def verify(self, repair: bool = False, verbose: bool = False) -> VerificationResult:
        """Check the BAM against the sectors actually in use."""
        if repair:
            self._check_writable()
        return verify_disk(self, repair=repair, verbose=verbose)
