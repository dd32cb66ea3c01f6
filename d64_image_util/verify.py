"""
Disk verification and repair for D64 disk images.

The verifier rebuilds the set of sectors in use from the disk structures
(BAM sector, directory chain, every file's chain) and compares it with the
BAM, sector by sector and then per-track free count.
"""

from dataclasses import dataclass, field
from typing import Any

from .constants import BAM_SECTOR, DIRECTORY_TRACK
from .exceptions import CorruptedDiskError
from .logging_config import get_logger
from .models import TrackSector

logger = get_logger('verify')


@dataclass
class VerificationResult:
    """Results from disk verification."""
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    info: list[str] = field(default_factory=list)
    repairs: list[str] = field(default_factory=list)

    # Statistics
    files_checked: int = 0
    directory_sectors: int = 0
    sectors_in_use: int = 0
    cross_linked_sectors: list[TrackSector] = field(default_factory=list)

    def add_error(self, message: str):
        """Add an error (disk is invalid)."""
        self.errors.append(message)
        self.is_valid = False
        logger.debug(message)

    def add_warning(self, message: str):
        """Add a warning (disk usable but has issues)."""
        self.warnings.append(message)
        logger.debug(message)

    def add_info(self, message: str):
        """Add informational message."""
        self.info.append(message)

    def add_repair(self, message: str):
        self.repairs.append(message)
        logger.info(message)


def verify_disk(disk: Any, repair: bool = False, verbose: bool = False) -> VerificationResult:
    """
    Verify the BAM of a disk image against the sectors actually in use.

    Args:
        disk: A D64DiskImage
        repair: Rewrite BAM bits and free counts to match observed usage
        verbose: Whether to include detailed information

    Returns:
        VerificationResult; is_valid is False if anything disagreed,
        even when it was repaired
    """
    result = VerificationResult()
    used = _collect_used_sectors(disk, result)
    result.sectors_in_use = len(used)

    _compare_bitmap(disk, used, result, repair)
    _compare_free_counts(disk, result, repair)

    if verbose:
        result.add_info(f"Blocks free: {disk.total_free_sectors()}")
        result.add_info(f"Files checked: {result.files_checked}")

    return result


def _collect_used_sectors(disk: Any, result: VerificationResult) -> set[TrackSector]:
    used = {TrackSector(DIRECTORY_TRACK, BAM_SECTOR)}

    try:
        for location in disk.directory.iter_sectors():
            used.add(location)
            result.directory_sectors += 1
    except CorruptedDiskError as e:
        result.add_error(f"Directory: {e}")

    try:
        entries = disk.directory.list_entries()
    except CorruptedDiskError as e:
        result.add_error(f"Cannot read directory entries: {e}")
        return used

    for entry in entries:
        result.files_checked += 1
        try:
            for location in disk.iter_file_sectors(entry):
                if location in used:
                    result.add_error(f"{entry.name}: sector {location} is used more than once")
                    result.cross_linked_sectors.append(location)
                used.add(location)
        except CorruptedDiskError as e:
            result.add_error(f"{entry.name}: {e}")

    return used


def _compare_bitmap(disk: Any, used: set[TrackSector], result: VerificationResult,
                    repair: bool) -> None:
    bam = disk.bam
    for track, sector in disk.geometry.locations():
        in_use = (track, sector) in used
        marked_free = bam.is_free(track, sector)

        if in_use and marked_free:
            result.add_error(f"Sector {track}/{sector} is in use but marked free in BAM")
        elif not in_use and not marked_free:
            result.add_error(f"Sector {track}/{sector} is not in use but marked used in BAM")
        else:
            continue

        if repair:
            bam.set_sector_bit(track, sector, free=not in_use)
            result.add_repair(f"Fixed BAM bit for sector {track}/{sector}")


def _compare_free_counts(disk: Any, result: VerificationResult, repair: bool) -> None:
    bam = disk.bam
    for track in range(1, disk.geometry.tracks + 1):
        stored = bam.free_count(track)
        counted = bam.count_free_bits(track)
        if stored == counted:
            continue

        result.add_error(f"Track {track}: free count is {stored}, bitmap has {counted} free")
        if repair:
            bam.set_free_count(track, counted)
            result.add_repair(f"Fixed free count of track {track}: {stored} -> {counted}")


def format_verification_result(result: VerificationResult) -> str:
    """Format verification result as human-readable string."""
    lines = []

    if result.is_valid:
        lines.append("Disk verification: PASSED")
    else:
        lines.append("Disk verification: FAILED")

    lines.append("")

    if result.errors:
        lines.append(f"Errors ({len(result.errors)}):")
        for error in result.errors:
            lines.append(f"  ERROR: {error}")
        lines.append("")

    if result.warnings:
        lines.append(f"Warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            lines.append(f"  WARNING: {warning}")
        lines.append("")

    if result.repairs:
        lines.append(f"Repairs ({len(result.repairs)}):")
        for repair in result.repairs:
            lines.append(f"  FIXED: {repair}")
        lines.append("")

    for message in result.info:
        lines.append(f"  {message}")
    if result.info:
        lines.append("")

    lines.append("Summary:")
    lines.append(f"  Files checked: {result.files_checked}")
    lines.append(f"  Directory sectors: {result.directory_sectors}")
    lines.append(f"  Sectors in use: {result.sectors_in_use}")
    if result.cross_linked_sectors:
        lines.append(f"  Cross-linked sectors: {len(result.cross_linked_sectors)}")

    return '\n'.join(lines)
