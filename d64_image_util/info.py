"""
Disk information and statistics for D64 disk images.
"""

from typing import Any

from .constants import DIRECTORY_TRACK, PAYLOAD_SIZE, TRACKS_35


def get_disk_info(disk: Any) -> dict[str, Any]:
    """
    Get capacity, usage and header information about a disk image.

    Block counts follow the 1541 convention: the directory track is not
    counted, so a blank 35-track disk has 664 blocks free.

    Args:
        disk: A D64DiskImage

    Returns:
        Dictionary containing disk information
    """
    geometry = disk.geometry
    total_blocks = geometry.total_sectors - geometry.directory_track_sectors
    free_blocks = disk.total_free_sectors()
    used_blocks = total_blocks - free_blocks
    entries = disk.list_files()

    return {
        'type': '1541 D64 (35 tracks)' if disk.tracks == TRACKS_35 else '1541 D64 (40 tracks, DolphinDOS BAM)',
        'readonly': getattr(disk, 'readonly', False),
        'disk_name': disk.disk_name,
        'disk_id': disk.disk_id,
        'dos_type': disk.dos_type,
        'tracks': disk.tracks,
        'total_sectors': geometry.total_sectors,
        'image_size': geometry.image_size,
        'total_blocks': total_blocks,
        'free_blocks': free_blocks,
        'used_blocks': used_blocks,
        'free_bytes': free_blocks * PAYLOAD_SIZE,
        'free_formatted': _format_size(free_blocks * PAYLOAD_SIZE),
        'percent_used': round(used_blocks / total_blocks * 100, 1) if total_blocks > 0 else 0,
        'file_count': len(entries),
        'locked_count': sum(1 for e in entries if e.is_locked),
        'directory_sectors': len(disk.directory.sectors()),
        'directory_track_free': disk.bam.free_count(DIRECTORY_TRACK),
    }


def _format_size(size_bytes: int) -> str:
    """Format a size in bytes as a human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    return f"{size_bytes / 1024:.1f} KB"


def format_disk_info(info: dict[str, Any], verbose: bool = False) -> str:
    """
    Format disk information as a human-readable string.

    Args:
        info: Dictionary from get_disk_info()
        verbose: Whether to include detailed information

    Returns:
        Formatted string
    """
    lines = []

    lines.append(f"Disk Type: {info.get('type', 'Unknown')}")
    lines.append(f"Disk Name: {info.get('disk_name', '')}")
    lines.append(f"Disk ID: {info.get('disk_id', '')} {info.get('dos_type', '')}")
    lines.append(f"Mode: {'Read-only' if info.get('readonly') else 'Read-write'}")
    lines.append(f"Blocks: {info.get('total_blocks', 0)}")
    lines.append(f"Used: {info.get('used_blocks', 0)} blocks ({info.get('percent_used', 0):.1f}%)")
    lines.append(f"Free: {info.get('free_blocks', 0)} blocks ({info.get('free_formatted', '0 B')})")
    lines.append(f"Files: {info.get('file_count', 0)}")

    if verbose:
        lines.append("")
        lines.append("Technical Details:")
        lines.append(f"  Tracks: {info.get('tracks', 0)}")
        lines.append(f"  Total sectors: {info.get('total_sectors', 0)}")
        lines.append(f"  Image size: {info.get('image_size', 0)} bytes")
        lines.append(f"  Directory sectors: {info.get('directory_sectors', 0)}")
        lines.append(f"  Free sectors on directory track: {info.get('directory_track_free', 0)}")
        lines.append(f"  Locked files: {info.get('locked_count', 0)}")

    return '\n'.join(lines)
