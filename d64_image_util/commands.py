"""
Command handlers for the D64 disk image utility.
"""

import os
from pathlib import Path

from .constants import FILE_REL
from .disk import D64DiskImage
from .exceptions import D64Error, InvalidRelStructureError
from .formatter import OutputFormatter
from .utils import (
    file_type_from_extension,
    file_type_from_name,
    has_wildcards,
    host_to_cbm_name,
    match_entries,
    parse_image_path,
    validate_filename,
)


def cmd_list(args, formatter: OutputFormatter) -> int:
    """Handle the 'list' command."""
    image_path, internal_name = parse_image_path(args.path)

    if image_path is None:
        formatter.error(f"Invalid disk image path: {args.path}")
        return 1

    pattern = getattr(args, 'pattern', None) or internal_name

    try:
        with D64DiskImage.open(image_path, readonly=True) as disk:
            formatter.list_files(
                disk.list_files(pattern),
                disk_name=disk.disk_name,
                disk_id=disk.disk_id,
                dos_type=disk.dos_type,
                blocks_free=disk.total_free_sectors(),
            )
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_copy(args, formatter: OutputFormatter) -> int:
    """Handle the 'copy' command."""
    source_image, source_name = parse_image_path(args.source)
    dest_image, dest_name = parse_image_path(args.dest)

    # Determine direction
    if source_image is not None and source_name is not None and dest_image is None:
        return copy_from_image(source_image, source_name, args.dest, formatter)

    elif source_image is None and dest_image is not None:
        return copy_to_image(
            args.source, dest_image, dest_name, formatter,
            file_type=getattr(args, 'type', None),
            record_size=getattr(args, 'record_size', None),
            replace=getattr(args, 'replace', False),
        )

    else:
        formatter.error("Invalid source/destination. One must be image.d64:NAME, one must be a host path.")
        return 1


def copy_from_image(
    image_path: str,
    internal_name: str,
    dest_path: str,
    formatter: OutputFormatter
) -> int:
    """Copy file(s) from disk image to the host. Supports wildcards."""
    source_display = f"{image_path}:{internal_name}"

    try:
        with D64DiskImage.open(image_path, readonly=True) as disk:
            if has_wildcards(internal_name):
                matching = match_entries(disk.list_files(), internal_name)
                if not matching:
                    formatter.error(f"No files matching '{internal_name}'")
                    return 1

                # Destination must be a directory for multi-file copy
                dest_dir = Path(dest_path)
                dest_dir.mkdir(parents=True, exist_ok=True)

                total_bytes = 0
                copied_files = []
                for entry in matching:
                    written = disk.extract_file(entry.name, str(dest_dir))
                    size = os.path.getsize(written)
                    total_bytes += size
                    copied_files.append({"name": entry.name, "size": size, "dest": written})
                    if not formatter.json_mode:
                        print(f"  {entry.name} -> {written} ({size:,} bytes)")

                formatter.success(
                    f"Copied {len(copied_files)} file(s), {total_bytes:,} bytes total",
                    source=source_display,
                    dest=dest_path,
                    files=len(copied_files),
                    bytes=total_bytes,
                    copied=copied_files
                )
                return 0

            dest = Path(dest_path)
            if dest.is_dir():
                written = disk.extract_file(internal_name, str(dest))
                size = os.path.getsize(written)
            else:
                data = disk.read_file(internal_name)
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(data)
                written = str(dest)
                size = len(data)

            formatter.success(
                f"Copied {size:,} bytes",
                source=source_display,
                dest=written,
                bytes=size
            )
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def copy_to_image(
    source_path: str,
    image_path: str,
    internal_name: str | None,
    formatter: OutputFormatter,
    file_type: str | None = None,
    record_size: int | None = None,
    replace: bool = False
) -> int:
    """Copy a host file into a disk image."""
    try:
        name = internal_name or host_to_cbm_name(source_path)
        validate_filename(name)

        if file_type:
            type_value = file_type_from_name(file_type)
        else:
            type_value = file_type_from_extension(source_path)

        data = Path(source_path).read_bytes()

        disk = D64DiskImage.open(image_path, readonly=False)
        try:
            if type_value == FILE_REL:
                if not record_size:
                    raise InvalidRelStructureError("REL files need a record size (-r)")
                entry = disk.add_rel_file(name, record_size, data, replace=replace)
            else:
                entry = disk.add_file(name, data, type_value, replace=replace)
        finally:
            disk.close()

        formatter.success(
            f"Copied {len(data):,} bytes to {image_path}:{name} ({entry.block_count} blocks)",
            source=source_path,
            dest=f"{image_path}:{name}",
            type=entry.type_name,
            bytes=len(data),
            blocks=entry.block_count
        )
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def _parse_file_path(path_spec: str, formatter: OutputFormatter) -> tuple[str | None, str | None]:
    image_path, internal_name = parse_image_path(path_spec)
    if image_path is None or internal_name is None:
        formatter.error(f"Invalid disk image path: {path_spec}")
        return None, None
    return image_path, internal_name


def cmd_delete(args, formatter: OutputFormatter) -> int:
    """Handle the 'delete' command. Supports wildcards."""
    image_path, internal_name = _parse_file_path(args.path, formatter)
    if image_path is None:
        return 1

    try:
        disk = D64DiskImage.open(image_path, readonly=False)
        try:
            if has_wildcards(internal_name):
                names = [e.name for e in match_entries(disk.list_files(), internal_name)]
                if not names:
                    formatter.error(f"No files matching '{internal_name}'")
                    return 1
            else:
                names = [internal_name]

            for name in names:
                disk.remove_file(name)
        finally:
            disk.close()

        formatter.success(
            f"Deleted {', '.join(names)}",
            deleted=[f"{image_path}:{name}" for name in names],
            blocks_free=disk.total_free_sectors()
        )
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_rename(args, formatter: OutputFormatter) -> int:
    """Handle the 'rename' command."""
    image_path, internal_name = _parse_file_path(args.path, formatter)
    if image_path is None:
        return 1

    try:
        with D64DiskImage.open(image_path, readonly=False) as disk:
            disk.rename_file(internal_name, args.new_name)

        formatter.success(
            f"Renamed {internal_name} to {args.new_name}",
            old=internal_name,
            new=args.new_name
        )
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_lock(args, formatter: OutputFormatter) -> int:
    """Handle the 'lock' command."""
    image_path, internal_name = _parse_file_path(args.path, formatter)
    if image_path is None:
        return 1

    locked = not getattr(args, 'unlock', False)

    try:
        with D64DiskImage.open(image_path, readonly=False) as disk:
            disk.lock_file(internal_name, locked)

        formatter.success(
            f"{'Locked' if locked else 'Unlocked'} {internal_name}",
            name=internal_name,
            locked=locked
        )
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_sort(args, formatter: OutputFormatter) -> int:
    """Handle the 'sort' command: explicit order or by name."""
    image_path, _ = parse_image_path(args.path)

    if image_path is None:
        formatter.error(f"Invalid disk image path: {args.path}")
        return 1

    order = getattr(args, 'order', None)
    reverse = getattr(args, 'reverse', False)

    try:
        with D64DiskImage.open(image_path, readonly=False) as disk:
            if order:
                changed = disk.reorder_directory(order)
            else:
                changed = disk.sort_directory(reverse=reverse)
            names = [e.name for e in disk.list_files()]

        message = "Directory reordered" if changed else "Directory already in order"
        formatter.success(message, changed=changed, files=names)
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_compact(args, formatter: OutputFormatter) -> int:
    """Handle the 'compact' command."""
    image_path, _ = parse_image_path(args.path)

    if image_path is None:
        formatter.error(f"Invalid disk image path: {args.path}")
        return 1

    try:
        with D64DiskImage.open(image_path, readonly=False) as disk:
            changed = disk.compact_directory()
            sectors = len(disk.directory.sectors())

        message = "Directory compacted" if changed else "Directory already compact"
        formatter.success(message, changed=changed, directory_sectors=sectors)
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_verify(args, formatter: OutputFormatter) -> int:
    """Handle the 'verify' command. Exit code 1 when the disk was not valid."""
    from .logging_config import log_to_file
    from .verify import format_verification_result

    image_path, _ = parse_image_path(args.path)

    if image_path is None:
        formatter.error(f"Invalid disk image path: {args.path}")
        return 1

    repair = getattr(args, 'repair', False)
    verbose = getattr(args, 'verbose', False)
    log_path = getattr(args, 'log', None)

    try:
        with D64DiskImage.open(image_path, readonly=not repair) as disk:
            if log_path:
                with log_to_file(log_path):
                    result = disk.verify(repair=repair, verbose=verbose)
            else:
                result = disk.verify(repair=repair, verbose=verbose)

        if formatter.json_mode:
            formatter.success(
                "Verification complete",
                valid=result.is_valid,
                errors=result.errors,
                warnings=result.warnings,
                repairs=result.repairs,
                files_checked=result.files_checked,
                sectors_in_use=result.sectors_in_use
            )
        else:
            print(format_verification_result(result))

        return 0 if result.is_valid else 1

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_create(args, formatter: OutputFormatter) -> int:
    """Handle the 'create' command."""
    from .creator import create_d64

    output_path = args.output

    # Check if file already exists
    if os.path.exists(output_path) and not getattr(args, 'force', False):
        formatter.error(f"File already exists: {output_path}. Use --force to overwrite.")
        return 1

    tracks = getattr(args, 'tracks', 35)
    name = getattr(args, 'name', None) or "NEW DISK"
    disk_id = getattr(args, 'id', None)

    try:
        create_d64(output_path, tracks=tracks, name=name, disk_id=disk_id)
        formatter.success(
            f"Created {tracks}-track D64 image: {output_path}",
            path=output_path,
            tracks=tracks,
            disk_name=name
        )
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_info(args, formatter: OutputFormatter) -> int:
    """Handle the 'info' command."""
    from .info import format_disk_info, get_disk_info

    image_path, _ = parse_image_path(args.path)

    if image_path is None:
        formatter.error(f"Invalid disk image path: {args.path}")
        return 1

    try:
        with D64DiskImage.open(image_path, readonly=True) as disk:
            info = get_disk_info(disk)

        if formatter.json_mode:
            formatter.success("Disk information", **info)
        else:
            print(format_disk_info(info, verbose=getattr(args, 'verbose', False)))
        return 0

    except D64Error as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


EXTENDED_HELP = """
D64 Disk Image Utility - Detailed Help
======================================

OVERVIEW
--------
This utility manages Commodore 1541 disk images (.d64). It reads, writes,
renames, locks and deletes files, keeps the directory tidy and checks the
Block Availability Map (BAM) against the sectors files really use.

Supported disk types:
    - 35-track images (174,848 bytes, 664 blocks free)
    - 40-track images (196,608 bytes, DolphinDOS BAM, 749 blocks free)

PATH SYNTAX
-----------
    disk.d64                       Image file only
    disk.d64:HELLO                 File HELLO on the image
    disk.d64:GAME*                 Files whose names start with GAME

File names are 1-16 characters and case sensitive. Wildcards (* and ?)
ignore case.

FILE TYPES
----------
    PRG  program           extracted as NAME.prg
    SEQ  sequential        extracted as NAME.seq
    USR  user              extracted as NAME.usr
    REL  relative records  extracted as NAME.rel
    DEL  deleted           cannot be extracted

When copying into an image the type comes from the host extension
(unknown extensions are stored as PRG) unless -t is given. REL files
need a record size (-r, 1-254).

COMMANDS
--------

create <output> [-t 35|40] [-n NAME] [-i ID] [-f]
    Create a blank, formatted image.

info <disk.d64>
    Show disk name, id, blocks used and free, and file count.

list <disk.d64> [-p PATTERN]
    Directory listing in the style of LOAD"$",8.

copy <source> <dest> [-t TYPE] [-r SIZE] [--replace]
    Copy between host and image. One side must be disk.d64:NAME (or just
    disk.d64 when copying in, to use the host file name).

delete <disk.d64:NAME>
    Delete file(s) and free their blocks.

rename <disk.d64:OLD> <NEW>
    Rename a file.

lock <disk.d64:NAME> [--unlock]
    Set or clear the locked flag (shown as '<' in listings).

sort <disk.d64> [--order NAME ...] [--reverse]
    Sort the directory by name, or put the named files first.

compact <disk.d64>
    Pack directory entries and free unused directory sectors.

verify <disk.d64> [--repair] [--log FILE]
    Check the BAM against the files on disk. Exit code 1 if any mismatch
    was found; with --repair the BAM is fixed. Run verify again to
    confirm a repair.

EXAMPLES
--------
d64_image_util create games.d64 -n "MY GAMES" -i 01
d64_image_util copy hello.prg games.d64:HELLO
d64_image_util copy "games.d64:*" ./out
d64_image_util list games.d64
d64_image_util verify games.d64 --repair
"""


def print_extended_help() -> None:
    """Print extended help documentation."""
    print(EXTENDED_HELP)
