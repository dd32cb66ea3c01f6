"""
Entry point for the D64 Disk Image Utility.

Allows running as: python -m d64_image_util
"""

import argparse
import sys

from . import __version__
from .commands import (
    cmd_compact,
    cmd_copy,
    cmd_create,
    cmd_delete,
    cmd_info,
    cmd_list,
    cmd_lock,
    cmd_rename,
    cmd_sort,
    cmd_verify,
    print_extended_help,
)
from .formatter import OutputFormatter
from .logging_config import setup_logging, QUIET, NORMAL, VERBOSE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='d64_image_util',
        description='Commodore 1541 D64 disk image utility',
        epilog='Use --help-syntax for detailed syntax and examples.'
    )

    # Global options
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show detailed output')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Suppress non-essential output')
    parser.add_argument('--json', action='store_true', help='Output in JSON format')
    parser.add_argument('--help-syntax', action='store_true',
                        help='Show detailed help with syntax and examples')

    subparsers = parser.add_subparsers(dest='command', required=True)

    # Create command
    create_parser = subparsers.add_parser('create', help='Create a new blank disk image')
    create_parser.add_argument('output', help='Output file path for new disk image')
    create_parser.add_argument('-t', '--tracks', type=int, choices=[35, 40], default=35,
                               help='Number of tracks (default: 35)')
    create_parser.add_argument('-n', '--name', help='Disk name (16 characters max)')
    create_parser.add_argument('-i', '--id', help='Disk id (2 characters)')
    create_parser.add_argument('-f', '--force', action='store_true',
                               help='Overwrite existing file')

    # Info command
    info_parser = subparsers.add_parser('info', help='Show disk image information',
                                        epilog='Use -v for technical details.')
    info_parser.add_argument('path', help='Disk image path (disk.d64)')

    # List command
    list_parser = subparsers.add_parser('list', help='List files',
                                        epilog='Use --help-syntax for path syntax.')
    list_parser.add_argument('path', help='Disk image path (disk.d64 or disk.d64:PATTERN)')
    list_parser.add_argument('-p', '--pattern', help='Only list names matching PATTERN (* and ?)')

    # Copy command
    copy_parser = subparsers.add_parser('copy', help='Copy files to/from disk image',
                                        epilog='Use --help-syntax for path syntax.')
    copy_parser.add_argument('source', help='Source path (disk.d64:NAME supports wildcards)')
    copy_parser.add_argument('dest', help='Destination path (use a directory for wildcards)')
    copy_parser.add_argument('-t', '--type', choices=['PRG', 'SEQ', 'USR', 'REL', 'DEL'],
                             type=str.upper, help='File type (default: from extension, else PRG)')
    copy_parser.add_argument('-r', '--record-size', type=int,
                             help='Record size for REL files (1-254)')
    copy_parser.add_argument('--replace', action='store_true',
                             help='Replace an existing file of the same name')

    # Delete command
    delete_parser = subparsers.add_parser('delete', help='Delete file(s) from disk image')
    delete_parser.add_argument('path', help='File to delete (disk.d64:NAME)')

    # Rename command
    rename_parser = subparsers.add_parser('rename', help='Rename a file')
    rename_parser.add_argument('path', help='File to rename (disk.d64:OLD)')
    rename_parser.add_argument('new_name', help='New file name')

    # Lock command
    lock_parser = subparsers.add_parser('lock', help='Lock or unlock a file')
    lock_parser.add_argument('path', help='File to lock (disk.d64:NAME)')
    lock_parser.add_argument('--unlock', action='store_true', help='Clear the locked flag')

    # Sort command
    sort_parser = subparsers.add_parser('sort', help='Sort the directory')
    sort_parser.add_argument('path', help='Disk image path (disk.d64)')
    sort_parser.add_argument('--order', nargs='+', metavar='NAME',
                             help='Put these files first, in this order')
    sort_parser.add_argument('--reverse', action='store_true', help='Sort names descending')

    # Compact command
    compact_parser = subparsers.add_parser('compact', help='Compact the directory')
    compact_parser.add_argument('path', help='Disk image path (disk.d64)')

    # Verify command
    verify_parser = subparsers.add_parser('verify', help='Verify disk image integrity')
    verify_parser.add_argument('path', help='Disk image path to verify')
    verify_parser.add_argument('--repair', action='store_true',
                               help='Fix the BAM to match the sectors in use')
    verify_parser.add_argument('--log', metavar='FILE', help='Also write the findings to FILE')

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    if argv is None:
        argv = sys.argv[1:]

    # Check for extended help before argparse
    if '--help-syntax' in argv:
        print_extended_help()
        return 0

    args = build_parser().parse_args(argv)

    # Configure logging based on verbosity flags
    if args.quiet:
        setup_logging(level=QUIET)
    elif args.verbose:
        setup_logging(level=VERBOSE)
    else:
        setup_logging(level=NORMAL)

    formatter = OutputFormatter(json_mode=args.json)

    match args.command:
        case 'create':
            return cmd_create(args, formatter)
        case 'info':
            return cmd_info(args, formatter)
        case 'list':
            return cmd_list(args, formatter)
        case 'copy':
            return cmd_copy(args, formatter)
        case 'delete':
            return cmd_delete(args, formatter)
        case 'rename':
            return cmd_rename(args, formatter)
        case 'lock':
            return cmd_lock(args, formatter)
        case 'sort':
            return cmd_sort(args, formatter)
        case 'compact':
            return cmd_compact(args, formatter)
        case 'verify':
            return cmd_verify(args, formatter)
        case _:
            formatter.error(f"Unknown command: {args.command}")
            return 1


if __name__ == '__main__':
    sys.exit(main())
