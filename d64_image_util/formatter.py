"""
Output formatting for the D64 disk image utility.
"""

import json
import sys

from .models import DirectoryEntry


class OutputFormatter:
    """Handle output formatting (text or JSON)."""

    def __init__(self, json_mode: bool = False):
        self.json_mode = json_mode

    def success(self, message: str, **data) -> None:
        """Output success message."""
        if self.json_mode:
            output = {"status": "success", "message": message, **data}
            print(json.dumps(output))
        else:
            print(message)

    def error(self, message: str) -> None:
        """Output error message."""
        if self.json_mode:
            output = {"status": "error", "message": message}
            print(json.dumps(output))
        else:
            print(f"Error: {message}", file=sys.stderr)

    def list_files(
        self,
        entries: list[DirectoryEntry],
        disk_name: str = "",
        disk_id: str = "",
        dos_type: str = "",
        blocks_free: int = 0
    ) -> None:
        """
        Output a directory listing.

        Text mode mimics a 1541 LOAD"$" listing: header line with the disk
        name in quotes, one line per file with its block count, and the
        blocks free line.
        """
        if self.json_mode:
            files = []
            for entry in entries:
                files.append({
                    "name": entry.name,
                    "type": entry.type_name,
                    "blocks": entry.block_count,
                    "locked": entry.is_locked,
                    "start": str(entry.start),
                    "record_length": entry.record_length if entry.is_rel else None,
                })
            output = {
                "status": "success",
                "disk_name": disk_name,
                "disk_id": disk_id,
                "dos_type": dos_type,
                "blocks_free": blocks_free,
                "files": files,
            }
            print(json.dumps(output))
        else:
            print(f'0 "{disk_name:<16}" {disk_id:<2} {dos_type}')
            for entry in entries:
                quoted = f'"{entry.name}"'
                print(f"{entry.block_count:<5}{quoted:<19}{entry.type_name}{entry.flag_string()}")
            print(f"{blocks_free} BLOCKS FREE.")
