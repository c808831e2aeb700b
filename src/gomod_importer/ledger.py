"""
go.sum reading.

Each line of go.sum is ``<path> <version> <hash>``. Lines whose version ends
with ``/go.mod`` checksum only the dependency's go.mod file and cannot stand
in for the checksum of the module content.
"""

from pathlib import Path
from typing import Dict, Iterator

from .error_handling import ErrorCategory, fail
from .module import LedgerEntry, ModuleRecord


def parse_ledger(
    ledger_path: Path, manifest_checksum_suffix: str = "/go.mod"
) -> Iterator[LedgerEntry]:
    """
    Yield the content checksums recorded in a go.sum file.

    A missing file is an empty ledger. Lines that are not UTF-8 or do not have
    exactly three fields are skipped.

    Raises:
        ModuleImportError: If the file exists but cannot be read
    """
    try:
        with open(ledger_path, "rb") as f:
            for raw_line in f:
                try:
                    line = raw_line.decode("utf-8")
                except UnicodeDecodeError:
                    continue
                fields = line.split()
                if len(fields) != 3:
                    continue
                path, version, hash_value = fields
                if version.endswith(manifest_checksum_suffix):
                    continue
                yield LedgerEntry(path=path, version=version, hash=hash_value)
    except FileNotFoundError:
        return
    except OSError as e:
        raise fail(
            ErrorCategory.LEDGER,
            f"Could not read checksum ledger {ledger_path.name}",
            "ledger",
            "parse_ledger",
            cause=e,
            details={"ledger_path": str(ledger_path)},
        ) from e


def apply_ledger(
    index: Dict[str, ModuleRecord],
    ledger_path: Path,
    manifest_checksum_suffix: str = "/go.mod",
) -> int:
    """
    Attach ledger checksums to the indexed records they belong to.

    Entries that match no record are ignored; go.sum routinely holds sums
    for versions that are no longer in the build list.

    Returns:
        Number of records that received a sum
    """
    matched = 0
    for entry in parse_ledger(ledger_path, manifest_checksum_suffix):
        record = index.get(entry.key)
        if record is not None:
            record.sum = entry.hash
            matched += 1
    return matched
