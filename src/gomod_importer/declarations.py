"""
Turning resolved module records into sorted repository declarations.
"""

from typing import Dict, Iterable, List, Tuple

from .error_handling import ErrorCategory, log_skipped_module
from .module import Declaration, ModuleRecord, SkippedModule, SkipReason
from .structured_logging import log_module_skipped

_NAME_REPLACEMENTS = str.maketrans({"-": "_", ".": "_"})


def import_path_to_repo_name(importpath: str) -> str:
    """
    Derive an external repository name from a Go import path.

    The host name's labels are reversed and joined with the remaining path
    components, e.g. ``github.com/foo/bar-baz`` becomes
    ``com_github_foo_bar_baz``.
    """
    components = importpath.lower().split("/")
    labels = components[0].split(".")
    repo = "_".join(list(reversed(labels)) + components[1:])
    return repo.translate(_NAME_REPLACEMENTS)


def build_declaration(record: ModuleRecord) -> Declaration:
    if record.replace is None:
        return Declaration(
            name=import_path_to_repo_name(record.path),
            importpath=record.path,
            sum=record.sum,
            version=record.version,
        )
    return Declaration(
        name=import_path_to_repo_name(record.path),
        importpath=record.path,
        sum=record.sum,
        version=record.replace.version,
        replace=record.replace.path,
    )


def sort_declarations(declarations: Iterable[Declaration]) -> List[Declaration]:
    """Order by name, comparing code points; importpath breaks ties."""
    return sorted(declarations, key=lambda d: (d.name, d.importpath))


def synthesize_declarations(
    index: Dict[str, ModuleRecord],
) -> Tuple[List[Declaration], List[SkippedModule]]:
    """
    Build a declaration for every indexed record that has a checksum.

    Records still lacking a sum are reported and left out instead of failing
    the run.

    Returns:
        (sorted declarations, modules skipped for lack of a sum)
    """
    declarations = []
    unresolved = []
    for key in sorted(index):
        record = index[key]
        if not record.sum:
            details = {"module": key}
            if record.error:
                details["go_error"] = record.error
            log_skipped_module(
                f"Could not determine sum for module {key}",
                "synthesize_declarations",
                ErrorCategory.SYNTHESIS,
                details=details,
            )
            log_module_skipped(
                record.path, record.effective_version, SkipReason.UNRESOLVED_SUM
            )
            unresolved.append(
                SkippedModule(
                    path=record.path,
                    version=record.effective_version,
                    reason=SkipReason.UNRESOLVED_SUM,
                    replace_path=record.replace.path if record.replace else None,
                )
            )
            continue
        declarations.append(build_declaration(record))

    return sort_declarations(declarations), unresolved
