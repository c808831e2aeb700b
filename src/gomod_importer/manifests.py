"""
Manifest discovery and isolation.

The go tool rewrites go.mod files while it inspects them, so every command
runs against a private snapshot of all go.mod files in the repository. All of
them are copied, not just the primary one, because relative replace
directives may point at sibling modules.
"""

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

from .error_handling import ErrorCategory, fail


def find_all_manifests(repo_root: Path, manifest_name: str = "go.mod") -> List[str]:
    """
    Return the path of every manifest below repo_root, relative to it.

    Symlinked directories are not followed. Paths use forward slashes and
    are sorted so that snapshots are built in a stable order.

    Raises:
        ModuleImportError: If any part of the tree cannot be read
    """

    def on_walk_error(error: OSError) -> None:
        raise error

    paths = []
    try:
        for dirpath, _dirnames, filenames in os.walk(repo_root, onerror=on_walk_error):
            if manifest_name in filenames:
                rel_path = Path(dirpath, manifest_name).relative_to(repo_root)
                paths.append(rel_path.as_posix())
    except OSError as e:
        raise fail(
            ErrorCategory.SETUP,
            f"Could not search {repo_root} for {manifest_name} files",
            "manifests",
            "find_all_manifests",
            cause=e,
            details={"repository_root": str(repo_root)},
            suggestions=["Check directory permissions below the repository root"],
        ) from e

    return sorted(paths)


@contextmanager
def manifest_snapshot(
    repo_root: Path,
    manifest_paths: List[str],
    prefix: str = "gomod-importer-",
) -> Iterator[Path]:
    """
    Copy the given manifests into a fresh temporary directory.

    Each manifest keeps its path relative to repo_root. The directory is
    removed when the block exits, whether normally or through an exception.

    Raises:
        ModuleImportError: If the snapshot cannot be created or populated
    """
    try:
        temp_dir = Path(tempfile.mkdtemp(prefix=prefix))
    except OSError as e:
        raise fail(
            ErrorCategory.SETUP,
            "Could not create snapshot directory",
            "manifests",
            "manifest_snapshot",
            cause=e,
        ) from e

    try:
        for rel_path in manifest_paths:
            target = temp_dir / rel_path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(repo_root / rel_path, target)
            except OSError as e:
                raise fail(
                    ErrorCategory.SETUP,
                    f"Could not copy {rel_path} into snapshot",
                    "manifests",
                    "manifest_snapshot",
                    cause=e,
                    details={"manifest": rel_path},
                ) from e

        yield temp_dir
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


def locate_primary_manifest(manifest_path: Path, repo_root: Path) -> Path:
    """
    Return the directory of the primary manifest relative to repo_root.

    Raises:
        ModuleImportError: If the manifest is missing or outside repo_root
    """
    if not manifest_path.is_file():
        raise fail(
            ErrorCategory.SETUP,
            f"Manifest does not exist: {manifest_path}",
            "manifests",
            "locate_primary_manifest",
        )

    try:
        rel_path = manifest_path.resolve().relative_to(repo_root.resolve())
    except ValueError as e:
        raise fail(
            ErrorCategory.SETUP,
            f"Manifest {manifest_path} is not inside repository root {repo_root}",
            "manifests",
            "locate_primary_manifest",
            cause=e,
        ) from e

    return rel_path.parent
