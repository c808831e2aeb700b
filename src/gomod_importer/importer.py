"""
Module import engine.

Converts the build list of a Go module into checksum-verified repository
declarations without touching the caller's go.mod or go.sum files:

1. every go.mod below the repository root is copied into a private snapshot;
2. ``go list -m -json all`` enumerates the build list inside the snapshot;
3. sums are taken from go.sum beside the original go.mod;
4. a single ``go mod download -json`` fills in whatever go.sum lacked;
5. records with a sum become declarations, sorted by name.
"""

import os
import time
import uuid
from contextlib import aclosing
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .cli_config import ComprehensiveConfig, get_config
from .declarations import synthesize_declarations
from .error_handling import ErrorCategory, fail, log_skipped_module
from .ledger import apply_ledger
from .manifests import find_all_manifests, locate_primary_manifest, manifest_snapshot
from .module import (
    ImportRequest,
    ImportResult,
    ModuleRecord,
    SkippedModule,
    SkipReason,
)
from .structured_logging import (
    clear_run_context,
    get_importer_logger,
    log_import_complete,
    log_import_start,
    log_module_skipped,
)
from .toolchain import GoToolchain

ModuleIndex = Dict[str, ModuleRecord]


def is_local_path(path: str) -> bool:
    """Whether a replace target is a directory rather than a module path."""
    return (
        os.path.isabs(path)
        or path in (".", "..")
        or path.startswith("./")
        or path.startswith("../")
    )


class ModuleImporter:
    """
    Resolves a go.mod into repository declarations.

    The go tool is reached only through ``toolchain``, which exposes
    ``list_modules(dir)`` and ``download_sums(dir, identities)`` as async
    iterators of ModuleRecords.
    """

    def __init__(
        self,
        config: Optional[ComprehensiveConfig] = None,
        toolchain: Optional[GoToolchain] = None,
    ):
        self.config = config or get_config()
        self.toolchain = toolchain or GoToolchain(self.config.toolchain)
        self.logger = get_importer_logger()

    async def import_repos(self, request: ImportRequest) -> ImportResult:
        """
        Run one import.

        Raises:
            ModuleImportError: On any fatal failure; no partial result is
                returned in that case
        """
        start_time = time.time()
        manifests = self.config.manifests
        repo_root = Path(request.repository_root)
        manifest_path = Path(request.manifest_path)

        if not repo_root.is_dir():
            raise fail(
                ErrorCategory.SETUP,
                f"Repository root is not a directory: {repo_root}",
                "importer",
                "import_repos",
            )

        log_import_start(uuid.uuid4().hex[:12], str(manifest_path), str(repo_root))
        try:
            module_dir = locate_primary_manifest(manifest_path, repo_root)
            manifest_paths = find_all_manifests(repo_root, manifests.manifest_name)

            with manifest_snapshot(
                repo_root, manifest_paths, manifests.temp_dir_prefix
            ) as snapshot_dir:
                index, local_skips = await self._index_modules(
                    snapshot_dir / module_dir
                )

                apply_ledger(
                    index,
                    manifest_path.parent / manifests.ledger_name,
                    manifests.manifest_checksum_suffix,
                )

                missing = sorted(key for key, record in index.items() if not record.sum)
                if missing:
                    await self._backfill_sums(index, snapshot_dir, missing)

            declarations, unresolved = synthesize_declarations(index)
            skipped = sorted(
                local_skips + unresolved, key=lambda s: (s.path, s.version, s.reason)
            )

            duration_ms = int((time.time() - start_time) * 1000)
            log_import_complete(duration_ms, len(declarations), len(skipped))
        finally:
            clear_run_context()

        return ImportResult(
            declarations=tuple(declarations),
            skipped=tuple(skipped),
            duration_ms=duration_ms,
        )

    async def _index_modules(
        self, module_dir: Path
    ) -> Tuple[ModuleIndex, List[SkippedModule]]:
        """Index the build list by effective path@version.

        The main module is dropped. Modules replaced by a local directory
        cannot be fetched as an external repository and are skipped.
        """
        index: ModuleIndex = {}
        local_skips = []

        async with aclosing(self.toolchain.list_modules(module_dir)) as records:
            async for record in records:
                if record.is_main:
                    continue

                if record.replace is not None and is_local_path(record.replace.path):
                    log_skipped_module(
                        f"Skipping filepath replace directive {record.path} -> "
                        f"{record.replace.path}",
                        "_index_modules",
                        ErrorCategory.EXTRACTION,
                        details={"module": record.path, "replace": record.replace.path},
                        suggestions=[
                            "Declare the module's import path with a build directive instead"
                        ],
                    )
                    log_module_skipped(
                        record.path,
                        record.version,
                        SkipReason.LOCAL_REPLACE,
                        replace_path=record.replace.path,
                    )
                    local_skips.append(
                        SkippedModule(
                            path=record.path,
                            version=record.version,
                            reason=SkipReason.LOCAL_REPLACE,
                            replace_path=record.replace.path,
                        )
                    )
                    continue

                existing = index.get(record.key)
                if existing is not None:
                    # Identity stays with the first record for this key
                    if record.sum:
                        existing.sum = record.sum
                    continue
                index[record.key] = record

        self.logger.debug("modules_indexed", module_count=len(index))
        return index, local_skips

    async def _backfill_sums(
        self, index: ModuleIndex, work_dir: Path, missing: List[str]
    ) -> None:
        """Download sums for every key in missing with one go invocation."""
        self.logger.info("backfill_started", missing_count=len(missing))

        async with aclosing(self.toolchain.download_sums(work_dir, missing)) as records:
            async for downloaded in records:
                record = index.get(downloaded.key)
                if record is None:
                    continue
                if downloaded.sum:
                    record.sum = downloaded.sum
                elif downloaded.error:
                    self.logger.warning(
                        "download_failed",
                        module_key=downloaded.key,
                        go_error=downloaded.error,
                    )


async def import_repos_from_modules(
    manifest_path: str,
    repository_root: str,
    config: Optional[ComprehensiveConfig] = None,
    toolchain: Optional[GoToolchain] = None,
) -> ImportResult:
    """
    Convenience function to run one import.

    Args:
        manifest_path: Path to the primary go.mod
        repository_root: Root of the repository holding it
        config: Configuration, the global one when omitted
        toolchain: go tool wrapper, built from the config when omitted

    Returns:
        Sorted declarations plus skipped modules
    """
    importer = ModuleImporter(config=config, toolchain=toolchain)
    return await importer.import_repos(
        ImportRequest(manifest_path=manifest_path, repository_root=repository_root)
    )

