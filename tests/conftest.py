"""
Shared fixtures for gomod-importer tests.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest

from gomod_importer.cli_config import ComprehensiveConfig, reset_config
from gomod_importer.error_handling import (
    ErrorCategory,
    ModuleImportError,
    get_error_handler,
)
from gomod_importer.module import ModuleRecord

# Bind the error handler's stream before any CliRunner swaps sys.stderr
get_error_handler()

MAIN_MANIFEST = "module example.com/main\n\ngo 1.21\n"


class FakeToolchain:
    """Stands in for GoToolchain and records how it was driven.

    ``records`` are `go list -m -json all` objects; ``sums`` maps the
    path@version identities `go mod download` can resolve to their sum.
    """

    def __init__(
        self,
        records=None,
        sums=None,
        rewrite_manifests=False,
        list_error=None,
        download_error=None,
    ):
        self.records = list(records or [])
        self.sums = dict(sums or {})
        self.rewrite_manifests = rewrite_manifests
        self.list_error = list_error
        self.download_error = download_error
        self.list_calls = []
        self.download_calls = []
        self.snapshot_manifests = []

    async def list_modules(self, module_dir):
        module_dir = Path(module_dir)
        self.list_calls.append(module_dir)
        self.snapshot_manifests = sorted(
            p.relative_to(module_dir).as_posix() for p in module_dir.rglob("go.mod")
        )

        if self.rewrite_manifests:
            # The real go tool tidies go.mod and go.sum in place
            manifest = module_dir / "go.mod"
            manifest.write_text(manifest.read_text() + "\nrequire example.org/x v0.0.1\n")
            (module_dir / "go.sum").write_text("example.org/x v0.0.1 h1:rewritten=\n")

        if self.list_error is not None:
            raise self.list_error

        for data in self.records:
            yield ModuleRecord.from_json(data)

    async def download_sums(self, work_dir, identities):
        self.download_calls.append((Path(work_dir), list(identities)))

        if self.download_error is not None:
            raise self.download_error

        for identity in identities:
            path, version = identity.rsplit("@", 1)
            data = {"Path": path, "Version": version}
            if identity in self.sums:
                data["Sum"] = self.sums[identity]
            else:
                data["Error"] = f"{identity}: unknown revision"
            yield ModuleRecord.from_json(data)


def main_record(path="example.com/main"):
    return {"Path": path, "Main": True, "Dir": "/src", "GoMod": "/src/go.mod"}


def write_repo(root: Path, go_sum=None, manifest=MAIN_MANIFEST, subdir=None):
    """Lay out a repository and return the path of its primary go.mod."""
    module_dir = root / subdir if subdir else root
    module_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = module_dir / "go.mod"
    manifest_path.write_text(manifest)
    if go_sum is not None:
        (module_dir / "go.sum").write_text(go_sum)
    return manifest_path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def config():
    """A default configuration, independent of any config file on disk."""
    return ComprehensiveConfig()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep config files and GOMOD_IMPORTER_* variables of the host out of tests."""
    for key in list(os.environ):
        if key.startswith("GOMOD_IMPORTER_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    get_error_handler().reset_stats()
    yield
    reset_config()


@pytest.fixture
def example_repo(temp_dir):
    """Repository whose go.sum only knows example.org/a."""
    manifest = write_repo(
        temp_dir,
        go_sum=(
            "example.org/a v1.2.0 h1:aaaa=\n"
            "example.org/a v1.2.0/go.mod h1:amod=\n"
            "example.org/c v1.0.0/go.mod h1:cmod=\n"
        ),
    )
    return manifest


@pytest.fixture
def example_toolchain():
    """go tool stand-in for example_repo: one plain and one redirected module."""
    return FakeToolchain(
        records=[
            main_record(),
            {"Path": "example.org/a", "Version": "v1.2.0"},
            {
                "Path": "example.org/b",
                "Version": "v0.9.0",
                "Replace": {"Path": "example.org/c", "Version": "v1.0.0"},
            },
        ],
        sums={"example.org/c@v1.0.0": "h1:cccc="},
    )


@pytest.fixture
def toolchain_failure():
    """Factory for the error a failing go command surfaces as."""

    def make(category=ErrorCategory.EXTRACTION):
        return ModuleImportError(category, "go exited with status 1")

    return make
