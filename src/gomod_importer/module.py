"""
Data structures shared by every step of a module import.

A run decodes ModuleRecords from the go tool, attaches checksums to them and
turns the resolved ones into immutable Declarations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ModuleReplacement:
    """Target of a replace directive."""

    path: str
    version: str = ""


@dataclass
class ModuleRecord:
    """One node of the module graph as reported by the go tool."""

    path: str
    version: str = ""
    is_main: bool = False
    replace: Optional[ModuleReplacement] = None
    sum: str = ""
    error: str = ""

    @property
    def effective_path(self) -> str:
        return self.replace.path if self.replace else self.path

    @property
    def effective_version(self) -> str:
        return self.replace.version if self.replace else self.version

    @property
    def key(self) -> str:
        """path@version identity used to look up sums."""
        return module_key(self.effective_path, self.effective_version)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ModuleRecord":
        """
        Build a record from one object of `go list -m -json` or
        `go mod download -json` output.

        Raises:
            ValueError: If the object is not a module record
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        path = data.get("Path")
        if not isinstance(path, str) or not path:
            raise ValueError("Module record has no Path")

        replace = None
        replace_data = data.get("Replace")
        if replace_data is not None:
            if not isinstance(replace_data, dict) or not replace_data.get("Path"):
                raise ValueError(f"Module {path} has a malformed Replace")
            replace = ModuleReplacement(
                path=str(replace_data["Path"]),
                version=str(replace_data.get("Version") or ""),
            )

        error = data.get("Error") or ""
        if isinstance(error, dict):
            # go list reports module errors as {"Err": "..."}
            error = error.get("Err", "")

        return cls(
            path=path,
            version=str(data.get("Version") or ""),
            is_main=bool(data.get("Main", False)),
            replace=replace,
            sum=str(data.get("Sum") or ""),
            error=str(error),
        )


def module_key(path: str, version: str) -> str:
    return f"{path}@{version}"


@dataclass(frozen=True)
class LedgerEntry:
    """One line of a go.sum file."""

    path: str
    version: str
    hash: str

    @property
    def key(self) -> str:
        return module_key(self.path, self.version)


@dataclass(frozen=True)
class Declaration:
    """A checksum-backed external repository declaration."""

    name: str
    importpath: str
    sum: str
    version: str
    replace: Optional[str] = None

    @property
    def is_replaced(self) -> bool:
        return self.replace is not None

    def to_dict(self) -> Dict[str, str]:
        """Attributes in the order a go_repository rule lists them."""
        data = {"name": self.name, "importpath": self.importpath}
        if self.replace is not None:
            data["replace"] = self.replace
        data["sum"] = self.sum
        data["version"] = self.version
        return data


class SkipReason:
    LOCAL_REPLACE = "local_replace"
    UNRESOLVED_SUM = "unresolved_sum"


@dataclass(frozen=True)
class SkippedModule:
    """A module left out of the declarations without failing the run."""

    path: str
    version: str
    reason: str
    replace_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "path": self.path,
            "version": self.version,
            "reason": self.reason,
            "replace_path": self.replace_path,
        }


@dataclass(frozen=True)
class ImportRequest:
    """Where the primary go.mod lives and the root of the repository holding it."""

    manifest_path: str
    repository_root: str


@dataclass(frozen=True)
class ImportResult:
    """Sorted declarations plus everything that was skipped on the way."""

    declarations: Tuple[Declaration, ...] = ()
    skipped: Tuple[SkippedModule, ...] = ()
    duration_ms: int = field(default=0, compare=False)

    @property
    def local_replacements(self) -> List[SkippedModule]:
        return [s for s in self.skipped if s.reason == SkipReason.LOCAL_REPLACE]

    @property
    def unresolved(self) -> List[SkippedModule]:
        return [s for s in self.skipped if s.reason == SkipReason.UNRESOLVED_SUM]

    @property
    def has_skipped(self) -> bool:
        return len(self.skipped) > 0
