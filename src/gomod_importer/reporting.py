"""
Reporting and output formatting for import results.

Provides rich console tables and a stable JSON rendering.
"""

import json
from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .module import ImportResult, SkipReason

_SKIP_REASON_LABELS = {
    SkipReason.LOCAL_REPLACE: "replaced by a local directory",
    SkipReason.UNRESOLVED_SUM: "no checksum available",
}


def result_to_dict(result: ImportResult, manifest_path: str) -> Dict[str, Any]:
    """Render a result as a JSON-ready dict; key order is fixed."""
    return {
        "manifest_path": manifest_path,
        "summary": {
            "declarations": len(result.declarations),
            "replaced": len([d for d in result.declarations if d.is_replaced]),
            "skipped_local_replace": len(result.local_replacements),
            "skipped_unresolved_sum": len(result.unresolved),
        },
        "declarations": [d.to_dict() for d in result.declarations],
        "skipped": [s.to_dict() for s in result.skipped],
    }


def output_json_results(
    result: ImportResult,
    manifest_path: str,
    output_file: Optional[str] = None,
    console: Optional[Console] = None,
) -> str:
    """Write the JSON rendering to output_file, or print it to stdout."""
    json_output = json.dumps(result_to_dict(result, manifest_path), indent=2)

    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(json_output + "\n")
        (console or Console(stderr=True)).print(
            f"✅ Results saved to {output_file}", style="green"
        )
    else:
        print(json_output)
    return json_output


class DeclarationReporter:
    """Formats and displays import results."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_import_results(self, result: ImportResult, manifest_path: str) -> None:
        """
        Print import results in a user-friendly format.

        Args:
            result: The import result to display
            manifest_path: Path to the imported go.mod
        """
        self.console.print()
        self.console.print(
            Panel(
                f"📦 Repository declarations for {manifest_path}",
                title="[bold blue]gomod-importer[/bold blue]",
                border_style="blue",
            )
        )

        if result.declarations:
            self._print_declarations(result)
        else:
            self.console.print("ℹ️  No external modules to declare.", style="yellow")

        if result.skipped:
            self._print_skipped(result)

        self._print_footer(result)

    def _print_declarations(self, result: ImportResult) -> None:
        table = Table(title="📋 Declarations", box=box.ROUNDED, title_style="bold cyan")
        table.add_column("Name", style="bold")
        table.add_column("Import path")
        table.add_column("Version")
        table.add_column("Replace", style="magenta")
        table.add_column("Sum", style="dim", overflow="fold")

        for declaration in result.declarations:
            table.add_row(
                declaration.name,
                declaration.importpath,
                declaration.version,
                declaration.replace or "",
                declaration.sum,
            )

        self.console.print(table)
        self.console.print()

    def _print_skipped(self, result: ImportResult) -> None:
        table = Table(
            title="⚠️  Skipped modules", box=box.ROUNDED, title_style="bold yellow"
        )
        table.add_column("Module", style="bold")
        table.add_column("Version")
        table.add_column("Reason", style="yellow")

        for skipped in result.skipped:
            reason = _SKIP_REASON_LABELS.get(skipped.reason, skipped.reason)
            if skipped.replace_path:
                reason = f"{reason} ({skipped.replace_path})"
            table.add_row(skipped.path, skipped.version, reason)

        self.console.print(table)
        self.console.print()

    def _print_footer(self, result: ImportResult) -> None:
        summary = (
            f"{len(result.declarations)} declarations, "
            f"{len(result.skipped)} skipped, {result.duration_ms} ms"
        )
        style = "yellow" if result.has_skipped else "green"
        self.console.print(f"✅ {summary}", style=style)
