import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from .cli_config import (
    ComprehensiveConfig,
    apply_config_data,
    create_sample_config,
    get_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .error_handling import ModuleImportError, setup_error_handling
from .importer import import_repos_from_modules
from .reporting import DeclarationReporter, output_json_results
from .structured_logging import configure_logging

__version__ = "1.0.0"

console = Console()
err_console = Console(stderr=True)


def _resolve_paths(manifest: Optional[str], repo_root: Optional[str], manifest_name: str):
    """Fill in whichever of manifest and repo_root was not given."""
    if manifest is None:
        root = Path(repo_root or ".")
        return root / manifest_name, root
    manifest_path = Path(manifest)
    if repo_root is None:
        return manifest_path, manifest_path.parent
    return manifest_path, Path(repo_root)


def _configure_diagnostics(config: ComprehensiveConfig, verbose: bool) -> None:
    level_name = "INFO" if verbose else config.logging.log_level
    configure_logging(
        level_name, config.logging.enable_json, config.logging.log_format
    )
    setup_error_handling(
        log_level=getattr(logging, level_name.upper(), logging.WARNING),
        mask_sensitive=config.logging.enable_sensitive_data_masking,
    )


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📦 gomod-importer: go.mod to repository declarations

    Converts the build list of a Go module into checksum-verified external
    repository declarations without modifying go.mod or go.sum.
    """
    if version:
        console.print(f"gomod-importer version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command("update-repos")
@click.argument("manifest", required=False, type=click.Path(dir_okay=False))
@click.option(
    "--repo-root",
    type=click.Path(exists=True, file_okay=False),
    help="Repository root (default: the manifest's directory)",
)
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    help="Output format for results (default from config or console)",
)
@click.option(
    "--output-file",
    "-o",
    type=click.Path(),
    help="Save results to file (JSON format only)",
)
@click.option("--go-binary", type=click.Path(), help="go executable to run")
@click.option(
    "--fail-on-skipped",
    is_flag=True,
    help="Exit with status 2 if any module had to be skipped",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Log import progress to stderr",
)
def update_repos(
    manifest: Optional[str],
    repo_root: Optional[str],
    output_format: Optional[str],
    output_file: Optional[str],
    go_binary: Optional[str],
    fail_on_skipped: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Resolve MANIFEST (a go.mod) into repository declarations.

    Examples:

      gomod-importer update-repos

      gomod-importer update-repos services/api/go.mod --repo-root .

      gomod-importer update-repos go.mod --output-format json -o repos.json
    """
    config = load_config()
    if go_binary:
        config.toolchain.go_binary = go_binary

    final_format = (output_format or config.output.output_format).lower()
    final_output_file = output_file or config.output.output_file
    final_fail_on_skipped = fail_on_skipped or config.output.fail_on_skipped
    quiet = quiet or config.output.quiet
    verbose = verbose or config.output.verbose

    if final_output_file and final_format != "json":
        raise click.ClickException("Output file can only be used with JSON format")

    manifest_path, root = _resolve_paths(
        manifest, repo_root, config.manifests.manifest_name
    )
    _configure_diagnostics(config, verbose)

    if not quiet and final_format == "console":
        console.print(
            Panel(
                f"📦 [bold blue]gomod-importer[/bold blue] v{__version__}",
                border_style="blue",
            )
        )

    try:
        result = asyncio.run(
            import_repos_from_modules(str(manifest_path), str(root), config=config)
        )
    except ModuleImportError as e:
        err_console.print(f"❌ Import failed during {e.step}: {e}", style="red")
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print("\n⚠️  Import interrupted by user", style="yellow")
        sys.exit(130)

    if final_format == "json":
        output_json_results(result, str(manifest_path), final_output_file, err_console)
    elif not quiet:
        DeclarationReporter(console).print_import_results(result, str(manifest_path))
    elif result.has_skipped:
        err_console.print(
            f"⚠️  {len(result.skipped)} modules skipped in {manifest_path}",
            style="yellow",
        )

    if final_fail_on_skipped and result.has_skipped:
        sys.exit(2)


@cli.command()
def info():
    """Show how imports work, environment variables and config files."""
    info_text = """
[bold blue]🔁 Workflow:[/bold blue]

• Every [green]go.mod[/green] under the repository root is copied to a private snapshot
• [yellow]go list -m -json all[/yellow] enumerates the build list inside the snapshot
• Sums come from the [green]go.sum[/green] beside the original go.mod
• One [yellow]go mod download -json[/yellow] fills in sums go.sum is missing
• Declarations are sorted by repository name

[bold blue]⚠️  Skipped Modules:[/bold blue]

• Modules replaced by a local directory ([cyan]./x[/cyan], [cyan]../x[/cyan], absolute paths)
• Modules whose checksum could not be determined

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]GOROOT[/cyan] - Use $GOROOT/bin/go instead of go from PATH
• [cyan]GOMOD_IMPORTER_GO_BINARY[/cyan] - Explicit go executable
• [cyan]GOMOD_IMPORTER_OUTPUT_FORMAT[/cyan] - console or json
• [cyan]GOMOD_IMPORTER_LOG_LEVEL[/cyan] - Log level for diagnostics
• [cyan]GOMOD_IMPORTER_FAIL_ON_SKIPPED[/cyan] - Exit non-zero when modules are skipped

[bold blue]📄 Configuration Files:[/bold blue]

• [green].gomod-importer.json[/green] / [green].yaml[/green] / [green].toml[/green] - Project-level config
• [green]~/.config/gomod-importer/config.json[/green] - User-level config

[bold blue]💡 Usage Examples:[/bold blue]

  gomod-importer update-repos
  gomod-importer update-repos go.mod --output-format json
  gomod-importer config init
"""
    console.print(
        Panel(
            info_text,
            title="[bold]gomod-importer Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".gomod-importer.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]🛠  Toolchain:[/bold cyan]")
    console.print(f"  go Binary: {current_config.toolchain.go_binary or '(auto)'}")
    console.print(f"  Extra Env: {current_config.toolchain.env or '{}'}")
    console.print(f"  Read Chunk Size: {current_config.toolchain.read_chunk_size}")

    console.print("\n[bold cyan]📄 Manifests:[/bold cyan]")
    console.print(f"  Manifest Name: {current_config.manifests.manifest_name}")
    console.print(f"  Ledger Name: {current_config.manifests.ledger_name}")
    console.print(
        f"  Manifest Checksum Suffix: {current_config.manifests.manifest_checksum_suffix}"
    )
    console.print(f"  Temp Dir Prefix: {current_config.manifests.temp_dir_prefix}")

    console.print("\n[bold cyan]📤 Output:[/bold cyan]")
    console.print(f"  Format: {current_config.output.output_format}")
    console.print(f"  Fail on Skipped: {current_config.output.fail_on_skipped}")

    console.print("\n[bold cyan]📝 Logging:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  JSON Logs: {current_config.logging.enable_json}")
    console.print(
        f"  Sensitive Data Masking: {current_config.logging.enable_sensitive_data_masking}"
    )


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if not isinstance(config_data, dict):
        raise click.ClickException(f"Could not load config from {config_file}")

    candidate = ComprehensiveConfig()
    apply_config_data(candidate, config_data)
    errors = validate_config_values(candidate)
    if errors:
        console.print(f"❌ Configuration file {config_file} is invalid:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
