"""
Configuration management for gomod-importer.

Settings come from dataclass defaults, then the first config file found
(JSON, YAML or TOML), then GOMOD_IMPORTER_* environment variables.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
import yaml
from rich.console import Console

from .error_handling import ErrorCategory, get_error_handler

console = Console(stderr=True)

CONFIG_FILE_NAMES = [
    ".gomod-importer.json",
    ".gomod-importer.yaml",
    ".gomod-importer.yml",
    ".gomod-importer.toml",
]


@dataclass
class ToolchainConfig:
    """How the go executable is located and invoked."""

    go_binary: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    read_chunk_size: int = 65536


@dataclass
class ManifestConfig:
    """Names of the files an import reads."""

    manifest_name: str = "go.mod"
    ledger_name: str = "go.sum"
    # go.sum lines whose version ends with this checksum the go.mod file only
    manifest_checksum_suffix: str = "/go.mod"
    temp_dir_prefix: str = "gomod-importer-"


@dataclass
class OutputConfig:
    """Command output settings."""

    output_format: str = "console"
    output_file: Optional[str] = None
    quiet: bool = False
    verbose: bool = False
    fail_on_skipped: bool = False


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_sensitive_data_masking: bool = True
    enable_json: bool = True


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    manifests: ManifestConfig = field(default_factory=ManifestConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "toolchain": {
                "go_binary": self.toolchain.go_binary,
                "env": dict(self.toolchain.env),
                "read_chunk_size": self.toolchain.read_chunk_size,
            },
            "manifests": {
                "manifest_name": self.manifests.manifest_name,
                "ledger_name": self.manifests.ledger_name,
                "manifest_checksum_suffix": self.manifests.manifest_checksum_suffix,
                "temp_dir_prefix": self.manifests.temp_dir_prefix,
            },
            "output": {
                "output_format": self.output.output_format,
                "output_file": self.output.output_file,
                "quiet": self.output.quiet,
                "verbose": self.output.verbose,
                "fail_on_skipped": self.output.fail_on_skipped,
            },
            "logging": {
                "log_level": self.logging.log_level,
                "log_format": self.logging.log_format,
                "enable_sensitive_data_masking": self.logging.enable_sensitive_data_masking,
                "enable_json": self.logging.enable_json,
            },
        }


_global_config: Optional[ComprehensiveConfig] = None


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


VALID_OUTPUT_FORMATS = ("console", "json")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if not _is_positive_int(config.toolchain.read_chunk_size):
        errors.append("toolchain.read_chunk_size must be positive")
    if not isinstance(config.toolchain.env, dict):
        errors.append("toolchain.env must be a mapping")

    manifest_name = config.manifests.manifest_name
    if not isinstance(manifest_name, str) or not manifest_name:
        errors.append("manifests.manifest_name must not be empty")
    elif os.sep in manifest_name or "/" in manifest_name:
        errors.append("manifests.manifest_name must be a file name, not a path")
    if not config.manifests.ledger_name:
        errors.append("manifests.ledger_name must not be empty")
    suffix = config.manifests.manifest_checksum_suffix
    if not isinstance(suffix, str) or not suffix:
        errors.append("manifests.manifest_checksum_suffix must not be empty")

    if config.output.output_format not in VALID_OUTPUT_FORMATS:
        errors.append(
            f"output.output_format must be one of {', '.join(VALID_OUTPUT_FORMATS)}"
        )

    if str(config.logging.log_level).upper() not in VALID_LOG_LEVELS:
        errors.append(f"logging.log_level must be one of {', '.join(VALID_LOG_LEVELS)}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON, YAML or TOML file."""
    if not config_path.exists():
        return None

    suffix = config_path.suffix.lower()
    try:
        with open(config_path, encoding="utf-8") as f:
            if suffix in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif suffix == ".toml":
                return toml.load(f)
            elif suffix == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        get_error_handler().warning(
            ErrorCategory.CONFIGURATION,
            f"Could not load config file {config_path.name}",
            "cli_config",
            "load_config_file",
            exception=e,
            details={"config_path": str(config_path)},
        )
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    user_dir = Path.home() / ".config" / "gomod-importer"
    locations = [Path.cwd() / name for name in CONFIG_FILE_NAMES] + [
        user_dir / "config.json",
        user_dir / "config.yaml",
        user_dir / "config.toml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Apply GOMOD_IMPORTER_* environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return default

    if go_binary := os.environ.get("GOMOD_IMPORTER_GO_BINARY"):
        config.toolchain.go_binary = go_binary
    if chunk_size := get_env_int("GOMOD_IMPORTER_READ_CHUNK_SIZE"):
        config.toolchain.read_chunk_size = chunk_size

    if manifest_name := os.environ.get("GOMOD_IMPORTER_MANIFEST_NAME"):
        config.manifests.manifest_name = manifest_name
    if ledger_name := os.environ.get("GOMOD_IMPORTER_LEDGER_NAME"):
        config.manifests.ledger_name = ledger_name
    if temp_prefix := os.environ.get("GOMOD_IMPORTER_TEMP_PREFIX"):
        config.manifests.temp_dir_prefix = temp_prefix

    if output_format := os.environ.get("GOMOD_IMPORTER_OUTPUT_FORMAT"):
        config.output.output_format = output_format.lower()
    config.output.fail_on_skipped = get_env_bool(
        "GOMOD_IMPORTER_FAIL_ON_SKIPPED", config.output.fail_on_skipped
    )

    if log_level := os.environ.get("GOMOD_IMPORTER_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()
    config.logging.enable_json = get_env_bool(
        "GOMOD_IMPORTER_LOG_JSON", config.logging.enable_json
    )


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    if not isinstance(section_data, dict):
        console.print(f"⚠️  Config section {section_name} must be a table", style="yellow")
        return

    for key, value in section_data.items():
        if hasattr(config, key):
            if isinstance(getattr(config, key), dict) and isinstance(value, dict):
                getattr(config, key).update(value)
            else:
                setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def apply_config_data(config: ComprehensiveConfig, file_config: Dict[str, Any]) -> None:
    """Apply every known section of a loaded config file."""
    for section_name in ("toolchain", "manifests", "output", "logging"):
        if section_name in file_config:
            apply_config_section(
                getattr(config, section_name), file_config[section_name], section_name
            )


def load_config() -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = ComprehensiveConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if isinstance(file_config, dict):
            apply_config_data(config, file_config)

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        _restore_invalid_defaults(config)

    _global_config = config
    return config


def _restore_invalid_defaults(config: ComprehensiveConfig) -> None:
    defaults = ComprehensiveConfig()
    if not _is_positive_int(config.toolchain.read_chunk_size):
        config.toolchain.read_chunk_size = defaults.toolchain.read_chunk_size
    if not isinstance(config.toolchain.env, dict):
        config.toolchain.env = {}
    manifest_name = config.manifests.manifest_name
    if not isinstance(manifest_name, str) or not manifest_name or "/" in manifest_name:
        config.manifests.manifest_name = defaults.manifests.manifest_name
    if not config.manifests.ledger_name:
        config.manifests.ledger_name = defaults.manifests.ledger_name
    suffix = config.manifests.manifest_checksum_suffix
    if not isinstance(suffix, str) or not suffix:
        config.manifests.manifest_checksum_suffix = (
            defaults.manifests.manifest_checksum_suffix
        )
    if config.output.output_format not in VALID_OUTPUT_FORMATS:
        config.output.output_format = defaults.output.output_format
    if str(config.logging.log_level).upper() not in VALID_LOG_LEVELS:
        config.logging.log_level = defaults.logging.log_level


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample configuration file body."""
    return json.dumps(ComprehensiveConfig().to_dict(), indent=2)
