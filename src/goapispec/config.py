"""goapispec configuration system.

Configuration is YAML-based with per-run CLI overrides (--output, --format,
--strict, ...). Supports environment variable substitution (${VAR}) in
config files.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.goapispec/config.yaml
3. ./goapispec.yaml
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class OutputConfig:
    """Output configuration.

    Attributes:
        path: Output file path
        format: Output format (json, yaml)
    """

    path: str = "oas.json"
    format: str = "json"

    def __post_init__(self) -> None:
        """Validate output configuration."""
        valid_formats = {"json", "yaml"}
        if self.format not in valid_formats:
            raise ValueError(f"Invalid output format: {self.format}. Valid: {sorted(valid_formats)}")


@dataclass
class ScanConfig:
    """Which sources are scanned and how strictly types are resolved.

    Attributes:
        module_path: Root of the Go module (directory holding go.mod)
        main_file: File with the info directives (auto-discovered if empty)
        handler_path: Only scan packages below this directory for operations
        strict: Treat locator misses and directive grammar errors as fatal
        schema_without_package: Use bare type names as schema ids
    """

    module_path: str = "."
    main_file: str = ""
    handler_path: str = ""
    strict: bool = False
    schema_without_package: bool = False


@dataclass
class GoEnvConfig:
    """Overrides for Go toolchain locations.

    Both default to what the environment (GOMODCACHE, GOPATH, GOROOT) or the
    ``go`` binary reports.

    Attributes:
        module_cache: Directory with extracted dependency sources (pkg/mod)
        goroot: Go installation root (its src/ holds the standard library)
    """

    module_cache: str | None = None
    goroot: str | None = None


@dataclass
class FetchConfig:
    """Remote ``$ref:`` description fetching.

    Attributes:
        enabled: Whether ``$ref:<url>`` descriptions are fetched
        timeout: Request timeout in seconds
    """

    enabled: bool = True
    timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate fetch configuration."""
        if self.timeout <= 0:
            raise ValueError(f"Fetch timeout must be positive (got {self.timeout})")


@dataclass
class CIConfig:
    """CI/CD-specific configuration.

    Attributes:
        fail_on_warning: Exit with code 2 if recoverable diagnostics occur
        json_output: Use JSON log output
    """

    fail_on_warning: bool = False
    json_output: bool = False


@dataclass
class GoapiSpecConfig:
    """Top-level goapispec configuration.

    Attributes:
        output: Output path and format
        scan: Source selection and resolution policy
        go: Toolchain location overrides
        fetch: Remote description settings
        ci: CI/CD settings
    """

    output: OutputConfig = field(default_factory=OutputConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    go: GoEnvConfig = field(default_factory=GoEnvConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    ci: CIConfig = field(default_factory=CIConfig)

    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path


# =============================================================================
# Environment Variable Substitution
# =============================================================================

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax, e.g. ``goroot: "${HOME}/sdk/go1.22"``.

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return _ENV_PATTERN.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Search order:
    1. ./.goapispec/config.yaml
    2. ./goapispec.yaml

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".goapispec" / "config.yaml",
        start_path / "goapispec.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a config section, treating a null section as empty."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def load_config_from_dict(data: dict[str, Any]) -> GoapiSpecConfig:
    """Load configuration from a dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        GoapiSpecConfig instance

    Raises:
        ValueError: If a value is invalid or a referenced variable is unset
    """
    data = substitute_env_vars(data)

    config = GoapiSpecConfig()

    if "output" in data:
        output_data = _section(data, "output")
        config.output = OutputConfig(
            path=str(output_data.get("path", config.output.path)),
            format=output_data.get("format", config.output.format),
        )

    if "scan" in data:
        scan_data = _section(data, "scan")
        config.scan = ScanConfig(
            module_path=str(scan_data.get("module_path", ".")),
            main_file=str(scan_data.get("main_file") or ""),
            handler_path=str(scan_data.get("handler_path") or ""),
            strict=bool(scan_data.get("strict", False)),
            schema_without_package=bool(scan_data.get("schema_without_package", False)),
        )

    if "go" in data:
        go_data = _section(data, "go")
        config.go = GoEnvConfig(
            module_cache=go_data.get("module_cache"),
            goroot=go_data.get("goroot"),
        )

    if "fetch" in data:
        fetch_data = _section(data, "fetch")
        config.fetch = FetchConfig(
            enabled=bool(fetch_data.get("enabled", True)),
            timeout=float(fetch_data.get("timeout", 10.0)),
        )

    if "ci" in data:
        ci_data = _section(data, "ci")
        config.ci = CIConfig(
            fail_on_warning=bool(ci_data.get("fail_on_warning", False)),
            json_output=bool(ci_data.get("json_output", False)),
        )

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> GoapiSpecConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        GoapiSpecConfig instance

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is not None:
        with open(found_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {found_path}")
        config = load_config_from_dict(data)
        config._config_path = found_path
    else:
        config = GoapiSpecConfig()

    return config


def create_default_config() -> str:
    """Create default configuration YAML content.

    Returns:
        YAML string with default configuration and comments
    """
    return '''# goapispec Configuration

# Output settings
output:
  path: "oas.json"
  format: "json"  # json, yaml

# What to scan
scan:
  module_path: "."             # directory holding go.mod
  main_file: ""                # file with @Title/@Version (auto-discovered if empty)
  handler_path: ""             # restrict operation scanning to this directory
  strict: false                # fail on unresolvable packages and bad directives
  schema_without_package: false  # use bare type names as schema ids

# Go toolchain locations (defaults come from GOMODCACHE/GOPATH/GOROOT)
go:
  # module_cache: "${HOME}/go/pkg/mod"
  # goroot: "/usr/local/go"

# Remote "$ref:<url>" descriptions
fetch:
  enabled: true
  timeout: 10

# CI/CD settings
ci:
  fail_on_warning: false
  json_output: false
'''
