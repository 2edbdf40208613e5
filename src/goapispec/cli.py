"""goapispec CLI interface.

Commands:
- generate: Generate the OpenAPI document for a Go module
- check: Validate prerequisites (tree-sitter, go.mod, module cache, GOROOT)
- init: Initialize goapispec configuration

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --version: Show version and exit
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from goapispec import __version__
from goapispec.config import GoapiSpecConfig, load_config
from goapispec.utils.logging import configure_from_cli, get_logger

# Create Typer app
app = typer.Typer(
    name="goapispec",
    help="OpenAPI 3 document generator for annotated Go modules",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: GoapiSpecConfig | None = None
_logger = get_logger()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"goapispec {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with timestamps",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress info messages (warnings and errors only)",
        ),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option(
            "--ci",
            help="Enable CI mode with JSON log output",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """goapispec - OpenAPI generator for Go modules.

    Scans handler doc comments for @Param/@Success/@Router directives and
    resolves the Go types they reference into component schemas.
    """
    global _config

    # Configure logging based on CLI flags
    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)

    # Load configuration
    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
        if _config.ci.json_output and not ci:
            configure_from_cli(verbose=verbose, quiet=quiet, ci=True)
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)


# =============================================================================
# check command
# =============================================================================


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results as JSON",
        ),
    ] = False,
    module_path: Annotated[
        Path | None,
        typer.Option(
            "--module-path",
            "-m",
            help="Go module root (directory holding go.mod)",
            exists=True,
            file_okay=False,
        ),
    ] = None,
) -> None:
    """Validate prerequisites.

    Checks that the Go grammar for tree-sitter loads and that the module has
    a go.mod; reports whether the module cache and GOROOT can be found.

    Exit codes:
        0: All checks passed
        1: A required check failed
        2: Only optional checks failed (warnings)
    """
    import json as json_module

    from goapispec.utils.preflight import PreflightChecker

    config = _config or GoapiSpecConfig()
    checker = PreflightChecker()
    module_root = (module_path or Path(config.scan.module_path)).resolve()

    result = checker.check_all(
        module_root=module_root,
        module_cache=config.go.module_cache,
        goroot=config.go.goroot,
    )

    if json_output:
        typer.echo(json_module.dumps(result.to_dict(), indent=2))
        if result.errors:
            raise typer.Exit(1)
        raise typer.Exit(2 if result.warnings else 0)

    # Human-readable output
    typer.echo("\n🔍 Preflight Check Results\n")

    for check_result in result.checks:
        status = "✅" if check_result.available else "❌"
        version_str = f" ({check_result.version})" if check_result.version else ""
        required_str = " [required]" if check_result.required else " [optional]"

        typer.echo(f"  {status} {check_result.name}{version_str}{required_str}")
        if check_result.available and check_result.path:
            typer.echo(f"     └─ {check_result.path}")
        elif not check_result.available:
            typer.echo(f"     └─ {check_result.message}")

    typer.echo()

    if result.errors:
        typer.echo("❌ Preflight check FAILED")
        for error in result.errors:
            typer.echo(f"   • {error}")
        raise typer.Exit(1)
    elif result.warnings:
        typer.echo("⚠️  Preflight check passed with WARNINGS")
        for warning in result.warnings:
            typer.echo(f"   • {warning}")
        raise typer.Exit(2)
    else:
        typer.echo("✅ All preflight checks passed")
        raise typer.Exit(0)


# =============================================================================
# generate command
# =============================================================================


@app.command()
def generate(
    module_path: Annotated[
        Path | None,
        typer.Option(
            "--module-path",
            "-m",
            help="Go module root (directory holding go.mod)",
            exists=True,
            file_okay=False,
        ),
    ] = None,
    main_file: Annotated[
        Path | None,
        typer.Option(
            "--main-file",
            help="File carrying @Title/@Version (auto-discovered if omitted)",
        ),
    ] = None,
    handler_path: Annotated[
        str | None,
        typer.Option(
            "--handler-path",
            help="Only scan packages below this directory for operations",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output file path (overrides config)",
        ),
    ] = None,
    format: Annotated[
        str | None,
        typer.Option(
            "--format",
            "-f",
            help="Output format: json, yaml",
        ),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option(
            "--strict",
            help="Fail on unresolvable packages and malformed directives",
        ),
    ] = False,
    schema_without_package: Annotated[
        bool,
        typer.Option(
            "--schema-without-package",
            help="Use bare type names as schema ids",
        ),
    ] = False,
    no_fetch: Annotated[
        bool,
        typer.Option(
            "--no-fetch",
            help="Keep $ref:<url> descriptions instead of downloading them",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Print the document instead of writing it",
        ),
    ] = False,
) -> None:
    """Generate the OpenAPI document for a Go module.

    Exit codes:
        0: Document generated successfully
        1: Generation failed; nothing was written
        2: Generated with warnings (only when ci.fail_on_warning is set)
    """
    from goapispec.analyzers.assembler import OUTPUT_FORMATS, DocumentAssembler
    from goapispec.pipeline import GenerationOptions, GenerationPipeline

    config = _config or GoapiSpecConfig()

    output_path = output or Path(config.output.path)
    output_format = (format or config.output.format).lower()
    if output_format not in OUTPUT_FORMATS:
        _logger.error(f"Unsupported format: {output_format} (use one of {', '.join(OUTPUT_FORMATS)})")
        raise typer.Exit(1)

    options = GenerationOptions(
        module_path=module_path,
        main_file=main_file,
        handler_path=handler_path,
        strict=True if strict else None,
        schema_without_package=True if schema_without_package else None,
        fetch_remote=False if no_fetch else None,
    )

    _logger.info("Running generation pipeline...")
    pipeline = GenerationPipeline(config=config)
    result = pipeline.run(options)

    if not result.succeeded or result.document is None:
        _logger.error(f"Generation failed with {len(result.errors)} error(s)")
        for error in result.errors:
            _logger.error(f"  {error}")
        raise typer.Exit(1)

    if result.warnings:
        _logger.warning(f"Generated with {len(result.warnings)} warning(s)")

    document = result.document
    _logger.structured(
        logging.INFO,
        "Generation complete",
        status=result.status.value,
        paths=len(document.paths),
        schemas=len(document.components.schemas),
        warnings=len(result.warnings),
    )

    if dry_run:
        typer.echo(DocumentAssembler.render(document, output_format), nl=False)
        _logger.info("Dry run complete - no files written")
    else:
        try:
            DocumentAssembler.write(document, output_path, output_format)
        except OSError as e:
            _logger.error(f"Cannot write {output_path}: {e}")
            raise typer.Exit(1)
        typer.echo(f"📄 OpenAPI document written to: {output_path}")

    if result.warnings and config.ci.fail_on_warning:
        raise typer.Exit(2)
    raise typer.Exit(0)


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite an existing configuration file",
        ),
    ] = False,
) -> None:
    """Initialize goapispec configuration.

    Writes .goapispec/config.yaml in the current directory.
    """
    from goapispec.config import create_default_config

    config_dir = Path.cwd() / ".goapispec"
    config_file = config_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file} (use --force to overwrite)")
        raise typer.Exit(1)

    config_dir.mkdir(parents=True, exist_ok=True)
    config_file.write_text(create_default_config(), encoding="utf-8")
    _logger.info(f"Created config: {config_file}")

    typer.echo("\n✅ goapispec configuration initialized")
    typer.echo(f"   Config: {config_file}")
    raise typer.Exit(0)


if __name__ == "__main__":
    app()
