"""Generation pipeline orchestrator.

Coordinates one document generation run over a Go module:
1. go.mod parsing and toolchain location (module cache, GOROOT)
2. Main file discovery and document-level directives
3. Package discovery for the module and its requirements
4. Operation and header-parameter extraction, resolving types on demand
5. Defaults, validation and remote descriptions

Every run builds a fresh ResolutionContext, so repeated runs share nothing.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from goapispec.analyzers.assembler import DocumentAssembler
from goapispec.analyzers.declaration_index import DeclarationIndex
from goapispec.analyzers.go_parser import GoSourceParser, TreeSitterUnavailableError
from goapispec.analyzers.gomod import find_goroot, find_main_file, find_module_cache, parse_go_mod
from goapispec.analyzers.info import apply_info_directives
from goapispec.analyzers.operations import OperationBuilder
from goapispec.analyzers.package_locator import PackageLocator
from goapispec.analyzers.resolver import TypeResolver
from goapispec.config import FetchConfig, GoapiSpecConfig
from goapispec.context import ResolutionContext, ResolutionSettings
from goapispec.errors import (
    AnnotationSyntaxError,
    ConfigurationError,
    DuplicateRouteError,
    GoapiSpecError,
)
from goapispec.models.declarations import AnnotatedDeclaration, Package
from goapispec.models.diagnostics import Diagnostic, GenerationResult, GenerationStatus

logger = logging.getLogger(__name__)


@dataclass
class GenerationOptions:
    """Per-run overrides of the scan configuration.

    Attributes:
        module_path: Module root (directory holding go.mod)
        main_file: File declaring the document info directives
        handler_path: Only packages below this directory are scanned for operations
        strict: Locator misses and grammar errors are fatal
        schema_without_package: Schema ids are bare type names
        fetch_remote: Fetch ``$ref:`` descriptions

    None keeps the configured value.
    """

    module_path: Path | None = None
    main_file: Path | None = None
    handler_path: str | None = None
    strict: bool | None = None
    schema_without_package: bool | None = None
    fetch_remote: bool | None = None


class GenerationPipeline:
    """Runs the stages of document generation in order.

    Recoverable problems are collected as diagnostics on the result; fatal
    ones end the run with a FAILED status and no document.
    """

    def __init__(
        self,
        config: GoapiSpecConfig | None = None,
        parser: GoSourceParser | None = None,
        fetcher: Callable[[str, float], str] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: goapispec configuration (uses defaults if None)
            parser: Go source parser to share across runs
            fetcher: Replacement for the remote description download
        """
        self.config = config or GoapiSpecConfig()
        self.parser = parser or GoSourceParser()
        self.fetcher = fetcher

    def run(self, options: GenerationOptions | None = None) -> GenerationResult:
        """Generate the document.

        Args:
            options: Overrides of the configured scan settings

        Returns:
            GenerationResult with the document (None on failure) and diagnostics
        """
        options = options or GenerationOptions()
        scan = self.config.scan
        module_root = Path(options.module_path or scan.module_path).resolve()
        strict = scan.strict if options.strict is None else options.strict

        result = GenerationResult()
        context: ResolutionContext | None = None

        logger.info("Starting generation for %s", module_root)

        try:
            context = self._build_context(module_root, options, strict)
            assembler = DocumentAssembler(context, fetch=self._fetch_config(options), fetcher=self.fetcher)

            main_file = self._main_file(module_root, options)
            self._read_info(context, main_file)

            resolver = TypeResolver(context)
            builder = OperationBuilder(resolver)
            self._scan_packages(context, builder, assembler, module_root, options)

            if any(not d.recoverable for d in context.diagnostics):
                result.status = GenerationStatus.FAILED
            else:
                result.document = assembler.finalize()
                result.status = (
                    GenerationStatus.COMPLETED_WITH_WARNINGS
                    if context.diagnostics
                    else GenerationStatus.COMPLETED
                )

        except (GoapiSpecError, TreeSitterUnavailableError) as e:
            logger.error("Generation failed: %s", e)
            result.status = GenerationStatus.FAILED
            result.document = None
            if context is not None:
                result.diagnostics.extend(context.diagnostics)
            result.diagnostics.append(
                Diagnostic(component="pipeline", message=str(e), recoverable=False)
            )
            return result

        result.diagnostics.extend(context.diagnostics)
        logger.info(
            "Generation complete: %s (%d diagnostics)",
            result.status.value,
            len(result.diagnostics),
        )
        return result

    # =========================================================================
    # Setup
    # =========================================================================

    def _build_context(
        self, module_root: Path, options: GenerationOptions, strict: bool
    ) -> ResolutionContext:
        go_mod = module_root / "go.mod"
        if not go_mod.is_file():
            raise ConfigurationError(f"no go.mod in {module_root}")
        module = parse_go_mod(go_mod)

        module_cache = find_module_cache(self.config.go.module_cache)
        goroot = find_goroot(self.config.go.goroot)
        logger.info("Module %s (cache: %s, GOROOT: %s)", module.name, module_cache, goroot or "not found")

        settings = ResolutionSettings(
            strict=strict,
            schema_without_package=(
                self.config.scan.schema_without_package
                if options.schema_without_package is None
                else options.schema_without_package
            ),
        )
        locator = PackageLocator(module, module_cache=module_cache, goroot=goroot)
        locator.discover()
        for requirement in locator.missing_requirements:
            logger.warning(
                "Sources of %s@%s not found; its types will not resolve",
                requirement.path,
                requirement.version,
            )
        return ResolutionContext(locator, DeclarationIndex(self.parser), settings)

    def _fetch_config(self, options: GenerationOptions) -> FetchConfig:
        fetch = self.config.fetch
        if options.fetch_remote is None or options.fetch_remote == fetch.enabled:
            return fetch
        return FetchConfig(enabled=options.fetch_remote, timeout=fetch.timeout)

    def _main_file(self, module_root: Path, options: GenerationOptions) -> Path:
        configured = options.main_file or self.config.scan.main_file
        if configured:
            path = Path(configured)
            if not path.is_absolute():
                path = module_root / path
            if not path.is_file():
                raise ConfigurationError(f"main file {path} does not exist")
            return path
        return find_main_file(module_root, self.parser)

    def _read_info(self, context: ResolutionContext, main_file: Path) -> None:
        logger.info("Reading document info from %s", main_file)
        parsed = self.parser.parse_file(main_file)
        if not parsed.success or parsed.file is None:
            raise ConfigurationError(f"cannot parse main file {main_file}: {parsed.error}")

        try:
            info = apply_info_directives(context.document, parsed.file.comments)
        except AnnotationSyntaxError as e:
            if context.strict:
                raise
            context.report("annotations", e.message, str(main_file))
            return
        context.settings.package_aliases.update(info.package_aliases)

    # =========================================================================
    # Scanning
    # =========================================================================

    def _scan_packages(
        self,
        context: ResolutionContext,
        builder: OperationBuilder,
        assembler: DocumentAssembler,
        module_root: Path,
        options: GenerationOptions,
    ) -> None:
        locator = context.locator
        packages = sorted(
            (p for p in locator.packages if locator.is_primary(p.name)),
            key=lambda p: p.name,
        )
        handler_root = self._handler_root(module_root, options)
        logger.info("Scanning %d packages", len(packages))

        for package in packages:
            scan_operations = handler_root is None or _is_within(package.path, handler_root)
            for go_file in context.index.files_for(package.path):
                for declaration in go_file.declarations:
                    if declaration.kind in ("func", "method"):
                        if scan_operations:
                            self._scan_operation(context, builder, assembler, package, declaration)
                    else:
                        self._scan_header_parameters(context, builder, assembler, package, declaration)

    def _handler_root(self, module_root: Path, options: GenerationOptions) -> Path | None:
        handler_path = options.handler_path or self.config.scan.handler_path
        if not handler_path:
            return None
        path = Path(handler_path)
        return (path if path.is_absolute() else module_root / path).resolve()

    def _scan_operation(
        self,
        context: ResolutionContext,
        builder: OperationBuilder,
        assembler: DocumentAssembler,
        package: Package,
        declaration: AnnotatedDeclaration,
    ) -> None:
        checkpoint = context.checkpoint()
        try:
            built = builder.build(package, declaration)
            if built is None:
                return
            assembler.attach(built)
        except AnnotationSyntaxError as e:
            if context.strict:
                raise
            context.rollback(checkpoint)
            context.report(
                "annotations",
                f"{declaration.name}: {e.message}; operation dropped",
                str(declaration.file_path),
            )
        except DuplicateRouteError as e:
            context.report(
                "assembler",
                f"{declaration.name}: {e.message}",
                str(declaration.file_path),
                recoverable=False,
            )

    def _scan_header_parameters(
        self,
        context: ResolutionContext,
        builder: OperationBuilder,
        assembler: DocumentAssembler,
        package: Package,
        declaration: AnnotatedDeclaration,
    ) -> None:
        try:
            parameters = builder.header_parameters(package, declaration)
        except AnnotationSyntaxError as e:
            if context.strict:
                raise
            context.report("annotations", f"{declaration.name}: {e.message}", str(declaration.file_path))
            return
        for parameter in parameters:
            assembler.add_parameter(parameter)


def _is_within(path: Path, root: Path) -> bool:
    resolved = path.resolve()
    return resolved == root or root in resolved.parents
