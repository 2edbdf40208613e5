"""Document assembly, validation and serialization.

The assembler owns the last steps of a run: installing operations under
their routes, registering component parameters, applying defaults,
validating the required fields and rendering the final JSON or YAML.
"""

import json
import logging
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path

import yaml

from goapispec import __version__
from goapispec.analyzers.operations import BuiltOperation
from goapispec.config import FetchConfig
from goapispec.context import ResolutionContext
from goapispec.errors import DocumentValidationError, DuplicateRouteError, RemoteDescriptionError
from goapispec.models.document import (
    HTTP_METHODS,
    REMOTE_DESCRIPTION_PREFIX,
    Document,
    Operation,
    Parameter,
    PathItem,
    Server,
)
from goapispec.models.schema import SchemaNode

logger = logging.getLogger(__name__)

DEFAULT_SERVER = Server(url="/", description="Default Server URL")
OUTPUT_FORMATS = ("json", "yaml")


def fetch_remote_text(url: str, timeout: float = 10.0) -> str:
    """Download the text behind a ``$ref:`` description.

    Raises:
        RemoteDescriptionError: On any network, HTTP or decoding failure
    """
    req = urllib.request.Request(url, method="GET", headers={"User-Agent": f"goapispec/{__version__}"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return response.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        raise RemoteDescriptionError(url, f"HTTP {e.code}") from e
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise RemoteDescriptionError(url, str(e)) from e


class DocumentAssembler:
    """Merges operations and schemas into the context's document."""

    def __init__(
        self,
        context: ResolutionContext,
        fetch: FetchConfig | None = None,
        fetcher: Callable[[str, float], str] | None = None,
    ) -> None:
        """Initialize the assembler.

        Args:
            context: Run context whose document is assembled
            fetch: Remote description settings
            fetcher: Replacement for fetch_remote_text (tests)
        """
        self.context = context
        self.fetch = fetch or FetchConfig()
        self.fetcher = fetcher or fetch_remote_text

    @property
    def document(self) -> Document:
        return self.context.document

    # =========================================================================
    # Merging
    # =========================================================================

    def attach(self, built: BuiltOperation) -> None:
        """Install an operation under every route it declares.

        Either all routes are installed or none is.

        Raises:
            DuplicateRouteError: If any route already has an operation
        """
        seen: set[tuple[str, str]] = set()
        for route in built.routes:
            key = (route.path, route.method.lower())
            if key in seen or self.has_operation(route.path, route.method):
                raise DuplicateRouteError(route.path, route.method)
            seen.add(key)
        for route in built.routes:
            self.attach_operation(route.path, route.method, built.operation)

    def has_operation(self, path: str, method: str) -> bool:
        item = self.document.paths.get(path)
        return item is not None and method.lower() in item.operations

    def attach_operation(self, path: str, method: str, operation: Operation) -> None:
        """Install one operation at path and method.

        Raises:
            DuplicateRouteError: If the slot is taken
        """
        method = method.lower()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method {method!r}")
        if self.has_operation(path, method):
            raise DuplicateRouteError(path, method)
        self.document.paths.setdefault(path, PathItem()).operations[method] = operation
        logger.debug("Attached %s %s", method.upper(), path)

    def add_schema(self, node: SchemaNode) -> bool:
        """Register a schema node; an existing id is never overwritten."""
        return self.context.publish(node)

    def add_parameter(self, parameter: Parameter) -> bool:
        """Register a component parameter; the first one under a name wins."""
        parameters = self.document.components.parameters
        if parameter.name in parameters:
            logger.debug("Component parameter %s already registered", parameter.name)
            return False
        parameters[parameter.name] = parameter
        return True

    # =========================================================================
    # Finalization
    # =========================================================================

    def apply_defaults(self) -> None:
        if not self.document.servers:
            self.document.servers.append(Server(url=DEFAULT_SERVER.url, description=DEFAULT_SERVER.description))

    def validate(self) -> None:
        """Check the fields every document needs.

        Raises:
            DocumentValidationError: Listing every missing field
        """
        problems: list[str] = []
        if not self.document.info.title:
            problems.append("info.title cannot be empty (add @Title to the main file)")
        if not self.document.info.version:
            problems.append("info.version cannot be empty (add @Version to the main file)")
        for index, server in enumerate(self.document.servers):
            if not server.url:
                problems.append(f"servers[{index}].url cannot be empty")
        if problems:
            raise DocumentValidationError(problems)

    def expand_remote_descriptions(self) -> None:
        """Replace ``$ref:<url>`` descriptions with the fetched text.

        Raises:
            RemoteDescriptionError: If a download fails
        """
        if not self.fetch.enabled:
            return

        cache: dict[str, str] = {}

        def expand(text: str) -> str:
            if not text.startswith(REMOTE_DESCRIPTION_PREFIX):
                return text
            url = text[len(REMOTE_DESCRIPTION_PREFIX):].strip()
            if url not in cache:
                logger.info("Fetching description from %s", url)
                cache[url] = self.fetcher(url, self.fetch.timeout)
            return cache[url]

        document = self.document
        document.info.description = expand(document.info.description)
        for tag in document.tags:
            tag.description = expand(tag.description)
        for item in document.paths.values():
            for operation in item.operations.values():
                operation.description = expand(operation.description)

    def finalize(self) -> Document:
        """Apply defaults, validate and expand remote descriptions.

        Raises:
            DocumentValidationError: If required fields are missing
            RemoteDescriptionError: If a remote description cannot be fetched
        """
        self.apply_defaults()
        self.validate()
        self.expand_remote_descriptions()
        return self.document

    # =========================================================================
    # Output
    # =========================================================================

    @staticmethod
    def render(document: Document, output_format: str = "json") -> str:
        """Serialize a document.

        Args:
            document: Finalized document
            output_format: "json" or "yaml"

        Returns:
            Serialized text ending with a newline
        """
        data = document.to_dict()
        if output_format == "yaml":
            return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        if output_format != "json":
            raise ValueError(f"unsupported output format {output_format!r}")
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    @staticmethod
    def write(document: Document, path: Path, output_format: str = "json") -> Path:
        """Render a document and write it to path, creating parent directories.

        Raises:
            OSError: If the file cannot be written
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DocumentAssembler.render(document, output_format), encoding="utf-8")
        logger.info("Wrote %s", path)
        return path
