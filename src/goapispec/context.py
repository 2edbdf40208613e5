"""Run-scoped state shared by every stage of a generation run.

A ResolutionContext owns the caches that make a run terminate and stay
deterministic: the package locator's memo, the declaration index, and the
schema identity cache. Nothing is kept in module globals, so two contexts
never influence each other.
"""

import logging
from dataclasses import dataclass, field

from goapispec.analyzers.declaration_index import DeclarationIndex
from goapispec.analyzers.package_locator import PackageLocator
from goapispec.models.diagnostics import Diagnostic
from goapispec.models.document import Document
from goapispec.models.schema import SchemaNode

logger = logging.getLogger(__name__)


@dataclass
class ResolutionSettings:
    """Resolution policy for one run.

    Attributes:
        strict: Locator misses and directive grammar errors are fatal
        schema_without_package: Schema ids are bare type names
        package_aliases: Last package path element -> replacement (``@PackageAlias``)
        tag_key: Struct tag key carrying tool directives (``-``, ``enum=``)
    """

    strict: bool = False
    schema_without_package: bool = False
    package_aliases: dict[str, str] = field(default_factory=dict)
    tag_key: str = "goas"


class ResolutionContext:
    """Caches and outputs of a single document generation run."""

    def __init__(
        self,
        locator: PackageLocator,
        index: DeclarationIndex,
        settings: ResolutionSettings | None = None,
    ) -> None:
        """Initialize the context.

        Args:
            locator: Package locator for the primary module
            index: Declaration index (its parse cache is owned by this context)
            settings: Resolution policy
        """
        self.locator = locator
        self.index = index
        self.settings = settings or ResolutionSettings()
        self.document = Document()
        self.schemas: dict[str, SchemaNode] = {}
        self.diagnostics: list[Diagnostic] = []

    @property
    def strict(self) -> bool:
        return self.settings.strict

    def report(
        self,
        component: str,
        message: str,
        file_path: str | None = None,
        recoverable: bool = True,
    ) -> Diagnostic:
        """Record a diagnostic and log it.

        Args:
            component: Stage reporting the problem
            message: Description
            file_path: Source file involved
            recoverable: False if the document must not be emitted

        Returns:
            The recorded diagnostic
        """
        diagnostic = Diagnostic(
            component=component,
            message=message,
            file_path=file_path,
            recoverable=recoverable,
        )
        self.diagnostics.append(diagnostic)
        if recoverable:
            logger.warning("%s", diagnostic)
        else:
            logger.error("%s", diagnostic)
        return diagnostic

    def publish(self, node: SchemaNode) -> bool:
        """Add a registered node to the document's component schemas.

        The first node published under an id stays; later ones are ignored.

        Returns:
            True if the node was added
        """
        schemas = self.document.components.schemas
        if node.id in schemas:
            return False
        schemas[node.id] = node
        logger.debug("Published schema %s", node.id)
        return True

    def checkpoint(self) -> tuple[frozenset[str], frozenset[str]]:
        """Record which schemas are registered and published right now."""
        return frozenset(self.schemas), frozenset(self.document.components.schemas)

    def rollback(self, checkpoint: tuple[frozenset[str], frozenset[str]]) -> None:
        """Forget every schema registered or published since a checkpoint.

        Forgotten types are synthesized again, dependencies included, the
        next time something references them.
        """
        registered, published = checkpoint
        for schema_id in set(self.schemas) - registered:
            del self.schemas[schema_id]
        components = self.document.components.schemas
        for schema_id in set(components) - published:
            del components[schema_id]
            logger.debug("Withdrew schema %s", schema_id)

    def reset(self) -> None:
        """Start over with an empty document and empty caches."""
        self.document = Document()
        self.schemas = {}
        self.diagnostics = []
        self.index.reset()
