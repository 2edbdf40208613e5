"""Run outcome entities.

- Diagnostic: a problem encountered while generating, fatal or not
- GenerationStatus: overall outcome of a run
- GenerationResult: the document plus everything reported along the way
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from goapispec.models.document import Document


class GenerationStatus(Enum):
    """Status of a generation run."""

    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    FAILED = "failed"


@dataclass
class Diagnostic:
    """Problem encountered during a run.

    Attributes:
        component: Stage that reported it (locator, indexer, resolver, annotations, assembler)
        message: Error description
        file_path: Source file involved (if applicable)
        recoverable: Whether generation continued after this problem
    """

    component: str
    message: str
    file_path: str | None = None
    recoverable: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "component": self.component,
            "message": self.message,
            "file_path": self.file_path,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        location = f" ({self.file_path})" if self.file_path else ""
        return f"[{self.component}] {self.message}{location}"


@dataclass
class GenerationResult:
    """Outcome of one document generation run.

    Attributes:
        document: The assembled document (None when generation failed early)
        diagnostics: Everything reported during the run, in order
        status: Overall status
    """

    document: Document | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    status: GenerationStatus = GenerationStatus.COMPLETED

    @property
    def errors(self) -> list[Diagnostic]:
        """Return diagnostics that prevent the document from being emitted."""
        return [d for d in self.diagnostics if not d.recoverable]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.recoverable]

    @property
    def succeeded(self) -> bool:
        return self.status != GenerationStatus.FAILED and self.document is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert a run summary to a dictionary (the document is not included)."""
        return {
            "status": self.status.value,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
