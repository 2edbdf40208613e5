"""goapispec analyzers.

Analyzers:
- Go Parser: Go source extraction via tree-sitter
- go.mod / Package Locator: module layout, module cache and GOROOT
- Declaration Index: per-package type declarations, parsed once
- Type Resolver: Go types to schema nodes
- Operation Builder / Info: comment directives to document parts
- Document Assembler: merging, validation and output
"""

from goapispec.analyzers.assembler import DocumentAssembler
from goapispec.analyzers.declaration_index import DeclarationIndex, PackageParseError
from goapispec.analyzers.go_parser import GoSourceParser, TreeSitterUnavailableError
from goapispec.analyzers.gomod import GoModule, parse_go_mod
from goapispec.analyzers.info import apply_info_directives
from goapispec.analyzers.operations import BuiltOperation, OperationBuilder
from goapispec.analyzers.package_locator import PackageLocator
from goapispec.analyzers.resolver import TypeResolver

__all__ = [
    "BuiltOperation",
    "DeclarationIndex",
    "DocumentAssembler",
    "GoModule",
    "GoSourceParser",
    "OperationBuilder",
    "PackageLocator",
    "PackageParseError",
    "TreeSitterUnavailableError",
    "TypeResolver",
    "apply_info_directives",
    "parse_go_mod",
]
