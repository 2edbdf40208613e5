"""goapispec - OpenAPI document generator for annotated Go modules.

goapispec statically scans a Go module, resolves the types referenced by
comment directives across the module, its go.mod dependencies and the
standard library, and synthesizes an OpenAPI 3 document from them.

Core principles:
- Static-Only: Types are resolved from source, never by compiling or running Go
- Reproducibility: Same input produces byte-identical output
- Single Pass: Every package is located and parsed at most once per run
- CI/CD Compatibility: No interactive prompts, meaningful exit codes
"""

__version__ = "0.1.0"
__author__ = "goapispec Contributors"
