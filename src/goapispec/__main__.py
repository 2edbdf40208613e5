"""Entry point for running goapispec as a module.

Usage:
    python -m goapispec [command] [options]

Example:
    python -m goapispec generate --module-path . --output oas.json
    python -m goapispec check
"""

from goapispec.cli import app

if __name__ == "__main__":
    app()
