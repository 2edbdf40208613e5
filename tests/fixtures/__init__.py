"""Test fixtures for goapispec.

This package provides a sample Go module and the toolchain directories it
resolves against:

Sample Modules:
- sample_modules/petstore: annotated handlers over a small pet model
- sample_modules/modcache: module cache with github.com/acme/shared@v1.2.0
- sample_modules/goroot: GOROOT whose src/ only holds net/url
"""

from pathlib import Path

# Path to fixtures directory
FIXTURES_DIR = Path(__file__).parent

# Path to sample modules
SAMPLE_MODULES_DIR = FIXTURES_DIR / "sample_modules"

PETSTORE_PATH = SAMPLE_MODULES_DIR / "petstore"
MODULE_CACHE_DIR = SAMPLE_MODULES_DIR / "modcache"
GOROOT_DIR = SAMPLE_MODULES_DIR / "goroot"


def get_sample_module(name: str) -> Path:
    """Get path to a sample module.

    Args:
        name: Name of the sample module

    Returns:
        Path to the module root

    Raises:
        ValueError: If the module doesn't exist
    """
    module_path = SAMPLE_MODULES_DIR / name
    if not (module_path / "go.mod").exists():
        raise ValueError(f"Sample module not found: {name}")
    return module_path
