"""docserve: incremental build cache and validating preview server for AsciiDoc docs."""

from __future__ import annotations

import warnings
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("docserve")
except PackageNotFoundError:
    # Running from a bare checkout (no `pip install -e .`); the server still
    # logs a version at startup, so give it a recognisable placeholder.
    warnings.warn(
        "docserve is not installed; reporting version '0.0.0+unknown'.",
        RuntimeWarning,
        stacklevel=2,
    )
    __version__ = "0.0.0+unknown"
