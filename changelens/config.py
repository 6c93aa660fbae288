"""Paths and runtime defaults for changelens."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("CHANGELENS_HOME", str(Path.home() / ".changelens"))).expanduser()
CLONE_DIR = BASE_DIR / "repos"

# Only these files are ever handed to the classifier
SOURCE_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py"}

# Seconds allowed for a single git invocation / HTTP request
GIT_TIMEOUT = int(os.environ.get("CHANGELENS_GIT_TIMEOUT", "120"))
HTTP_TIMEOUT = int(os.environ.get("CHANGELENS_HTTP_TIMEOUT", "30"))

# Diffs larger than this skip syntax parsing and use the lexical fallback
MAX_PARSE_BYTES = int(os.environ.get("CHANGELENS_MAX_PARSE_BYTES", str(1_000_000)))
