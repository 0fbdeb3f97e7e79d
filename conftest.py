"""Root conftest: test environment is fixed before settings are imported."""
from __future__ import annotations

import os
from pathlib import Path


def _load_env_file(path: Path) -> None:
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())


_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    _load_env_file(_env_test)

# Environment beats a developer's .env; an API key would lock the context endpoints.
os.environ.setdefault("MCP_API_KEY", "")
