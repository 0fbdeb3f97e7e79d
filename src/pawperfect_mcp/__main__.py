"""Entrypoint: python -m pawperfect_mcp"""
from __future__ import annotations

import logging

import uvicorn

from pawperfect_mcp.config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("Starting PawPerfect MCP on %s:%d", settings.HOST, settings.PORT)
    uvicorn.run(
        "pawperfect_mcp.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
