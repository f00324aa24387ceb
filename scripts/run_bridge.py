"""Runs the editor bridge connection loop with repository-relative imports."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path


def main() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    # Import after adjusting sys.path
    from editor_bridge.bootstrap import serve_forever  # type: ignore
    from editor_bridge.config import get_settings  # type: ignore

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(serve_forever(settings))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutting down editor bridge")


if __name__ == "__main__":
    main()
