"""CLI entrypoint for launching the HealOps API."""

from __future__ import annotations

import uvicorn

from ..config import load_config


def run() -> None:
    settings = load_config().api
    uvicorn.run(
        "healops.api.app:create_app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        factory=True,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
