from __future__ import annotations

import asyncio
import logging

import uvicorn

from .app import create_app
from .settings import VectDbSettings, settings


async def _serve(cfg: VectDbSettings, host: str, port: int) -> None:
    app = create_app(cfg)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=(cfg.log_level or "info").lower(),
    )
    server = uvicorn.Server(config)
    await server.serve()


def serve(cfg: VectDbSettings | None = None, *, host: str | None = None, port: int | None = None) -> None:
    cfg = cfg or settings
    asyncio.run(_serve(cfg, host or cfg.server.bind_host, port or cfg.server.bind_port))


def main() -> None:
    logging.basicConfig(
        level=(settings.log_level or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    serve()


if __name__ == "__main__":
    main()
