from __future__ import annotations

import uvicorn

from sessiontodo.config import build_store, load_config
from sessiontodo.observability import get_json_logger

from .app import create_app


def main() -> None:
    cfg = load_config()
    store = build_store(cfg)
    get_json_logger("sessiontodo").info(
        "gateway starting",
        extra={
            "event": "gateway_start",
            "attributes": {
                "store": cfg.store_backend,
                "host": cfg.host,
                "port": cfg.port,
                "redis_url": cfg.redis_url,
            },
        },
    )
    # log_config=None keeps the handlers installed by configure_uvicorn_logging
    uvicorn.run(create_app(store), host=cfg.host, port=cfg.port, log_config=None)


if __name__ == "__main__":
    main()
