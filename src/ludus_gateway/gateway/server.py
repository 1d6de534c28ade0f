"""Launch the gateway under uvicorn."""
from __future__ import annotations
import argparse
import logging
import sys

import uvicorn

from ludus_gateway.common.logging_setup import setup_logging
from ludus_gateway.common.settings import ConfigurationError, load_settings
from ludus_gateway.gateway.fastapi_app import create_app

LOGGER = logging.getLogger("ludus.gateway.server")

def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Run the Ludus LLM gateway")
    ap.add_argument("--config", default=None, help="YAML config path")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    args = ap.parse_args(argv)

    setup_logging()
    try:
        settings = load_settings(path=args.config)
    except ConfigurationError as e:
        LOGGER.error("ERROR: %s", e)
        sys.exit(1)
    setup_logging(settings.log_level)

    app = create_app(settings)
    host = args.host or settings.host
    port = args.port or settings.port
    LOGGER.info("Gateway listening on http://%s:%s (health: /health)", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)

if __name__ == "__main__":
    main()
