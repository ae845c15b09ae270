from __future__ import annotations

import argparse

import structlog
import uvicorn

from egress_relay.config import get_settings
from egress_relay.main import create_app
from egress_relay.observability.logging import configure_logging, parse_level


def main() -> None:
    parser = argparse.ArgumentParser(description="Authenticated HTTP egress relay")
    parser.add_argument("--host", default=None, help="Listen address (default: PROXY_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: PROXY_PORT)")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--no-tls", action="store_true", help="Serve plain HTTP (local development only)")
    args = parser.parse_args()

    settings = get_settings()
    log_level = args.log_level or settings.log_level
    configure_logging(parse_level(log_level), log_file=settings.log_file)

    log = structlog.get_logger("egress_relay")
    if not settings.proxy_api_key:
        log.warning("config.api_key_missing", detail="PROXY_API_KEY is empty; every request will be rejected")

    host = args.host or settings.proxy_host
    port = args.port or settings.proxy_port
    ssl_options: dict[str, str] = {}
    if not args.no_tls:
        ssl_options = {
            "ssl_certfile": str(settings.cert_path),
            "ssl_keyfile": str(settings.key_path),
            "ssl_ciphers": settings.ssl_ciphers,
        }

    log.info("server.starting", host=host, port=port, tls=not args.no_tls)
    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_config=None,
        log_level=log_level.lower(),
        timeout_keep_alive=30,
        **ssl_options,
    )


if __name__ == "__main__":
    main()
