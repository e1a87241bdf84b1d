#!/usr/bin/env python3
"""HomeStats Hub -- Entry point.

Polls Home Assistant, Pi-hole, Proxmox and the media cluster on their own
schedules and serves the latest snapshots over HTTP (JSON + SSE).

Usage:
    python3 main.py                      # web surface on 0.0.0.0:5000
    python3 main.py --headless           # pollers only, no HTTP
    python3 main.py --config other.yaml  # alternative dashboard config
    python3 main.py --log-level DEBUG    # verbose logging
"""

__version__ = "1.0.0"

import argparse
import logging
import threading


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="HomeStats Hub - home infrastructure telemetry aggregator",
    )
    parser.add_argument(
        "--config", default="dashboard.yaml",
        help="Path to dashboard YAML config (default: dashboard.yaml)",
    )
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging verbosity (default: INFO)",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: server.host or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Web server port (default: server.port or 5000)")
    parser.add_argument(
        "--headless", action="store_true",
        help="Run the pollers without the HTTP surface",
    )
    parser.add_argument(
        "--version", action="version",
        version=f"HomeStats Hub {__version__}",
    )
    return parser.parse_args(argv)


def setup_logging(level_name: str) -> None:
    """Configure root logger with a consistent format."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    # requests/urllib3 log full URLs, which can carry API keys
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger = logging.getLogger(__name__)
    logger.info("HomeStats Hub v%s starting", __version__)

    from core.station import Station
    station = Station.from_file(args.config)
    server = station.config.get("server") or {}
    station.start()

    try:
        if args.headless:
            logger.info("Running headless, Ctrl-C to stop")
            threading.Event().wait()
        else:
            from web_app import create_app
            host = args.host or server.get("host", "0.0.0.0")
            port = args.port or int(server.get("port", 5000))
            app = create_app(station)
            logger.info("Web surface at http://%s:%d", host, port)
            app.run(host=host, port=port, threaded=True, debug=False)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        station.stop()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
