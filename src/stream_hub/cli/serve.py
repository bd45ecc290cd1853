from __future__ import annotations

import argparse
from typing import List, Optional

import uvicorn

from stream_hub.config import HubConfig
from stream_hub.utils.log import configure_logging
from stream_hub.web.main import create_app


def build_config(argv: Optional[List[str]] = None) -> HubConfig:
    parser = argparse.ArgumentParser(description="Run the stream hub HTTP service")
    parser.add_argument("--host", help="Bind address (default: STREAM_HUB_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (default: STREAM_HUB_PORT or 8000)")
    parser.add_argument("--queue-size", type=int, help="Per-subscriber event buffer")
    parser.add_argument("--no-demo", action="store_true", help="Do not start demo generators")
    args = parser.parse_args(argv)

    cfg = HubConfig()
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port
    if args.queue_size and args.queue_size > 0:
        cfg.queue_size = args.queue_size
    if args.no_demo:
        cfg.demo_streams = []
    return cfg


def main(argv: Optional[List[str]] = None) -> None:
    cfg = build_config(argv)
    configure_logging(cfg.log_level)
    # log_config=None keeps uvicorn from replacing our logging setup
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port, log_config=None)


if __name__ == "__main__":
    main()
