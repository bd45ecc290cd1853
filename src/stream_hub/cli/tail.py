from __future__ import annotations

import argparse
import json
from typing import Any, Dict, Iterable, Iterator, List, Optional
from urllib.parse import quote

import requests


def parse_sse(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """Decode ``data:`` lines of an SSE body into event dicts."""
    for line in lines:
        if not line or not line.startswith("data:"):
            continue
        try:
            yield json.loads(line[len("data:"):].strip())
        except ValueError:
            continue


def follow(base_url: str, stream_id: str, timeout: Optional[float] = None) -> Iterator[Dict[str, Any]]:
    url = f"{base_url.rstrip('/')}/events/stream/{quote(stream_id, safe='')}"
    with requests.get(url, stream=True, headers={"Accept": "text/event-stream"}, timeout=timeout) as resp:
        resp.raise_for_status()
        yield from parse_sse(resp.iter_lines(decode_unicode=True))


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Follow a stream hub stream and print events as JSON lines")
    parser.add_argument("url", help="Base URL of the service, e.g. http://localhost:8000")
    parser.add_argument("stream", help="Stream id to follow")
    parser.add_argument("--limit", type=int, default=None, help="Stop after N events (connection event excluded)")
    parser.add_argument("--show-connect", action="store_true", help="Also print the initial connection event")
    args = parser.parse_args(argv)

    seen = 0
    try:
        for event in follow(args.url, args.stream):
            if event.get("type") == "connection" and not args.show_connect:
                continue
            print(json.dumps(event), flush=True)
            seen += 1
            if args.limit is not None and seen >= args.limit:
                break
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
