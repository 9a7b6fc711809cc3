import argparse
import asyncio
import logging
import os

from .server import HostServer

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Multi-table Hold'em host server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 8765)))
    parser.add_argument(
        "--next-hand-delay",
        type=int,
        default=4_000,
        help="Pause between hands in milliseconds",
    )
    args = parser.parse_args()

    server = HostServer(next_hand_delay_ms=args.next_hand_delay)
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
