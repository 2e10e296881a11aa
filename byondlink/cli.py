import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import ClientConfig, DEFAULT_PORT, DEFAULT_TIMEOUT, ListenerConfig
from .log import setup_logging
from .net.listener import TopicListener
from .net.protocol import Reply, ReplyType
from .net.session import TopicSession
from .net.world import FakeWorld


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="byondlink - query BYOND worlds over the Topic protocol")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    subparsers = parser.add_subparsers(dest="mode", required=True)

    query_p = subparsers.add_parser("query", help="Send one topic and print the reply")
    query_p.add_argument("--address", type=str, default="127.0.0.1", help="World host or IP")
    query_p.add_argument("--port", type=int, default=DEFAULT_PORT, help="World port")
    query_p.add_argument("--suffix", type=str, default=None, help="String appended to the query")
    query_p.add_argument("--no-suffix", action="store_true", help="Do not append the suffix")
    query_p.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help="Seconds to wait for activity")
    query_p.add_argument("topic", type=str, help="Topic query, '?' is added if missing")

    listen_p = subparsers.add_parser("listen", help="Print topics exported to this machine")
    listen_p.add_argument("--bind", type=str, default="0.0.0.0", help="Bind address")
    listen_p.add_argument("--port", type=int, required=True, help="HTTP port to listen on")

    fake_p = subparsers.add_parser("serve-fake", help="Answer every topic with a fixed text reply")
    fake_p.add_argument("--bind", type=str, default="127.0.0.1", help="Bind address")
    fake_p.add_argument("--port", type=int, default=DEFAULT_PORT, help="TCP port to listen on")
    fake_p.add_argument("--reply", type=str, default="ok", help="Text sent back for every topic")

    console_p = subparsers.add_parser("console", help="Open the interactive topic console")
    console_p.add_argument("--address", type=str, default="127.0.0.1", help="World host or IP")
    console_p.add_argument("--port", type=int, default=DEFAULT_PORT, help="World port")
    console_p.add_argument("--suffix", type=str, default=None, help="String appended to every query")
    console_p.add_argument("--listen-port", type=int, default=0, help="Also show topics exported to this port")
    return parser


async def run_query(cfg: ClientConfig, topic: str, use_suffix: bool = True) -> int:
    outcome = await TopicSession(cfg).send(topic, use_suffix=use_suffix)
    if not outcome.ok:
        print(f"error: {outcome.error}", file=sys.stderr)
        return 1
    print("null" if outcome.value is None else outcome.value)
    return 0


async def run_listen(cfg: ListenerConfig) -> None:
    listener = TopicListener(cfg, on_topic=lambda topic: print(topic, flush=True))
    await listener.serve_forever()


async def run_fake(bind: str, port: int, reply: str) -> None:
    world = FakeWorld(Reply(ReplyType.TEXT, reply), bind=bind, port=port)
    await world.serve_forever()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.mode == "query":
            cfg = ClientConfig(host=args.address, port=args.port, suffix=args.suffix, timeout=args.timeout)
            return asyncio.run(run_query(cfg, args.topic, use_suffix=not args.no_suffix))
        if args.mode == "listen":
            asyncio.run(run_listen(ListenerConfig(host=args.bind, port=args.port)))
        elif args.mode == "serve-fake":
            asyncio.run(run_fake(args.bind, args.port, args.reply))
        elif args.mode == "console":
            from .gui import run_console

            cfg = ClientConfig(host=args.address, port=args.port, suffix=args.suffix)
            run_console(cfg, listen_port=args.listen_port)
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
