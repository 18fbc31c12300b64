from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import List, Optional

from .cache.expiring import ExpiringCache
from .comics.fetcher import ComicFetcher
from .comics.resolver import ComicResolver
from .config.config_parser import apply_overrides, load_config
from .config.config_schema import AppConfig
from .config.logging_config import init_logging
from .servers.handler import ComicQueryHandler
from .servers.tcp_server import TCPDNSServer
from .servers.udp_server import DNSServer


def build_query_handler(cfg: AppConfig) -> ComicQueryHandler:
    """Brief: Wire the cache, fetcher, and resolver into a query handler.

    Inputs:
      - cfg: Validated AppConfig.

    Outputs:
      - ComicQueryHandler whose resolver owns a (not yet started) cache.
    """

    cache = ExpiringCache(
        expiry_seconds=cfg.cache.expiry_seconds,
        sweep_interval_seconds=cfg.cache.sweep_interval_seconds,
    )
    fetcher = ComicFetcher(
        timeout_ms=cfg.upstream.timeout_ms,
        user_agent=cfg.upstream.user_agent,
    )
    resolver = ComicResolver(
        cache,
        fetcher,
        comic_url_template=cfg.upstream.comic_url_template,
        random_url=cfg.upstream.random_url,
    )
    return ComicQueryHandler(resolver, zone=cfg.zone)


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the DNS server.
    Parses arguments, loads configuration, and starts the listeners.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code.

    Example use:
        CLI:
            xkcdns --config config.yaml
            PYTHONPATH=src python -m xkcdns.main --port 5353

        Query it:
            dig @127.0.0.1 -p 5353 +short TXT alt.614.xkcd.
    """
    parser = argparse.ArgumentParser(description="DNS server answering TXT queries with xkcd comics")
    parser.add_argument("--config", default=None, help="Path to YAML config (defaults apply when omitted)")
    parser.add_argument("--log-level", default=None, help="Override logging.level")
    parser.add_argument("--host", default=None, help="Override listen.host")
    parser.add_argument("--port", type=int, default=None, help="Override listen.port")
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
        cfg = apply_overrides(cfg, log_level=args.log_level, host=args.host, port=args.port)
    except ValueError as exc:
        print(str(exc))
        return 1

    # Initialize logging before any other operations
    init_logging(cfg.logging.model_dump())
    logger = logging.getLogger("xkcdns.main")
    if args.config:
        logger.info("Loaded config from %s", args.config)
    else:
        logger.info("No config file given; using built-in defaults")

    query_handler = build_query_handler(cfg)
    cache = query_handler.resolver.cache
    fetcher = query_handler.resolver.fetcher

    host = cfg.listen.host
    port = cfg.listen.port
    try:
        server = DNSServer(host, port, query_handler, max_udp_payload=cfg.listen.max_udp_payload)
    except OSError as e:
        logger.error("Could not start UDP listener on %s:%d: %s", host, port, e)
        return 1

    tcp_server: Optional[TCPDNSServer] = None
    if cfg.listen.tcp:
        try:
            tcp_server = TCPDNSServer(host, port, query_handler)
        except OSError as e:
            logger.error("Could not start TCP listener on %s:%d: %s", host, port, e)
            server.close()
            return 1

    cache.start()

    shutdown_event = threading.Event()
    exit_code = 0
    listener_error: Optional[BaseException] = None

    def _request_shutdown(reason: str, code: int) -> None:
        nonlocal exit_code
        if shutdown_event.is_set():
            return
        exit_code = code
        logger.info("Received %s, initiating shutdown (exit code=%d)", reason, code)
        shutdown_event.set()

    def _sighup_handler(_signum, _frame):
        _request_shutdown("SIGHUP", 0)

    def _sigterm_handler(_signum, _frame):
        _request_shutdown("SIGTERM", 2)

    def _sigint_handler(_signum, _frame):
        _request_shutdown("SIGINT", 2)

    for signame, handler in (
        ("SIGHUP", _sighup_handler),
        ("SIGTERM", _sigterm_handler),
        ("SIGINT", _sigint_handler),
    ):
        try:
            signal.signal(getattr(signal, signame), handler)
        except (AttributeError, ValueError, OSError):
            # Not available on this platform, or main() is not running on the
            # main thread (as in tests).
            logger.debug("Could not install %s handler", signame)

    def _run(name: str, target) -> threading.Thread:
        def runner() -> None:
            nonlocal listener_error
            try:
                target()
            except Exception as e:  # pragma: no cover - propagated via listener_error
                listener_error = e
                logger.error("%s listener failed: %s", name, e, exc_info=True)
                shutdown_event.set()

        t = threading.Thread(target=runner, name=f"xkcdns-{name.lower()}", daemon=True)
        t.start()
        return t

    logger.info("Serving zone %s", cfg.zone)
    logger.info("Starting UDP listener on %s:%d", host, port)
    threads = [_run("UDP", server.serve_forever)]
    if tcp_server is not None:
        logger.info("Starting TCP listener on %s:%d", host, port)
        threads.append(_run("TCP", tcp_server.serve_forever))

    try:
        while not shutdown_event.wait(1.0):
            pass
    except KeyboardInterrupt:  # pragma: no cover - interactive only
        _request_shutdown("KeyboardInterrupt", 0)
    finally:
        logger.info("Stopping listeners")
        server.stop()
        if tcp_server is not None:
            tcp_server.stop()
        for t in threads:
            t.join(timeout=5.0)
        cache.stop()
        fetcher.close()
        logger.info(
            "Cache stats: entries=%d hits=%d misses=%d evictions=%d",
            len(cache),
            cache.cache_hits,
            cache.cache_misses,
            cache.evictions_total,
        )

    if listener_error is not None and exit_code == 0:
        exit_code = 1
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
