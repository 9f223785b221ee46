"""Service wiring and command-line entry point."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from ordersvc.cache import CachedOrdersRepository
from ordersvc.config import Config, ConfigError, load_config
from ordersvc.consumer import OrdersConsumer, QueueMessageSource
from ordersvc.database import Database
from ordersvc.http_api import create_app
from ordersvc.httpserver import HTTPServer
from ordersvc.logger import Logger
from ordersvc.persistent import OrdersRepository
from ordersvc.usecase import OrdersUseCase

_POLL_INTERVAL = 0.2
_CONSUMER_JOIN_TIMEOUT = 5.0


@contextmanager
def _interrupts() -> Iterator[list[signal.Signals]]:
    """Collect SIGINT and SIGTERM while active (only possible in the main thread)."""
    received: list[signal.Signals] = []
    if threading.current_thread() is not threading.main_thread():
        yield received
        return

    def handler(signum: int, frame: object) -> None:
        received.append(signal.Signals(signum))

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield received
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _serve(config: Config, logger: Logger, db: Database) -> None:
    try:
        db.create_schema()
    except Exception as exc:
        logger.fatal(f"app - Run - db.create_schema: {exc}")

    repo = OrdersRepository(db)
    cached_repo = CachedOrdersRepository(repo, config.cache.capacity, config.cache.ttl)
    try:
        cached_repo.preload_cache(config.cache.preload_limit)
    except Exception as exc:
        logger.fatal(f"app - Run - cachedRepo.PreloadCache: {exc}")

    use_case = OrdersUseCase(cached_repo)
    consumer = OrdersConsumer(QueueMessageSource(), repo, logger)
    server = HTTPServer(create_app(config, use_case, logger), port=config.http.port)

    consumer_thread = threading.Thread(target=consumer.start, name="orders-consumer", daemon=True)
    consumer_thread.start()
    server.start()

    try:
        with _interrupts() as received:
            while not received:
                try:
                    error = server.wait_error(_POLL_INTERVAL)
                except TimeoutError:
                    continue
                logger.error(f"app - Run - httpServer.Notify: {error}")
                break
            else:
                logger.info("app - Run - signal: %s", received[0].name)
    finally:
        consumer.stop()
        try:
            server.shutdown()
        except Exception as exc:
            logger.error(f"app - Run - httpServer.Shutdown: {exc}")
        consumer_thread.join(_CONSUMER_JOIN_TIMEOUT)


def run(config: Config) -> None:
    """Start the service and block until a termination signal or a server failure."""
    logger = Logger(config.log.level)
    try:
        db = Database(config.pg.url, max_pool_size=config.pg.pool_max)
    except Exception as exc:
        logger.fatal(f"app - Run - postgres.New: {exc}")
    try:
        _serve(config, logger, db)
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    """Load ``.env`` from the working directory, read the configuration and run the service."""
    parser = argparse.ArgumentParser(prog="ordersvc", description="Serve order information over HTTP.")
    parser.parse_args(argv)

    env_file = Path(".env")
    if not env_file.is_file():
        print("No .env file found", file=sys.stderr)
        raise SystemExit(1)
    load_dotenv(dotenv_path=env_file)

    try:
        config = load_config()
    except ConfigError as exc:
        print(f"Config error :{exc}", file=sys.stderr)
        raise SystemExit(1) from None

    run(config)