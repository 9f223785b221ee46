"""Service configuration read from environment variables."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

_INT_RE = re.compile(r"[+-]?[0-9]+")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class ConfigError(Exception):
    """Raised when the environment does not describe a valid configuration."""


@dataclass(frozen=True)
class HTTPConfig:
    port: str


@dataclass(frozen=True)
class LogConfig:
    level: str


@dataclass(frozen=True)
class PGConfig:
    pool_max: int
    url: str


@dataclass(frozen=True)
class KafkaConfig:
    topic: str


@dataclass(frozen=True)
class CacheConfig:
    capacity: int
    ttl: int
    preload_limit: int


@dataclass(frozen=True)
class SwaggerConfig:
    enabled: bool = False


@dataclass(frozen=True)
class MetricsConfig:
    enabled: bool = True


@dataclass(frozen=True)
class Config:
    http: HTTPConfig
    log: LogConfig
    pg: PGConfig
    kafka: KafkaConfig
    cache: CacheConfig
    swagger: SwaggerConfig = field(default_factory=SwaggerConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)


class _Reader:
    def __init__(self, environ: Mapping[str, str]) -> None:
        self._environ = environ
        self.errors: list[str] = []

    def string(self, name: str) -> str:
        value = self._environ.get(name)
        if value is None:
            self.errors.append(f'required environment variable "{name}" is not set')
            return ""
        return value

    def integer(self, name: str) -> int:
        if name not in self._environ:
            return int(bool(self.string(name)))
        value = self._environ[name]
        if not _INT_RE.fullmatch(value) or not -(2**63) <= int(value) < 2**63:
            self.errors.append(f'invalid integer {value!r} in environment variable "{name}"')
            return 0
        return int(value)

    def boolean(self, name: str, default: bool) -> bool:
        value = self._environ.get(name, "")
        if value == "":
            return default
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        self.errors.append(f'invalid boolean {value!r} in environment variable "{name}"')
        return default


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Read the configuration from ``environ`` (the process environment by default)."""
    reader = _Reader(os.environ if environ is None else environ)
    config = Config(
        http=HTTPConfig(port=reader.string("HTTP_PORT")),
        log=LogConfig(level=reader.string("LOG_LEVEL")),
        pg=PGConfig(pool_max=reader.integer("PG_POOL_MAX"), url=reader.string("PG_URL")),
        kafka=KafkaConfig(topic=reader.string("KAFKA_TOPIC")),
        cache=CacheConfig(
            capacity=reader.integer("CACHE_CAPACITY"),
            ttl=reader.integer("CACHE_TTL"),
            preload_limit=reader.integer("CACHE_PRELOAD_LIMIT"),
        ),
        swagger=SwaggerConfig(enabled=reader.boolean("SWAGGER_ENABLED", False)),
        metrics=MetricsConfig(enabled=reader.boolean("METRICS_ENABLED", True)),
    )
    if reader.errors:
        raise ConfigError("config error: " + "; ".join(reader.errors))
    return config