"""Order entities and their JSON representation."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, get_args, get_origin

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


@dataclass
class Delivery:
    """Where and to whom an order is delivered."""

    name: str = ""
    phone: str = ""
    zip: str = ""
    city: str = ""
    address: str = ""
    region: str = ""
    email: str = ""


@dataclass
class Payment:
    """Payment details of an order."""

    transaction: str = ""
    request_id: str = ""
    currency: str = ""
    provider: str = ""
    amount: int = 0
    payment_dt: int = 0
    bank: str = ""
    delivery_cost: int = 0
    goods_total: int = 0
    custom_fee: int = 0


@dataclass
class Item:
    """A single position of an order."""

    chrt_id: int = 0
    track_number: str = ""
    price: int = 0
    rid: str = ""
    name: str = ""
    sale: int = 0
    size: str = ""
    total_price: int = 0
    nm_id: int = 0
    brand: str = ""
    status: int = 0


@dataclass
class Order:
    """An order with its delivery, payment and items."""

    order_uid: str = ""
    track_number: str = ""
    entry: str = ""
    delivery: Delivery = field(default_factory=Delivery)
    payment: Payment = field(default_factory=Payment)
    items: list[Item] = field(default_factory=list)
    locale: str = ""
    internal_signature: str = ""
    customer_id: str = ""
    delivery_service: str = ""
    shard_key: str = field(default="", metadata={"json": "shardkey"})
    sm_id: int = 0
    date_created: datetime = ZERO_TIME
    oof_shard: str = ""


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(text: Any, path: str) -> datetime:
    if not isinstance(text, str):
        raise ValueError(f"{path}: expected an RFC 3339 time string")
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"{path}: cannot parse {text!r} as RFC 3339 time")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int((frac + "000000")[:6]) if frac else 0
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        delta = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * delta) if delta else timezone.utc
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
        )
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, list):
        return [_encode(element) for element in value]
    if is_dataclass(value):
        return {f.metadata.get("json", f.name): _encode(getattr(value, f.name)) for f in fields(value)}
    return value


def _decode_value(kind: Any, value: Any, path: str) -> Any:
    if kind is str:
        if not isinstance(value, str):
            raise ValueError(f"{path}: expected a string")
        return value
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{path}: expected an integer")
        if not _INT_MIN <= value <= _INT_MAX:
            raise ValueError(f"{path}: integer out of range")
        return value
    if kind is datetime:
        return _parse_time(value, path)
    if get_origin(kind) is list:
        if not isinstance(value, list):
            raise ValueError(f"{path}: expected an array")
        (element_kind,) = get_args(kind)
        return [_decode_value(element_kind, element, f"{path}[{n}]") for n, element in enumerate(value)]
    if isinstance(kind, type) and is_dataclass(kind):
        return _decode_struct(kind, value, path)
    raise TypeError(f"{path}: unsupported field type {kind!r}")


_FIELD_TYPES: dict[type, dict[str, Any]] = {
    Delivery: {f.name: str for f in fields(Delivery)},
    Payment: {f.name: (int if f.default == 0 else str) for f in fields(Payment)},
    Item: {f.name: (int if f.default == 0 else str) for f in fields(Item)},
    Order: {
        "order_uid": str,
        "track_number": str,
        "entry": str,
        "delivery": Delivery,
        "payment": Payment,
        "items": list[Item],
        "locale": str,
        "internal_signature": str,
        "customer_id": str,
        "delivery_service": str,
        "shard_key": str,
        "sm_id": int,
        "date_created": datetime,
        "oof_shard": str,
    },
}


def _decode_struct(cls: type, data: Any, path: str) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected an object")
    kinds = _FIELD_TYPES[cls]
    values = {}
    for f in fields(cls):
        key = f.metadata.get("json", f.name)
        raw = data.get(key)
        if raw is None:
            continue
        values[f.name] = _decode_value(kinds[f.name], raw, f"{path}.{key}")
    return cls(**values)


def order_to_dict(order: Order) -> dict[str, Any]:
    """Return the JSON-ready mapping of an order."""
    return _encode(order)


def order_from_dict(data: Any) -> Order:
    """Build an order from a decoded JSON mapping; missing fields keep their zero values."""
    if not isinstance(data, dict):
        raise ValueError("order: expected an object")
    return _decode_struct(Order, data, "order")


def order_to_json(order: Order) -> str:
    """Serialize an order to compact JSON."""
    return json.dumps(order_to_dict(order), ensure_ascii=False, separators=(",", ":"))


def order_from_json(payload: str | bytes | bytearray) -> Order:
    """Parse an order from JSON text; raises ValueError on malformed input."""
    return order_from_dict(json.loads(payload))