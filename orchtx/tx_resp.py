"""Transaction responses returned by a node, and helpers to inspect their events."""

from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

__all__ = [
    "DaemonError",
    "TxFailedError",
    "TimestampError",
    "AbciAttribute",
    "AbciEvent",
    "TxResultBlockAttribute",
    "TxResultBlockEvent",
    "TxResultBlockMsg",
    "IndexEvent",
    "CosmTxResponse",
    "parse_timestamp",
]


class DaemonError(Exception):
    """Base error for everything that goes wrong while talking to a node."""


class TxFailedError(DaemonError):
    """A transaction was answered with a non-zero result code."""

    def __init__(self, code: int, reason: str) -> None:
        super().__init__(f"tx failed: reason: {reason}, code: {code}")
        self.code = code
        self.reason = reason


class TimestampError(DaemonError):
    """A block timestamp could not be parsed."""


def _lossy(value: bytes | str) -> str:
    if isinstance(value, str):
        return value
    return bytes(value).decode("utf-8", errors="replace")


@dataclass
class AbciAttribute:
    """A raw event attribute as delivered by the node; key and value may be bytes."""

    key: bytes | str
    value: bytes | str
    index: bool = False

    @property
    def key_str(self) -> str:
        return _lossy(self.key)

    @property
    def value_str(self) -> str:
        return _lossy(self.value)


@dataclass
class AbciEvent:
    """A raw event of a transaction."""

    type: str
    attributes: list[AbciAttribute] = field(default_factory=list)


@dataclass
class TxResultBlockAttribute:
    """A single attribute of an event."""

    key: str
    value: str


@dataclass
class TxResultBlockEvent:
    """A single event from a transaction and its attributes."""

    type: str
    attributes: list[TxResultBlockAttribute] = field(default_factory=list)

    def get_attributes(self, key: str) -> list[TxResultBlockAttribute]:
        """All attributes whose key is ``key``."""
        return [attr for attr in self.attributes if attr.key == key]

    def get_first_attribute_value(self, key: str) -> str | None:
        """Value of the first attribute whose key is ``key``, if any."""
        return next((attr.value for attr in self.attributes if attr.key == key), None)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TxResultBlockEvent:
        return cls(
            type=data["type"],
            attributes=[
                TxResultBlockAttribute(key=attr["key"], value=attr["value"])
                for attr in data.get("attributes", [])
            ],
        )


@dataclass
class TxResultBlockMsg:
    """The events from a single message in a transaction."""

    msg_index: int | None = None
    events: list[TxResultBlockEvent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TxResultBlockMsg:
        msg_index = data.get("msg_index")
        return cls(
            msg_index=None if msg_index is None else int(msg_index),
            events=[TxResultBlockEvent.from_dict(e) for e in data.get("events", [])],
        )


@dataclass
class IndexEvent:
    """An event with its attributes decoded to text."""

    type: str
    attributes: list[tuple[str, str]] = field(default_factory=list)


def _abci_event_from_dict(data: Mapping[str, Any]) -> AbciEvent:
    return AbciEvent(
        type=data["type"],
        attributes=[
            AbciAttribute(
                key=attr.get("key", ""),
                value=attr.get("value", ""),
                index=bool(attr.get("index", False)),
            )
            for attr in data.get("attributes", [])
        ],
    )


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class CosmTxResponse:
    """The response from a transaction performed on a blockchain."""

    height: int = 0
    txhash: str = ""
    codespace: str = ""
    code: int = 0
    data: str = ""
    raw_log: str = ""
    logs: list[TxResultBlockMsg] = field(default_factory=list)
    info: str = ""
    gas_wanted: int = 0
    gas_used: int = 0
    timestamp: datetime = _EPOCH
    events: list[AbciEvent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CosmTxResponse:
        """Build a response from a node's transaction response mapping.

        Raises TimestampError when the timestamp has an unknown format.
        """
        return cls(
            height=int(data.get("height", 0)),
            txhash=data.get("txhash", ""),
            codespace=data.get("codespace", ""),
            code=int(data.get("code", 0)),
            data=data.get("data", ""),
            raw_log=data.get("raw_log", ""),
            logs=[TxResultBlockMsg.from_dict(log) for log in data.get("logs", [])],
            info=data.get("info", ""),
            gas_wanted=int(data.get("gas_wanted", 0)),
            gas_used=int(data.get("gas_used", 0)),
            timestamp=parse_timestamp(data.get("timestamp", "")),
            events=[_abci_event_from_dict(e) for e in data.get("events", [])],
        )

    def get_attribute_from_logs(
        self, event_type: str, attribute_key: str
    ) -> list[tuple[int, str]]:
        """Find an attribute's value in the logs, as (msg_index, value) pairs."""
        found: list[tuple[int, str]] = []
        for log in self.logs:
            event = next((e for e in log.events if e.type == event_type), None)
            if event is None:
                continue
            value = next(
                (a.value for a in event.attributes if a.key == attribute_key), None
            )
            if value is not None:
                found.append((log.msg_index or 0, value))
        return found

    def _events_from_logs(self, event_type: str) -> list[TxResultBlockEvent]:
        return [e for log in self.logs for e in log.events if e.type == event_type]

    def get_events(self, event_type: str) -> list[TxResultBlockEvent]:
        """Events of the given type, from the logs or else from the event list."""
        log_events = self._events_from_logs(event_type)
        if log_events:
            return log_events
        return [
            TxResultBlockEvent(
                type=event.type,
                attributes=[
                    TxResultBlockAttribute(key=a.key_str, value=a.value_str)
                    for a in event.attributes
                ],
            )
            for event in self.events
            if event.type == event_type
        ]

    def index_events(self) -> list[IndexEvent]:
        """All events with their attributes decoded to text."""
        return [
            IndexEvent(
                type=event.type,
                attributes=[(a.key_str, a.value_str) for a in event.attributes],
            )
            for event in self.events
        ]

    def data_binary(self) -> bytes | None:
        """The data field as JSON-encoded bytes, or None when empty."""
        if not self.data:
            return None
        return json.dumps(list(self.data.encode("utf-8")), separators=(",", ":")).encode()

    def _matching_values(self, event_type: str, attr_key: str) -> Iterable[str]:
        for event in self.events:
            if event.type != event_type:
                continue
            for attr in event.attributes:
                if attr.key_str == attr_key:
                    yield attr.value_str

    def event_attr_value(self, event_type: str, attr_key: str) -> str:
        """First value of the attribute in events of the given type."""
        value = next(iter(self._matching_values(event_type, attr_key)), None)
        if value is None:
            raise DaemonError(
                f"event of type {event_type} does not have a value at key {attr_key}"
            )
        return value

    def event_attr_values(self, event_type: str, attr_key: str) -> list[str]:
        """All values of the attribute in events of the given type."""
        return list(self._matching_values(event_type, attr_key))


_DATE = r"(\d{4})-(\d{1,2})-(\d{1,2})T(\d{1,2}):(\d{1,2}):(\d{1,2})"
_FORMAT = re.compile(_DATE + r"(?:\.(\d+))?")
_FORMAT_TZ_SUPPLIED = re.compile(_DATE + r"\.(\d{1,9})[+-]\d{2}:\d{2}")
_FORMAT_SHORT_Z = re.compile(_DATE + r"()Z")
_FORMAT_SHORT_Z2 = re.compile(_DATE + r"\.(\d{1,9})Z")


def _try(pattern: re.Pattern[str], text: str) -> datetime | None:
    match = pattern.fullmatch(text)
    if match is None:
        return None
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction = match.group(7) or ""
    microsecond = int((fraction[:6]).ljust(6, "0")) if fraction else 0
    try:
        return datetime(
            year, month, day, hour, minute, second, microsecond, tzinfo=timezone.utc
        )
    except ValueError:
        return None


def parse_timestamp(s: str) -> datetime:
    """Parse a node timestamp string into a UTC datetime.

    Any offset in the string is read but not applied.
    """
    sliced = s[: max(len(s) - 4, 0)] if "." in s else s
    for pattern, text in (
        (_FORMAT, sliced),
        (_FORMAT_TZ_SUPPLIED, s),
        (_FORMAT_SHORT_Z, sliced),
        (_FORMAT_SHORT_Z2, s),
    ):
        parsed = _try(pattern, text)
        if parsed is not None:
            return parsed
    print(f"DateTime Fail {s}", file=sys.stderr)
    raise TimestampError(f"invalid timestamp: {s!r}")