"""Record codec shared by the queue pipeline and the archive replay.

A record is a base64 (standard alphabet) encoding of a serialized event. A
queue message body and an archive line carry the same record format.
"""
from __future__ import annotations

import base64
import binascii
from typing import Any

from subscriber.app.ports.serializer import EventSerializer, SerializerError


class RecordDecodeError(Exception):
    """Base for records that cannot be turned back into an event."""


class MalformedRecordError(RecordDecodeError):
    """Record is not valid base64; redelivery would not change that."""


class EventDecodeError(RecordDecodeError):
    """Record decoded but the serializer rejected the payload."""


def decode_record(serializer: EventSerializer, record: str | bytes) -> Any:
    if isinstance(record, bytes):
        try:
            record = record.decode("ascii")
        except UnicodeDecodeError as exc:
            raise MalformedRecordError("record is not ascii") from exc
    record = record.strip().replace("\r", "").replace("\n", "")
    if not record:
        raise MalformedRecordError("record is empty")
    try:
        data = base64.b64decode(record, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedRecordError(f"unable to base64 decode record - {exc}") from exc
    try:
        return serializer.unmarshal(data)
    except SerializerError as exc:
        raise EventDecodeError(f"unable to unmarshal event - {exc}") from exc


def encode_record(serializer: EventSerializer, event: Any) -> str:
    return base64.b64encode(serializer.marshal(event)).decode("ascii")
