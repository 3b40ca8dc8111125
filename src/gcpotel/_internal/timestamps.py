"""Nanosecond epoch to protobuf Timestamp conversion."""

from __future__ import annotations

from google.protobuf.timestamp_pb2 import Timestamp

NANOS_PER_SECOND = 1_000_000_000


def timestamp_from_nanos(nanos: int) -> Timestamp:
    """Convert epoch nanoseconds to a protobuf Timestamp.

    Seconds come from integer division; the sub-second part is the
    remainder, so precision is truncated and never rounded.
    """
    return Timestamp(seconds=nanos // NANOS_PER_SECOND, nanos=nanos % NANOS_PER_SECOND)
