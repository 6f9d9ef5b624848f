"""Incremental decoding of a streamed JSON array of measurement results.

The body of a results download can be large, so it is never buffered: the
``ijson`` event parser pulls bytes from the open stream as records are
requested and each array element is materialized on its own.
"""

import logging
from typing import Any, BinaryIO, Dict, Iterator

import ijson

from atlas_probes.errors import DecodeError
from atlas_probes.models import MeasurementResult, parse_result

LOGGER = logging.getLogger(__name__)

ITEM_PREFIX = "item"


def iter_records(stream: BinaryIO) -> Iterator[Dict[str, Any]]:
    """Yield each object of a top-level JSON array as a dict, in order.

    Stops at the array's closing ``]``; bytes after it are not read.

    Raises:
        DecodeError: the stream does not hold an array of objects, or it is
            truncated or malformed. The iterator is finished afterwards.
    """
    events = ijson.parse(stream, use_float=True)
    try:
        first = next(events, None)
        if first is None:
            raise DecodeError("result stream is empty")
        if first[1] != "start_array":
            raise DecodeError(f"result stream must start with a JSON array, got {first[1]}")

        builder = None
        for prefix, event, value in events:
            if prefix == "":
                # end_array of the top-level list
                return
            if prefix == ITEM_PREFIX:
                if event == "start_map":
                    builder = ijson.ObjectBuilder()
                elif event not in ("map_key", "end_map"):
                    raise DecodeError(f"result array elements must be objects, got {event}")
            builder.event(event, value)
            if prefix == ITEM_PREFIX and event == "end_map":
                yield builder.value
                builder = None
    except ijson.JSONError as exc:
        raise DecodeError(f"malformed result stream: {exc}") from exc

    raise DecodeError("result stream ended before the closing bracket")


def decode_results(stream: BinaryIO) -> Iterator[MeasurementResult]:
    """Lazily decode ``stream`` into tagged ``MeasurementResult`` variants.

    The sequence is finite and ordered; it can be restarted only by reopening
    the stream. The first malformed record raises ``DecodeError`` and ends it.
    """
    count = 0
    for record in iter_records(stream):
        yield parse_result(record)
        count += 1
    LOGGER.debug("Decoded %d result records", count)


__all__ = ["decode_results", "iter_records"]
