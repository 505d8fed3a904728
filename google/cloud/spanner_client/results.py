# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import logging
from typing import Any, Iterator, List, Optional

from google.cloud.spanner_v1 import (
    PartialResultSet,
    ResultSetMetadata,
    ResultSetStats,
    StructType,
)
from google.protobuf.struct_pb2 import ListValue, Value

from .internal.errors import SpannerClientError
from .internal.service import ResponseStream
from .internal.types import from_value

logger = logging.getLogger(__name__)

_MERGEABLE_KINDS = ("string_value", "list_value")


def _merge_chunk(head: Value, tail: Value) -> Value:
    """Joins a value split across two partial result sets."""
    kind = head.WhichOneof("kind")
    if kind != tail.WhichOneof("kind") or kind not in _MERGEABLE_KINDS:
        raise SpannerClientError(
            f"Cannot merge chunked values of kind {kind} and "
            f"{tail.WhichOneof('kind')}"
        )
    if kind == "string_value":
        return Value(string_value=head.string_value + tail.string_value)

    head_values = list(head.list_value.values)
    tail_values = list(tail.list_value.values)
    if head_values and tail_values:
        last, first = head_values[-1], tail_values[0]
        last_kind = last.WhichOneof("kind")
        if last_kind in _MERGEABLE_KINDS and last_kind == first.WhichOneof(
            "kind"
        ):
            head_values[-1] = _merge_chunk(last, first)
            tail_values = tail_values[1:]
    return Value(list_value=ListValue(values=head_values + tail_values))


class Results:
    """Represents the result of a streaming read or query.

    The first response of the stream is read when the object is created, so
    the result metadata and the id of an inline begun transaction are
    available right away. Rows are streamed on iteration unless
    :meth:`materialize` has buffered them.
    """

    def __init__(self, stream: ResponseStream) -> None:
        """Initializes a Results object.

        Args:
            stream (ResponseStream): The stream of partial result sets.
        """
        self._stream = stream
        self._metadata = ResultSetMetadata()
        self._stats: Optional[ResultSetStats] = None
        self._consumed = False
        self._buffer: Optional[List[List[Value]]] = None
        self._first = next(stream, None)
        if self._first is not None:
            self._read_header(self._first)

    @property
    def request_id(self) -> Optional[str]:
        """The request id of the call that opened the stream."""
        request_id = getattr(self._stream, "request_id", None)
        return None if request_id is None else str(request_id)

    @property
    def metadata(self) -> ResultSetMetadata:
        return self._metadata

    @property
    def fields(self) -> List[StructType.Field]:
        """The columns of the result."""
        return list(self._metadata.row_type.fields)

    @property
    def stats(self) -> Optional[ResultSetStats]:
        """Statistics of the query, known once all rows have been read."""
        return self._stats

    @property
    def transaction_id(self) -> Optional[bytes]:
        """The id of the transaction begun by this request, if any."""
        return self._metadata.transaction.id or None

    def _read_header(self, partial: PartialResultSet) -> None:
        pb = PartialResultSet.pb(partial)
        if pb.HasField("metadata"):
            self._metadata = partial.metadata
        if pb.HasField("stats"):
            self._stats = partial.stats

    def _iter_raw(self) -> Iterator[List[Value]]:
        if self._consumed:
            raise SpannerClientError("Results have already been consumed")
        self._consumed = True

        partial, self._first = self._first, None
        width = len(self._metadata.row_type.fields)
        pending: List[Value] = []
        chunk: Optional[Value] = None
        while partial is not None:
            pb = PartialResultSet.pb(partial)
            if not width and pb.HasField("metadata"):
                self._metadata = partial.metadata
                width = len(self._metadata.row_type.fields)
            if pb.HasField("stats"):
                self._stats = partial.stats

            values = list(pb.values)
            if chunk is not None and values:
                values[0] = _merge_chunk(chunk, values[0])
                chunk = None
            if pb.chunked_value and values:
                chunk = values.pop()
            pending.extend(values)

            while width and len(pending) >= width:
                row, pending = pending[:width], pending[width:]
                yield row
            partial = next(self._stream, None)

        if chunk is not None:
            pending.append(chunk)
        while width and len(pending) >= width:
            row, pending = pending[:width], pending[width:]
            yield row
        if pending:
            logger.warning(
                "Discarding %d trailing values of an incomplete row",
                len(pending),
            )

    def __iter__(self) -> Iterator[List[Value]]:
        """Iterates over the rows as lists of protobuf ``Value``."""
        if self._buffer is not None:
            return iter(self._buffer)
        return self._iter_raw()

    def materialize(self) -> "Results":
        """Reads the rest of the stream into memory."""
        if self._buffer is None:
            self._buffer = list(self._iter_raw())
        return self

    def rows(self) -> Iterator[List[Any]]:
        """Iterates over the rows decoded to Python values."""
        field_types = None
        for row in self:
            if field_types is None:
                field_types = [
                    field.type_ for field in self._metadata.row_type.fields
                ]
            yield [
                from_value(value, field_type)
                for value, field_type in zip(row, field_types)
            ]

    def one(self) -> List[Any]:
        """Returns the only row of the result.

        Raises:
            SpannerClientError: If the result does not have exactly one row.
        """
        rows = list(self.rows())
        if len(rows) != 1:
            raise SpannerClientError(
                f"Expected exactly one row, got {len(rows)}", error_code=9
            )
        return rows[0]

    def update_count(self) -> int:
        """Returns the number of rows modified by a DML statement.

        Reads the remainder of the stream. Returns -1 when the server did not
        report a count.
        """
        if self._buffer is None and not self._consumed:
            self.materialize()
        stats = self._stats
        if stats is None:
            return -1
        kind = ResultSetStats.pb(stats).WhichOneof("row_count")
        if kind == "row_count_exact":
            return stats.row_count_exact
        if kind == "row_count_lower_bound":
            return stats.row_count_lower_bound
        return -1
