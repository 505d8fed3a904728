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
"""Conversions between Python values and Spanner's protobuf values.

Only the basic scalar types and arrays are handled here; anything richer is
expected to arrive already encoded as a ``struct_pb2.Value``.
"""
import base64
import datetime
import decimal
import logging
import math
from typing import Any, Iterable, Optional

from google.api_core.datetime_helpers import DatetimeWithNanoseconds
from google.cloud.spanner_v1 import keyset
from google.cloud.spanner_v1.types import KeyRange, KeySet, Type, TypeCode
from google.protobuf import struct_pb2

logger = logging.getLogger(__name__)


def to_value(obj: Any) -> struct_pb2.Value:
    """Converts a Python value to a protobuf ``Value``.

    Args:
        obj: The value to convert.

    Returns:
        struct_pb2.Value: The encoded value.

    Raises:
        ValueError: If the type of ``obj`` is not supported.
    """
    if isinstance(obj, struct_pb2.Value):
        return obj
    if obj is None:
        return struct_pb2.Value(null_value=struct_pb2.NULL_VALUE)
    # bool before int, bool is a subclass of int.
    if isinstance(obj, bool):
        return struct_pb2.Value(bool_value=obj)
    if isinstance(obj, int):
        return struct_pb2.Value(string_value=str(obj))
    if isinstance(obj, float):
        if math.isnan(obj):
            return struct_pb2.Value(string_value="NaN")
        if math.isinf(obj):
            return struct_pb2.Value(
                string_value="Infinity" if obj > 0 else "-Infinity"
            )
        return struct_pb2.Value(number_value=obj)
    if isinstance(obj, str):
        return struct_pb2.Value(string_value=obj)
    if isinstance(obj, bytes):
        return struct_pb2.Value(
            string_value=base64.b64encode(obj).decode("utf-8")
        )
    if isinstance(obj, datetime.datetime):
        if obj.tzinfo is not None:
            obj = obj.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return struct_pb2.Value(
            string_value=obj.isoformat(timespec="microseconds") + "Z"
        )
    if isinstance(obj, datetime.date):
        return struct_pb2.Value(string_value=obj.isoformat())
    if isinstance(obj, decimal.Decimal):
        return struct_pb2.Value(string_value=str(obj))
    if isinstance(obj, (list, tuple)):
        return struct_pb2.Value(list_value=to_list_value(obj))
    raise ValueError(f"Unsupported value type: {type(obj).__name__}")


def to_list_value(values: Iterable[Any]) -> struct_pb2.ListValue:
    """Converts a sequence of Python values to a protobuf ``ListValue``."""
    return struct_pb2.ListValue(values=[to_value(v) for v in values])


def to_struct(params: Optional[dict]) -> struct_pb2.Struct:
    """Converts query parameters to a protobuf ``Struct``.

    No parameters give an empty ``Struct``.
    """
    if not params:
        return struct_pb2.Struct()
    return struct_pb2.Struct(
        fields={name: to_value(value) for name, value in params.items()}
    )


def to_key_set(keys: Any = None) -> KeySet:
    """Builds a ``KeySet`` from keys, ranges or nothing (all rows).

    Args:
        keys: ``None`` or an empty list for all rows, a single key, or a
            list of keys. A key is a scalar or a list of scalars for
            composite keys. ``KeyRange`` items are passed through as ranges.
            The ``KeySet`` and ``KeyRange`` helpers of
            ``google.cloud.spanner_v1.keyset`` are accepted as well.
    """
    if isinstance(keys, KeySet):
        return keys
    if isinstance(keys, keyset.KeySet):
        return keys._to_pb()
    if keys is None:
        return KeySet(all_=True)
    if not isinstance(keys, list):
        keys = [keys]
    if not keys:
        return KeySet(all_=True)

    ranges = []
    key_list = []
    for key in keys:
        if isinstance(key, keyset.KeyRange):
            ranges.append(key._to_pb())
        elif isinstance(key, KeyRange):
            ranges.append(key)
        else:
            key_list.append(
                to_list_value(key if isinstance(key, (list, tuple)) else [key])
            )
    return KeySet(keys=key_list, ranges=ranges)


def from_value(value: struct_pb2.Value, field_type: Optional[Type]) -> Any:
    """Decodes a protobuf ``Value`` using the column type.

    Unknown type codes decode to the raw string or number carried by the
    value.
    """
    kind = value.WhichOneof("kind")
    if kind is None or kind == "null_value":
        return None
    code = field_type.code if field_type is not None else None

    if code == TypeCode.ARRAY:
        element_type = field_type.array_element_type
        return [from_value(v, element_type) for v in value.list_value.values]
    if code == TypeCode.INT64:
        return int(value.string_value)
    if code in (TypeCode.FLOAT64, TypeCode.FLOAT32):
        if kind == "string_value":
            return float(value.string_value)
        return value.number_value
    if code == TypeCode.BOOL:
        return value.bool_value
    if code == TypeCode.BYTES:
        return base64.b64decode(value.string_value)
    if code == TypeCode.DATE:
        return datetime.date.fromisoformat(value.string_value)
    if code == TypeCode.TIMESTAMP:
        return DatetimeWithNanoseconds.from_rfc3339(value.string_value)
    if code == TypeCode.NUMERIC:
        return decimal.Decimal(value.string_value)

    if kind == "string_value":
        return value.string_value
    if kind == "number_value":
        return value.number_value
    if kind == "bool_value":
        return value.bool_value
    if kind == "list_value":
        return [from_value(v, None) for v in value.list_value.values]
    logger.debug("Returning undecoded value of kind %s", kind)
    return value
