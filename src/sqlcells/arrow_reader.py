"""Read query result artifacts (Arrow IPC) into JSON-safe row objects.

Decoding is done in two steps. The decode layer turns every Arrow column
into a list of :class:`NativeValue` objects, each tagged with a
:class:`ValueKind`. Normalization then maps each tagged value onto one of a
small set of transport-safe Python values:

- ``None``
- ``bool``
- ``int`` / ``float``
- ``str`` holding an exact integer (for integers outside the range a double
  can represent exactly)
- ``str`` holding an ISO-8601 date, time or timestamp
- plain ``str``

The reader never deletes the file it reads.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.ipc

from sqlcells.errors import ResultReadError

# Largest integer a float64 represents exactly (JavaScript's MAX_SAFE_INTEGER)
MAX_SAFE_INTEGER = 2**53 - 1

_ARROW_FILE_MAGIC = b"ARROW1"

_INT64_MAX = 2**63 - 1
_INT32_MAX = 2**31 - 1


class ValueKind(Enum):
    """Closed set of value kinds produced by the decode layer."""

    NULL = "null"
    BOOL = "bool"
    INT64 = "int64"
    FLOAT64 = "float64"
    DECIMAL_TEXT = "decimal_text"
    TEMPORAL_TEXT = "temporal_text"
    UTF8 = "utf8"
    BINARY = "binary"


@dataclass(frozen=True)
class NativeValue:
    """A decoded cell value tagged with its kind."""

    kind: ValueKind
    value: Any = None


NULL_VALUE = NativeValue(ValueKind.NULL)


@dataclass
class ResultTable:
    """A fully materialized result set."""

    columns: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_value(native: NativeValue) -> Any:
    """Map a tagged native value onto a JSON-safe Python value."""
    kind = native.kind
    value = native.value

    if kind is ValueKind.NULL or value is None:
        return None
    if kind is ValueKind.BOOL:
        return bool(value)
    if kind is ValueKind.INT64:
        if -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER:
            return int(value)
        return str(value)
    if kind is ValueKind.FLOAT64:
        return float(value)
    if kind is ValueKind.DECIMAL_TEXT:
        return _number_or_text(value)
    if kind is ValueKind.TEMPORAL_TEXT:
        return value
    if kind is ValueKind.UTF8:
        return value
    if kind is ValueKind.BINARY:
        return _binary_text(value)
    raise ValueError(f"Unknown value kind: {kind!r}")


def _number_or_text(text: str) -> float | str:
    """Parse *text* as a float, keeping the text if it is not a number."""
    try:
        number = float(text)
    except ValueError:
        return text
    if math.isnan(number):
        return text
    return number


def _binary_text(data: bytes) -> str:
    """Render a binary value as UTF-8 text, or hex when it is not valid UTF-8."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return "\\x" + data.hex()


# ---------------------------------------------------------------------------
# Decode layer
# ---------------------------------------------------------------------------


def _is_numeric(arrow_type: pa.DataType) -> bool:
    return (
        pa.types.is_integer(arrow_type)
        or pa.types.is_floating(arrow_type)
        or pa.types.is_decimal(arrow_type)
    )


def _is_packed_numeric(arrow_type: pa.DataType) -> bool:
    if not (
        pa.types.is_list(arrow_type)
        or pa.types.is_large_list(arrow_type)
        or pa.types.is_fixed_size_list(arrow_type)
    ):
        return False
    return _is_numeric(arrow_type.value_type)


def _iso_duration(delta: timedelta) -> str:
    """Format a timedelta as an ISO-8601 duration (``P1DT2.5S``)."""
    sign = "-" if delta < timedelta(0) else ""
    delta = abs(delta)
    seconds = delta.seconds + delta.microseconds / 1_000_000
    seconds_text = f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{sign}P{delta.days}DT{seconds_text}S"


def _iso_interval(value: Any) -> str:
    """Format a month/day/nanosecond interval as ISO-8601 (``P1M2DT0.5S``)."""
    sign = "-" if value.nanoseconds < 0 else ""
    seconds, nanos = divmod(abs(value.nanoseconds), 1_000_000_000)
    seconds_text = f"{seconds}.{nanos:09d}".rstrip("0").rstrip(".")
    return f"P{value.months}M{value.days}DT{sign}{seconds_text}S"


def _scalar_value(arrow_type: pa.DataType, value: Any) -> NativeValue:
    """Tag one Python value obtained from a column of *arrow_type*."""
    if value is None:
        return NULL_VALUE
    if pa.types.is_null(arrow_type):
        return NULL_VALUE
    if pa.types.is_boolean(arrow_type):
        return NativeValue(ValueKind.BOOL, value)
    if pa.types.is_integer(arrow_type):
        return NativeValue(ValueKind.INT64, int(value))
    if pa.types.is_floating(arrow_type):
        return NativeValue(ValueKind.FLOAT64, float(value))
    if pa.types.is_decimal(arrow_type):
        return NativeValue(ValueKind.DECIMAL_TEXT, str(value))
    if pa.types.is_interval(arrow_type):
        return NativeValue(ValueKind.TEMPORAL_TEXT, _iso_interval(value))
    if pa.types.is_duration(arrow_type):
        return NativeValue(ValueKind.TEMPORAL_TEXT, _iso_duration(value))
    if pa.types.is_temporal(arrow_type):
        return NativeValue(ValueKind.TEMPORAL_TEXT, value.isoformat())
    if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        return NativeValue(ValueKind.UTF8, value)
    if (
        pa.types.is_binary(arrow_type)
        or pa.types.is_large_binary(arrow_type)
        or pa.types.is_fixed_size_binary(arrow_type)
    ):
        return NativeValue(ValueKind.BINARY, bytes(value))
    if _is_packed_numeric(arrow_type):
        if len(value) == 1:
            return _scalar_value(arrow_type.value_type, value[0])
        text = ",".join("" if v is None else str(v) for v in value)
        return NativeValue(ValueKind.DECIMAL_TEXT, text)
    if isinstance(value, str):
        return NativeValue(ValueKind.UTF8, value)
    # Nested values (structs, maps, lists of non-numbers)
    return NativeValue(ValueKind.UTF8, json.dumps(value, default=str))


def _unwrap_column(column: pa.ChunkedArray) -> pa.ChunkedArray:
    """Unwrap extension and dictionary encodings."""
    arrow_type = column.type

    if isinstance(arrow_type, pa.ExtensionType):
        column = pa.chunked_array(
            [chunk.storage for chunk in column.chunks], type=arrow_type.storage_type
        )
        arrow_type = column.type

    if pa.types.is_dictionary(arrow_type):
        column = column.cast(arrow_type.value_type)

    return column


def _microsecond_units(column: pa.ChunkedArray) -> pa.ChunkedArray:
    """Truncate nanosecond units to the microseconds Python's types hold."""
    arrow_type = column.type
    if pa.types.is_timestamp(arrow_type) and arrow_type.unit == "ns":
        return column.cast(pa.timestamp("us", tz=arrow_type.tz), safe=False)
    if pa.types.is_time64(arrow_type) and arrow_type.unit == "ns":
        return column.cast(pa.time64("us"), safe=False)
    if pa.types.is_duration(arrow_type) and arrow_type.unit == "ns":
        return column.cast(pa.duration("us"), safe=False)
    return column


def _infinity_markers(column: pa.ChunkedArray) -> dict[int, str]:
    """Return ``{row: text}`` for the engine's infinite dates and timestamps.

    DuckDB stores ``infinity`` and ``-infinity`` as the largest and negated
    largest value of the column's storage integer. Python's date types
    cannot hold them, so they are rendered as text.
    """
    arrow_type = column.type
    if pa.types.is_timestamp(arrow_type):
        storage, limit = pa.int64(), _INT64_MAX
    elif pa.types.is_date32(arrow_type):
        storage, limit = pa.int32(), _INT32_MAX
    else:
        return {}

    markers = {}
    for row, raw in enumerate(column.cast(storage).to_pylist()):
        if raw == limit:
            markers[row] = "infinity"
        elif raw == -limit:
            markers[row] = "-infinity"
    return markers


def decode_column(column: pa.ChunkedArray) -> list[NativeValue]:
    """Decode an Arrow column into tagged native values."""
    column = _unwrap_column(column)
    markers = _infinity_markers(column)
    column = _microsecond_units(column)
    arrow_type = column.type

    if not markers:
        return [_scalar_value(arrow_type, value) for value in column.to_pylist()]

    values = []
    for row in range(len(column)):
        if row in markers:
            values.append(NativeValue(ValueKind.TEMPORAL_TEXT, markers[row]))
        else:
            values.append(_scalar_value(arrow_type, column[row].as_py()))
    return values


def decode_table(table: pa.Table) -> ResultTable:
    """Turn an Arrow table into a :class:`ResultTable` of normalized rows."""
    columns = [f.name for f in table.schema]
    row_count = table.num_rows

    decoded: list[list[Any]] = []
    for i, name in enumerate(columns):
        values = [normalize_value(v) for v in decode_column(table.column(i))]
        if len(values) != row_count:
            raise ResultReadError(
                f"Column '{name}' has {len(values)} values, expected {row_count}"
            )
        decoded.append(values)

    rows: list[dict[str, Any]] = []
    for row_index in range(row_count):
        row: dict[str, Any] = {}
        for col_index, name in enumerate(columns):
            row[name] = decoded[col_index][row_index]
        rows.append(row)

    return ResultTable(columns=columns, rows=rows, row_count=row_count)


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


def _read_ipc(data: bytes) -> pa.Table:
    """Read either Arrow IPC layout (stream or random-access file)."""
    buffer = pa.py_buffer(data)
    if data[:len(_ARROW_FILE_MAGIC)] == _ARROW_FILE_MAGIC:
        return pa.ipc.open_file(buffer).read_all()
    return pa.ipc.open_stream(buffer).read_all()


def read_arrow_result(path: str | Path) -> ResultTable:
    """Read the Arrow IPC file at *path* into a :class:`ResultTable`.

    Raises:
        ResultReadError: if the file is missing, truncated, or cannot be
            decoded as Arrow IPC.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ResultReadError(f"Failed to read Arrow file {path}: {e}", str(path)) from e

    try:
        table = _read_ipc(data)
        return decode_table(table)
    except ResultReadError as e:
        e.path = str(path)
        raise
    except (pa.ArrowException, ValueError, OverflowError) as e:
        raise ResultReadError(f"Failed to read Arrow file {path}: {e}", str(path)) from e
