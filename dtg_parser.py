#!/usr/bin/env python3
"""
dtg_parser.py — Digital Tachograph (DTG) Drive Record Parser & Exporter

Parses the fixed-width text logs written by Korean digital tachographs
("운행기록장치", drive recorders) and exports them to:
  - CSV (one row per telemetry sample)
  - GPX 1.1 track format (sample positions)

A DTG log is a single run of characters with no delimiters and no line
breaks inside the record stream:
  1. A 76-character vehicle header (model, VIN, vehicle type, plate,
     operator registration number, driver code)
  2. An 11-character distance prefix (daily 4 + cumulative 7 digits)
  3. A stream of 57-character telemetry samples

Files are written in EUC-KR (the CP949 superset) by the devices, and in UTF-8
once they have been edited on a modern machine. Devices occasionally emit
out-of-range values, which are recovered with deterministic plausibility
corrections rather than rejected.

Usage:
    python3 dtg_parser.py drive.txt                   # Export CSV + GPX
    python3 dtg_parser.py drive.txt --info            # Print log summary only
    python3 dtg_parser.py drive.txt --info --page 2   # ...and page 2 of the sample table
    python3 dtg_parser.py --all-in /path/to/logs/     # Process all .txt logs recursively
    python3 dtg_parser.py drive.txt --no-gpx          # CSV only
    python3 dtg_parser.py drive.txt --output-dir out/ # Custom output directory

License: MIT
"""

from __future__ import annotations

import argparse
import csv
import io
import logging
import math
import re
import sys
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from pathlib import Path
from typing import Callable, Generator, Iterator, Sequence

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

# Native device encoding first, then the encoding of re-saved files.
NATIVE_ENCODING = "cp949"
FALLBACK_ENCODING = "utf-8"

# Padding character the devices use to fill identity fields.
PAD_CHAR = "#"

# Plausibility bounds. Values above these are treated as device glitches and
# re-derived from a prefix of the raw field.
MAX_SPEED_KMH = 200
MAX_ENGINE_RPM = 10000
MAX_LONGITUDE_DEG = 180.0
MAX_LATITUDE_DEG = 90.0
MAX_ACCEL_MS2 = 50.0

# Number of leading raw characters used to re-derive an implausible value.
SPEED_FALLBACK_CHARS = 2
RPM_FALLBACK_CHARS = 3
LONGITUDE_FALLBACK_CHARS = 3
LATITUDE_FALLBACK_CHARS = 2
ACCEL_FALLBACK_CHARS = 2

# Coordinates are stored as integer micro-degrees.
COORDINATE_SCALE = 1_000_000

# Acceleration deltas are stored in tenths of m/s².
ACCEL_SCALE = 10

# Progress checkpoint every N attempted sample records.
PROGRESS_BATCH_SIZE = 100

# Sample table pagination.
PAGE_SIZES = (10, 20, 30, 50, 100)
DEFAULT_PAGE_SIZE = 10

# ─────────────────────────────────────────────────────────────────────────────
# Field schema
# ─────────────────────────────────────────────────────────────────────────────


class FieldKind(Enum):
    """How a raw fixed-width field is turned into its display value."""
    PASSTHROUGH = "passthrough"
    IDENTITY = "identity"
    OPERATOR_NUMBER = "operator_number"
    TIMESTAMP = "timestamp"
    SPEED = "speed"
    RPM = "rpm"
    BRAKE = "brake"
    LONGITUDE = "longitude"
    LATITUDE = "latitude"
    HEADING = "heading"
    ACCELERATION = "acceleration"
    DISTANCE = "distance"


@dataclass(frozen=True)
class FieldDescriptor:
    """One fixed-width field: its name, its width in characters, its kind."""
    name: str
    length: int
    kind: FieldKind = FieldKind.PASSTHROUGH


HEADER_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor("model_name", 20, FieldKind.IDENTITY),           # 운행기록장치모델명
    FieldDescriptor("vin", 17, FieldKind.IDENTITY),                  # 차대번호
    FieldDescriptor("vehicle_type", 2),                              # 자동차유형
    FieldDescriptor("registration_number", 9, FieldKind.IDENTITY),   # 자동차등록번호
    FieldDescriptor("operator_number", 10, FieldKind.OPERATOR_NUMBER),  # 운송사업자등록번호
    FieldDescriptor("driver_code", 18, FieldKind.IDENTITY),          # 운전자코드
)

DISTANCE_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor("daily_distance", 4, FieldKind.DISTANCE),        # 일일주행거리
    FieldDescriptor("cumulative_distance", 7, FieldKind.DISTANCE),   # 누적주행거리
)

SAMPLE_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor("timestamp", 14, FieldKind.TIMESTAMP),           # 정보발생일시
    FieldDescriptor("speed", 3, FieldKind.SPEED),                    # 차량속도
    FieldDescriptor("engine_rpm", 4, FieldKind.RPM),                 # 분당엔진회전수
    FieldDescriptor("brake", 1, FieldKind.BRAKE),                    # 브레이크신호
    FieldDescriptor("longitude", 9, FieldKind.LONGITUDE),            # X좌표
    FieldDescriptor("latitude", 9, FieldKind.LATITUDE),              # Y좌표
    FieldDescriptor("heading", 3, FieldKind.HEADING),                # GPS방위각
    FieldDescriptor("accel_x", 6, FieldKind.ACCELERATION),           # 가속도ΔVx
    FieldDescriptor("accel_y", 6, FieldKind.ACCELERATION),           # 가속도ΔVy
    FieldDescriptor("status_code", 2),                               # 기기및통신상태코드
)

HEADER_LENGTH = sum(d.length for d in HEADER_FIELDS)          # 76
DAILY_DISTANCE_LENGTH = DISTANCE_FIELDS[0].length              # 4
CUMULATIVE_DISTANCE_LENGTH = DISTANCE_FIELDS[1].length         # 7
DISTANCE_PREFIX_LENGTH = sum(d.length for d in DISTANCE_FIELDS)  # 11
SAMPLE_LENGTH = sum(d.length for d in SAMPLE_FIELDS)          # 57

# ─────────────────────────────────────────────────────────────────────────────
# Data classes
# ─────────────────────────────────────────────────────────────────────────────


class FatalInputError(ValueError):
    """The input cannot be decoded at all (empty, or neither CP949 nor UTF-8)."""


@dataclass(frozen=True)
class VehicleHeader:
    """Vehicle identity block at the start of every log."""
    model_name: str
    vin: str
    vehicle_type: str
    registration_number: str   # Licence plate
    operator_number: str       # Transport operator business registration, AAA-BB-CCCCC
    driver_code: str


@dataclass(frozen=True)
class TelemetrySample:
    """A single telemetry sample. All values are display-ready strings."""
    index: int                 # 1-based position among parsed samples
    timestamp: str             # YYYY-MM-DD hh:mm:ss.ff
    speed: str                 # "<n> km/h"
    engine_rpm: str            # "<n> RPM"
    brake: str                 # "ON" / "OFF"
    longitude: str             # Degrees, 6 decimals
    latitude: str              # Degrees, 6 decimals
    heading: str               # "<n>°"
    accel_x: str               # "<v> m/s²"
    accel_y: str               # "<v> m/s²"
    status_code: str
    # Only set on sample 1
    daily_distance: str | None = None
    cumulative_distance: str | None = None


@dataclass(frozen=True)
class RecordDecodeError:
    """A sample record that could not be decoded. Decoding carries on past it."""
    offset: int    # Character offset into the normalized text, not a byte offset
    ordinal: int   # 1-based position among attempted sample records
    message: str


@dataclass(frozen=True)
class DistancePrefix:
    """Daily and cumulative distance, written once ahead of the sample stream."""
    daily_distance: str
    cumulative_distance: str


@dataclass(frozen=True)
class DecodeProgress:
    """Checkpoint emitted while decoding the sample stream."""
    cursor: int    # Characters consumed in the sample region
    total: int     # Size of the sample region
    records: int   # Samples parsed so far

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return min(100, round(self.cursor * 100 / self.total))


@dataclass
class DecodeResult:
    """Everything decoded from a single DTG log."""
    header: VehicleHeader
    samples: list[TelemetrySample] = field(default_factory=list)
    errors: list[RecordDecodeError] = field(default_factory=list)

    # Input info
    file_path: str = ""
    file_size: int = 0
    encoding: str = ""
    text_length: int = 0

    # Set when a cancel callback stopped decoding early
    cancelled: bool = False

    @property
    def no_records(self) -> bool:
        """True when the log was readable but yielded no samples."""
        return not self.samples

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def daily_distance(self) -> str | None:
        return self.samples[0].daily_distance if self.samples else None

    @property
    def cumulative_distance(self) -> str | None:
        return self.samples[0].cumulative_distance if self.samples else None

    @property
    def first_timestamp(self) -> str | None:
        return self.samples[0].timestamp if self.samples else None

    @property
    def last_timestamp(self) -> str | None:
        return self.samples[-1].timestamp if self.samples else None

    @property
    def max_speed_kmh(self) -> int:
        """Maximum (corrected) speed in km/h."""
        if not self.samples:
            return 0
        return max(int(s.speed.split()[0]) for s in self.samples)


# ─────────────────────────────────────────────────────────────────────────────
# Byte decoding and slicing
# ─────────────────────────────────────────────────────────────────────────────

def decode_text(data: bytes) -> tuple[str, str]:
    """Decode raw log bytes, returning the text and the encoding used.

    CP949 (Korean EUC-KR with the Unified Hangul Code extension) is tried
    first since it is what the devices write. Only a hard decode error moves
    on to UTF-8; if that fails too the input is unusable.
    """
    try:
        return data.decode(NATIVE_ENCODING), NATIVE_ENCODING
    except UnicodeDecodeError as exc:
        logger.warning(
            "%s decoding failed (%s), falling back to %s",
            NATIVE_ENCODING, exc.reason, FALLBACK_ENCODING,
        )
    try:
        return data.decode(FALLBACK_ENCODING), FALLBACK_ENCODING
    except UnicodeDecodeError as exc:
        raise FatalInputError(
            f"Cannot decode input as {NATIVE_ENCODING} or {FALLBACK_ENCODING}: {exc}"
        ) from exc


def slice_fields(
    buffer: str, cursor: int, descriptors: Sequence[FieldDescriptor]
) -> tuple[list[str], int]:
    """Cut one raw value per descriptor out of buffer, starting at cursor.

    A field running past the end of the buffer yields whatever is left
    (possibly ""). The cursor always advances by the declared length so the
    following fields stay aligned to the schema.
    """
    values = []
    for descriptor in descriptors:
        values.append(buffer[cursor:cursor + descriptor.length])
        cursor += descriptor.length
    return values, cursor


# ─────────────────────────────────────────────────────────────────────────────
# Field transforms
# ─────────────────────────────────────────────────────────────────────────────

# Leading-number rules: optional whitespace and sign, then digits. Trailing
# garbage after the number is ignored.
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _parse_int(raw: str) -> int | None:
    """Leading integer of raw, or None when there is none."""
    match = _INT_PREFIX.match(raw)
    return int(match.group(1)) if match else None


def _parse_float(raw: str) -> float | None:
    """Leading decimal number of raw, or None when there is none."""
    match = _FLOAT_PREFIX.match(raw)
    return float(match.group(1)) if match else None


def _to_fixed(value: float, digits: int) -> str:
    """Render value with exactly `digits` decimals.

    Rounds half away from zero on the exact binary value, and renders a zero
    (including -0.0) without a sign.
    """
    if not math.isfinite(value):
        raise ValueError(f"Cannot render non-finite value {value!r}")
    if value == 0:
        value = 0.0
    quantum = Decimal(1).scaleb(-digits)
    return format(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP), "f")


def format_passthrough(raw: str) -> str:
    """Raw value with trailing line terminator / NUL padding removed."""
    return raw.rstrip("\r\n\x00")


def format_identity(raw: str) -> str:
    """Drop '#' padding and surrounding whitespace."""
    return raw.replace(PAD_CHAR, "").strip()


def format_operator_number(raw: str) -> str:
    """1234567890 -> 123-45-67890. Any other length is returned unchanged."""
    if len(raw) == 10:
        return f"{raw[:3]}-{raw[3:5]}-{raw[5:]}"
    return raw


def _checked(part: str, low: int | None, high: int, fallback: str) -> str:
    value = _parse_int(part)
    if value is None or value > high or (low is not None and value < low):
        return fallback
    return part


def format_timestamp(raw: str) -> str:
    """YYMMDDhhmmssff -> YYYY-MM-DD hh:mm:ss.ff.

    Each component is checked on its own: an out-of-range month or day
    becomes "01", an out-of-range hour, minute or second becomes "00".
    """
    if len(raw) != 14:
        return raw
    year = f"20{raw[0:2]}"
    month = _checked(raw[2:4], 1, 12, "01")
    day = _checked(raw[4:6], 1, 31, "01")
    hour = _checked(raw[6:8], None, 23, "00")
    minute = _checked(raw[8:10], None, 59, "00")
    second = _checked(raw[10:12], None, 59, "00")
    fraction = raw[12:14]
    return f"{year}-{month}-{day} {hour}:{minute}:{second}.{fraction}"


def format_speed(raw: str) -> str:
    speed = _parse_int(raw) or 0
    if speed > MAX_SPEED_KMH:
        speed = _parse_int(raw[:SPEED_FALLBACK_CHARS]) or 0
    return f"{speed} km/h"


def format_rpm(raw: str) -> str:
    rpm = _parse_int(raw) or 0
    if rpm > MAX_ENGINE_RPM:
        rpm = _parse_int(raw[:RPM_FALLBACK_CHARS]) or 0
    return f"{rpm} RPM"


def format_brake(raw: str) -> str:
    return "ON" if raw == "1" else "OFF"


def _format_coordinate(raw: str, bound: float, fallback_chars: int) -> str:
    degrees = (_parse_int(raw) or 0) / COORDINATE_SCALE
    if abs(degrees) > bound:
        degrees = (_parse_int(raw[:fallback_chars]) or 0) / 10
    return _to_fixed(degrees, 6)


def format_longitude(raw: str) -> str:
    """Micro-degrees to degrees. Beyond ±180° the first 3 chars / 10 are used."""
    return _format_coordinate(raw, MAX_LONGITUDE_DEG, LONGITUDE_FALLBACK_CHARS)


def format_latitude(raw: str) -> str:
    """Micro-degrees to degrees. Beyond ±90° the first 2 chars / 10 are used."""
    return _format_coordinate(raw, MAX_LATITUDE_DEG, LATITUDE_FALLBACK_CHARS)


def format_heading(raw: str) -> str:
    return f"{_parse_int(raw) or 0}°"


def format_acceleration(raw: str) -> str:
    """Tenths of m/s² to m/s².

    A leading '-' is handled on its own: the rest of the field is read as a
    magnitude and negated. Only non-negative values get the ±50 m/s²
    plausibility correction.
    """
    accel = (_parse_float(raw) or 0.0) / ACCEL_SCALE
    if raw.startswith("-"):
        accel = -((_parse_float(raw[1:]) or 0.0) / ACCEL_SCALE)
    elif abs(accel) > MAX_ACCEL_MS2:
        accel = (_parse_float(raw[:ACCEL_FALLBACK_CHARS]) or 0.0) / ACCEL_SCALE
    return f"{_to_fixed(accel, 1)} m/s²"


def format_distance(raw: str) -> str:
    return f"{_parse_int(raw) or 0} km"


TRANSFORMS: dict[FieldKind, Callable[[str], str]] = {
    FieldKind.PASSTHROUGH: format_passthrough,
    FieldKind.IDENTITY: format_identity,
    FieldKind.OPERATOR_NUMBER: format_operator_number,
    FieldKind.TIMESTAMP: format_timestamp,
    FieldKind.SPEED: format_speed,
    FieldKind.RPM: format_rpm,
    FieldKind.BRAKE: format_brake,
    FieldKind.LONGITUDE: format_longitude,
    FieldKind.LATITUDE: format_latitude,
    FieldKind.HEADING: format_heading,
    FieldKind.ACCELERATION: format_acceleration,
    FieldKind.DISTANCE: format_distance,
}


def apply_transform(kind: FieldKind, raw: str) -> str:
    """Display value of a raw field of the given kind."""
    return TRANSFORMS[kind](raw)


def _transform_all(
    descriptors: Sequence[FieldDescriptor], values: Sequence[str]
) -> dict[str, str]:
    return {d.name: apply_transform(d.kind, v) for d, v in zip(descriptors, values)}


# ─────────────────────────────────────────────────────────────────────────────
# Parser
# ─────────────────────────────────────────────────────────────────────────────

class DTGParser:
    """Sequential parser for DTG drive record logs.

    The decoded text is walked with a single cursor:
      1. Vehicle header (76 chars) at offset 0
      2. Distance prefix (11 chars), attached to sample 1
      3. Samples (57 chars each) while a full stride remains

    Trailing data shorter than one stride is dropped. A sample that fails to
    decode is recorded in DecodeResult.errors and the walk carries on.
    """

    def __init__(self, batch_size: int = PROGRESS_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size

    def parse(
        self,
        path: str | Path,
        progress: Callable[[DecodeProgress], None] | None = None,
        cancel: Callable[[], bool] | None = None,
    ) -> DecodeResult:
        """Parse a DTG log file and return its DecodeResult."""
        path = Path(path)
        if path.suffix.lower() != ".txt":
            logger.warning("%s is not a .txt file, decoding anyway", path.name)
        with open(path, "rb") as f:
            data = f.read()

        result = self.parse_bytes(data, progress=progress, cancel=cancel)
        result.file_path = str(path)
        return result

    def parse_bytes(
        self,
        data: bytes,
        progress: Callable[[DecodeProgress], None] | None = None,
        cancel: Callable[[], bool] | None = None,
    ) -> DecodeResult:
        """Decode a whole log, reporting each checkpoint to `progress`."""
        steps = self.iter_parse(data, cancel=cancel)
        while True:
            try:
                checkpoint = next(steps)
            except StopIteration as stop:
                return stop.value
            if progress is not None:
                progress(checkpoint)

    def iter_parse(
        self, data: bytes, cancel: Callable[[], bool] | None = None
    ) -> Generator[DecodeProgress, None, DecodeResult]:
        """Decode a log step by step.

        Yields a DecodeProgress after every `batch_size` attempted samples and
        once at the end; the DecodeResult is the generator's return value.
        `cancel` is polled at each intermediate checkpoint, and when it returns
        True the samples decoded so far are returned with `cancelled` set.

        Raises FatalInputError before anything is yielded when the input is
        empty or cannot be decoded.
        """
        text, encoding = decode_text(data)
        buffer = self._normalize(text)
        logger.debug("Decoded %d bytes as %s, start: %r", len(data), encoding, buffer[:100])

        header, cursor = self._parse_vehicle_header(buffer)
        result = DecodeResult(
            header=header,
            file_size=len(data),
            encoding=encoding,
            text_length=len(buffer),
        )
        prefix, cursor = self._parse_distance_prefix(buffer, cursor)

        start = cursor
        total = len(buffer) - start
        attempted = 0
        if prefix is not None:
            for cursor, item in self._iter_samples(buffer, cursor, prefix):
                attempted += 1
                if isinstance(item, RecordDecodeError):
                    result.errors.append(item)
                else:
                    result.samples.append(item)

                if attempted % self.batch_size == 0:
                    yield DecodeProgress(cursor - start, total, len(result.samples))
                    if cancel is not None and cancel():
                        result.cancelled = True
                        logger.info(
                            "Decoding cancelled after %d samples", len(result.samples)
                        )
                        return result

        yield DecodeProgress(max(total, 0), total, len(result.samples))

        if result.no_records:
            logger.warning("No drive records parsed, check the file format")
        logger.info(
            "Parsed %d samples (%d errors) from %s text",
            len(result.samples), len(result.errors), encoding,
        )
        return result

    def _normalize(self, text: str) -> str:
        """Reject blank input, unify line endings and strip surrounding whitespace."""
        if not text or not text.strip():
            raise FatalInputError("Input is empty")
        return text.replace("\r\n", "\n").strip()

    def _parse_vehicle_header(self, buffer: str) -> tuple[VehicleHeader, int]:
        """Slice and format the 76-char vehicle header at offset 0."""
        values, cursor = slice_fields(buffer, 0, HEADER_FIELDS)
        header = VehicleHeader(**_transform_all(HEADER_FIELDS, values))
        logger.debug("Vehicle header: %s", header)
        return header, cursor

    def _parse_distance_prefix(
        self, buffer: str, cursor: int
    ) -> tuple[DistancePrefix | None, int]:
        """Parse the 11-char distance prefix that precedes the sample stream.

        Returns (None, cursor) when the buffer ends before a full prefix, in
        which case there is no sample stream either.
        """
        if len(buffer) - cursor < DISTANCE_PREFIX_LENGTH:
            logger.debug("No distance prefix: %d chars after header", len(buffer) - cursor)
            return None, cursor
        values, cursor = slice_fields(buffer, cursor, DISTANCE_FIELDS)
        prefix = DistancePrefix(**_transform_all(DISTANCE_FIELDS, values))
        logger.debug("Distance prefix: %s", prefix)
        return prefix, cursor

    def _iter_samples(
        self, buffer: str, cursor: int, prefix: DistancePrefix
    ) -> Iterator[tuple[int, TelemetrySample | RecordDecodeError]]:
        """Lazily decode full-stride samples from cursor onwards.

        Yields (cursor after the record, sample or error) pairs.
        """
        index = 0
        ordinal = 0
        while cursor + SAMPLE_LENGTH <= len(buffer):
            ordinal += 1
            offset = cursor
            values, cursor = slice_fields(buffer, cursor, SAMPLE_FIELDS)
            try:
                fields = _transform_all(SAMPLE_FIELDS, values)
            except Exception as exc:
                error = RecordDecodeError(
                    offset=offset, ordinal=ordinal, message=f"{type(exc).__name__}: {exc}"
                )
                logger.warning(
                    "Error decoding record %d at char offset %d: %s", ordinal, offset, error.message
                )
                yield cursor, error
                continue

            index += 1
            if index == 1:
                fields["daily_distance"] = prefix.daily_distance
                fields["cumulative_distance"] = prefix.cumulative_distance
            sample = TelemetrySample(index=index, **fields)
            if index <= 5:
                logger.debug("Record #%d: %s", index, sample)
            yield cursor, sample

        trailing = len(buffer) - cursor
        if trailing > 0:
            logger.debug("Dropping %d trailing chars (less than one sample)", trailing)


# ─────────────────────────────────────────────────────────────────────────────
# Sample table
# ─────────────────────────────────────────────────────────────────────────────

HEADER_LABELS = {
    "model_name": "Recorder model",
    "vin": "VIN",
    "vehicle_type": "Vehicle type",
    "registration_number": "Plate number",
    "operator_number": "Operator reg. no.",
    "driver_code": "Driver code",
}

# (attribute, column label) in display order
SAMPLE_COLUMNS = (
    ("index", "No."),
    ("daily_distance", "Daily distance"),
    ("cumulative_distance", "Cumulative distance"),
    ("timestamp", "Timestamp"),
    ("speed", "Speed"),
    ("engine_rpm", "Engine RPM"),
    ("brake", "Brake"),
    ("longitude", "X (lon)"),
    ("latitude", "Y (lat)"),
    ("heading", "GPS heading"),
    ("accel_x", "Accel ΔVx"),
    ("accel_y", "Accel ΔVy"),
    ("status_code", "Status"),
)


def page_count(total: int, page_size: int) -> int:
    """Number of pages needed for `total` rows. An empty table has one page."""
    return max(1, math.ceil(total / page_size))


def _sample_row(sample: TelemetrySample, missing: str) -> list[str]:
    row = []
    for attr, _label in SAMPLE_COLUMNS:
        value = getattr(sample, attr)
        row.append(missing if value is None else str(value))
    return row


def print_samples_page(
    result: DecodeResult, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
) -> None:
    """Print one page of the sample table. Pages are 1-based and clamped."""
    if page_size not in PAGE_SIZES:
        raise ValueError(f"page_size must be one of {PAGE_SIZES}, got {page_size}")

    pages = page_count(len(result.samples), page_size)
    page = min(max(page, 1), pages)
    start = (page - 1) * page_size
    rows = [_sample_row(s, "-") for s in result.samples[start:start + page_size]]

    labels = [label for _attr, label in SAMPLE_COLUMNS]
    widths = [len(label) for label in labels]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    print("  ".join(label.ljust(w) for label, w in zip(labels, widths)))
    print("  ".join("─" * w for w in widths))
    for row in rows:
        print("  ".join(cell.ljust(w) for cell, w in zip(row, widths)))
    print(f"\n  Page {page} / {pages}  ({len(result.samples):,} records, {page_size} per page)")


# ─────────────────────────────────────────────────────────────────────────────
# Exporters
# ─────────────────────────────────────────────────────────────────────────────

_GPX_TIME = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{2}$")


def export_csv(result: DecodeResult, output_path: str | Path) -> None:
    """Export the samples to CSV, one row per sample.

    Values are written exactly as displayed (unit suffixes included).
    Distances are only present on the first row.
    """
    if not result.samples:
        print(f"  Warning: No records to export for {result.file_path}", file=sys.stderr)
        return

    output_path = Path(output_path)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([label for _attr, label in SAMPLE_COLUMNS])
        for sample in result.samples:
            writer.writerow(_sample_row(sample, ""))

    print(f"  CSV: {output_path} ({len(result.samples)} rows)")


def export_gpx(result: DecodeResult, output_path: str | Path) -> None:
    """Export sample positions to a GPX 1.1 track.

    Samples without a GPS position (0.000000, 0.000000) are skipped.
    """
    points = [
        s for s in result.samples
        if not (float(s.latitude) == 0.0 and float(s.longitude) == 0.0)
    ]
    if not points:
        print(f"  Warning: No GPS positions to export for {result.file_path}", file=sys.stderr)
        return

    output_path = Path(output_path)
    buf = io.StringIO()

    track_name = Path(result.file_path).stem or "drive"
    plate = result.header.registration_number

    buf.write('<?xml version="1.0" encoding="UTF-8"?>\n')
    buf.write('<gpx version="1.1" creator="dtg_parser.py"\n')
    buf.write('     xmlns="http://www.topografix.com/GPX/1/1"\n')
    buf.write('     xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"\n')
    buf.write('     xsi:schemaLocation="http://www.topografix.com/GPX/1/1 ')
    buf.write('http://www.topografix.com/GPX/1/1/gpx.xsd">\n')
    buf.write('  <metadata>\n')
    buf.write(f'    <name>{_xml_escape(track_name)}</name>\n')
    buf.write(f'    <desc>DTG drive record — {_xml_escape(plate)}</desc>\n')
    buf.write('  </metadata>\n')
    buf.write('  <trk>\n')
    buf.write(f'    <name>{_xml_escape(track_name)}</name>\n')
    buf.write('    <trkseg>\n')

    for sample in points:
        buf.write(f'      <trkpt lat="{sample.latitude}" lon="{sample.longitude}">\n')
        if _GPX_TIME.match(sample.timestamp):
            # Device clock is local time, no zone designator
            buf.write(f'        <time>{sample.timestamp.replace(" ", "T")}</time>\n')
        speed_ms = int(sample.speed.split()[0]) / 3.6
        buf.write(f'        <speed>{speed_ms:.2f}</speed>\n')
        buf.write('      </trkpt>\n')

    buf.write('    </trkseg>\n')
    buf.write('  </trk>\n')
    buf.write('</gpx>\n')

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(buf.getvalue())

    print(f"  GPX: {output_path} ({len(points)} trackpoints)")


def _xml_escape(s: str) -> str:
    """Escape special XML characters."""
    return (s.replace("&", "&amp;")
             .replace("<", "&lt;")
             .replace(">", "&gt;")
             .replace('"', "&quot;"))


# ─────────────────────────────────────────────────────────────────────────────
# Log summary
# ─────────────────────────────────────────────────────────────────────────────

def print_log_info(result: DecodeResult) -> None:
    """Print a human-readable summary of a parsed DTG log."""
    print(f"\n{'═' * 60}")
    print(f"  DTG Log: {Path(result.file_path).name}")
    print(f"{'═' * 60}")
    print(f"  File size:      {result.file_size:,} bytes")
    print(f"  Encoding:       {result.encoding}")

    print("\n  Vehicle:")
    for attr, label in HEADER_LABELS.items():
        print(f"    {label + ':':19s} {getattr(result.header, attr)}")

    if result.no_records:
        print("\n  No drive records parsed. Check the file format.")
    else:
        print("\n  Drive records:")
        print(f"    Records:        {len(result.samples):,}")
        print(f"    Daily dist.:    {result.daily_distance}")
        print(f"    Cumul. dist.:   {result.cumulative_distance}")
        print(f"    From:           {result.first_timestamp}")
        print(f"    To:             {result.last_timestamp}")
        print(f"    Max speed:      {result.max_speed_kmh} km/h")

    if result.cancelled:
        print("\n  Decoding was cancelled, records are incomplete.")

    if result.errors:
        print(f"\n  Record errors ({len(result.errors)}):")
        for error in result.errors:
            print(f"    #{error.ordinal} at char offset {error.offset}: {error.message}")

    print(f"{'═' * 60}\n")


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def find_log_files(directory: str | Path) -> list[Path]:
    """Recursively find all .txt logs in a directory tree."""
    return sorted(p for p in Path(directory).rglob("*.txt") if p.is_file())


def process_file(
    log_path: Path,
    output_dir: Path | None = None,
    info_only: bool = False,
    no_csv: bool = False,
    no_gpx: bool = False,
    page: int | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> DecodeResult:
    """Parse a single DTG log and optionally export CSV/GPX."""
    log_path = Path(log_path)
    parser = DTGParser()
    result = parser.parse(log_path)

    print_log_info(result)
    if page is not None:
        print_samples_page(result, page=page, page_size=page_size)

    if info_only:
        return result

    # Determine output directory
    if output_dir is None:
        output_dir = log_path.parent
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    stem = log_path.stem

    if not no_csv:
        export_csv(result, output_dir / f"{stem}.csv")

    if not no_gpx:
        export_gpx(result, output_dir / f"{stem}.gpx")

    return result


def main() -> None:
    parser = argparse.ArgumentParser(
        description="DTG Drive Record Parser — Decode Korean digital tachograph "
                    "logs into vehicle info and telemetry records, with CSV and "
                    "GPX export.",
        epilog="Example: python3 dtg_parser.py drive.txt --info",
    )
    parser.add_argument(
        "input",
        nargs="?",
        help="Path to a DTG log (or use --all-in for batch processing)",
    )
    parser.add_argument(
        "--info",
        action="store_true",
        help="Print log summary only (no file export)",
    )
    parser.add_argument(
        "--all-in",
        metavar="DIR",
        help="Recursively process all .txt logs in DIR",
    )
    parser.add_argument(
        "--output-dir",
        metavar="DIR",
        help="Directory for output files (default: same as input)",
    )
    parser.add_argument(
        "--no-csv",
        action="store_true",
        help="Skip CSV export",
    )
    parser.add_argument(
        "--no-gpx",
        action="store_true",
        help="Skip GPX export",
    )
    parser.add_argument(
        "--page",
        metavar="N",
        type=int,
        help="Print page N of the record table",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        choices=PAGE_SIZES,
        default=DEFAULT_PAGE_SIZE,
        help=f"Records per table page (default: {DEFAULT_PAGE_SIZE})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log decoding details",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    options = dict(
        output_dir=args.output_dir,
        info_only=args.info,
        no_csv=args.no_csv,
        no_gpx=args.no_gpx,
        page=args.page,
        page_size=args.page_size,
    )

    if args.all_in:
        log_files = find_log_files(args.all_in)
        if not log_files:
            print(f"No .txt logs found in {args.all_in}", file=sys.stderr)
            sys.exit(1)
        print(f"Found {len(log_files)} log file(s)\n")
        failed = 0
        for log_path in log_files:
            try:
                process_file(log_path, **options)
            except FatalInputError as exc:
                print(f"Error: {log_path}: {exc}", file=sys.stderr)
                failed += 1
        if failed:
            sys.exit(1)
    elif args.input:
        input_path = Path(args.input)
        if not input_path.exists():
            print(f"Error: File not found: {input_path}", file=sys.stderr)
            sys.exit(1)
        try:
            process_file(input_path, **options)
        except FatalInputError as exc:
            print(f"Error: {input_path}: {exc}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
