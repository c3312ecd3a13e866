"""
Readings and the ordered collection they are uploaded in.
"""

# Imports
import datetime as dt
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterator, List, Optional, Union

import pandas as pd


class MeasureKind(str, Enum):
    """Whether readings come from a stationary or a moving sensor."""

    FIXED = "fixed"
    MOBILE = "mobile"

    @property
    def headers(self) -> List[str]:
        if self is MeasureKind.MOBILE:
            return ["sensor_id", "measure", "timestamp", "longitude", "latitude"]
        return ["sensor_id", "measure", "timestamp"]


def to_iso_timestamp(value: Union[str, dt.datetime, pd.Timestamp]) -> str:
    """Formats a datetime as a UTC ISO string ending in Z. Strings pass through."""
    if isinstance(value, str):
        return value
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    value = value.astimezone(dt.timezone.utc).replace(microsecond=0)
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Measure:
    """A single reading. Mobile readings carry their own position."""

    sensor_id: str
    measure: float
    timestamp: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def row(self, kind: MeasureKind) -> dict:
        values = asdict(self)
        return {h: values[h] for h in kind.headers}


class Measures:
    """
    Append-only, ordered batch of readings of one kind.

    Duplicate sensor/timestamp pairs are kept; everything pushed is uploaded.
    """

    def __init__(self, kind: MeasureKind = MeasureKind.FIXED):
        self.kind = MeasureKind(kind)
        self.measures: List[Measure] = []
        self.from_: Optional[str] = None
        self.to: Optional[str] = None

    @property
    def headers(self) -> List[str]:
        return self.kind.headers

    def push(self, measure: Union[Measure, dict]) -> Measure:
        """Appends a reading, given as a Measure or a dict of its fields."""
        if isinstance(measure, dict):
            measure = Measure(
                sensor_id=measure["sensor_id"],
                measure=measure["measure"],
                timestamp=to_iso_timestamp(measure["timestamp"]),
                latitude=measure.get("latitude"),
                longitude=measure.get("longitude"),
            )

        if self.to is None or measure.timestamp > self.to:
            self.to = measure.timestamp
        if self.from_ is None or measure.timestamp < self.from_:
            self.from_ = measure.timestamp

        self.measures.append(measure)
        return measure

    def __len__(self) -> int:
        return len(self.measures)

    def __iter__(self) -> Iterator[Measure]:
        return iter(self.measures)

    def json(self) -> List[dict]:
        return [m.row(self.kind) for m in self.measures]

    def csv(self) -> str:
        """Serializes the batch as CSV with the header of its kind."""
        df = pd.DataFrame(self.json(), columns=self.headers)
        return df.to_csv(index=False)
