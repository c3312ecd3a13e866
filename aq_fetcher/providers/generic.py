"""
Generic processor that reshapes file-type provider data into the ingest format.

A source config points at any mix of location, sensor, measurement and flag
files plus a column mapping. Rows are folded into Location -> System -> Sensor
trees keyed by derived ingest ids, and readings into one Measures batch:

    location_id = <provider>-<location>
    system_id   = <location_id>-<manufacturer>::<model> | -<either> | -default
    sensor_id   = <location_id>-<parameter>[:<instance>][:<version_date>]

Entities are get-or-create, so files can arrive in any order. A bad row is
logged and skipped; it never stops the rest of the file.
"""

# ### IMPORTS ###

# 1.1 Standard Libraries
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Union

# 1.2 Third-party libraries
import pandas as pd

# 1.3 Local application modules
from ..config import FetcherConfig
from ..exceptions import UnsupportedMeasurandError
from ..measurand import Measurand, get_indexed_supported_measurands
from ..measure import Measure, MeasureKind, Measures, to_iso_timestamp
from ..utils.fetch_utils import fetch_file, fetch_files
from ..utils.s3_utils import put_measures_json
from ..utils.transform_utils import clean_key, strip_na, strip_whitespace, truthy

SCHEMA_VERSION = "v0.1"
FILE_TYPES = ("locations", "sensors", "measurements", "flags")


def class_assign(target, data: Dict[str, Any], fields_: tuple, accepted: tuple = ()) -> None:
    """
    Copies known fields from data onto target.

    Keys listed in `accepted` go into target.metadata instead; anything else
    is ignored.
    """
    for key, value in data.items():
        if key in fields_:
            setattr(target, key, strip_whitespace(value))
        elif key in accepted:
            if target.metadata is None:
                target.metadata = {}
            target.metadata[key] = strip_whitespace(value)


# =============================================================================
# ENTITIES
# =============================================================================


class Flag:
    """A data-quality flag attached to a sensor for a period of time."""

    FIELDS = ("flag_id", "datetime_from", "datetime_to", "flag_name", "note")

    def __init__(self, data: Dict[str, Any]):
        self.flag_id = data.get("flag_id") or Flag.make_id(data)
        self.datetime_from = data.get("starts")
        self.datetime_to = data.get("ends")
        self.flag_name = data.get("flag")
        self.note = data.get("note")
        class_assign(self, strip_na(data), self.FIELDS)

    @staticmethod
    def make_id(data: Dict[str, Any]) -> str:
        starts = data.get("starts") or "infinity"
        return f"{data.get('sensor_id')}-{data.get('flag')}::{starts}"

    def json(self) -> Dict[str, Any]:
        return strip_na(
            {
                "flag_id": self.flag_id,
                "datetime_from": self.datetime_from,
                "datetime_to": self.datetime_to,
                "flag_name": self.flag_name,
                "note": self.note,
            }
        )


class Sensor:
    FIELDS = ("sensor_id", "parameter", "interval_seconds", "version_date", "instance", "status")

    def __init__(self, data: Dict[str, Any]):
        self.sensor_id = data["sensor_id"]
        self.parameter = None
        self.interval_seconds = None
        self.version_date = None
        self.instance = None
        self.status = None
        self.flags: Dict[str, Flag] = {}
        class_assign(self, data, self.FIELDS)

    def add(self, data: Dict[str, Any]) -> Flag:
        flag = Flag({**data, "sensor_id": self.sensor_id})
        self.flags[flag.flag_id] = flag
        return flag

    def json(self) -> Dict[str, Any]:
        return strip_na(
            {
                "sensor_id": self.sensor_id,
                "version_date": self.version_date,
                "status": self.status,
                "instance": self.instance,
                "parameter": self.parameter,
                "interval_seconds": self.interval_seconds,
                "flags": [f.json() for f in self.flags.values()],
            }
        )


class System:
    FIELDS = ("system_id", "manufacturer_name", "model_name")

    def __init__(self, data: Dict[str, Any]):
        self.system_id = data["system_id"]
        self.manufacturer_name = None
        self.model_name = None
        self.metadata = None
        self.sensors: Dict[str, Sensor] = {}
        class_assign(self, data, self.FIELDS)

    def add(self, data: Dict[str, Any]) -> Sensor:
        """Returns the sensor with this id, creating it from data if needed."""
        sensor_id = data["sensor_id"]
        if sensor_id not in self.sensors:
            self.sensors[sensor_id] = Sensor(data)
        return self.sensors[sensor_id]

    def json(self) -> Dict[str, Any]:
        return strip_na(
            {
                "system_id": self.system_id,
                "manufacturer_name": self.manufacturer_name,
                "model_name": self.model_name,
                "sensors": [s.json() for s in self.sensors.values()],
            }
        )


class Location:
    """A sensor node location and the systems deployed there."""

    FIELDS = ("location_id", "owner", "label", "lat", "lon", "ismobile")
    METADATA_KEYS = ("project", "city", "state", "country")

    def __init__(self, data: Dict[str, Any]):
        self.location_id = data["location_id"]
        self.owner = None
        self.label = None
        self.lat = None
        self.lon = None
        self.ismobile = None
        self.metadata = None
        self.systems: Dict[str, System] = {}
        class_assign(self, data, self.FIELDS, self.METADATA_KEYS)

    def get_system(self, data: Union[str, Dict[str, Any]]) -> System:
        """Returns a system by id or data, creating it if it does not exist yet."""
        if isinstance(data, str):
            data = {"system_id": data}
        key = data["system_id"]
        if key not in self.systems:
            self.systems[key] = System(dict(data))
        return self.systems[key]

    def add(self, sensor: Dict[str, Any]) -> Sensor:
        """Adds a sensor, and its system if that is new."""
        return self.get_system(sensor).add(sensor)

    def json(self) -> Dict[str, Any]:
        return strip_na(
            {
                "location": self.location_id,
                "label": self.label,
                "lat": self.lat,
                "lon": self.lon,
                "ismobile": self.ismobile,
                "metadata": self.metadata,
                "systems": [s.json() for s in self.systems.values()],
            }
        )


# =============================================================================
# CLIENT
# =============================================================================


@dataclass
class SourceMeta:
    """Column names used to read a source's files."""

    location_key: str = "location"
    label_key: str = "location"
    parameter_key: str = "parameter"
    value_key: str = "value"
    latitude_key: str = "lat"
    longitude_key: str = "lng"
    manufacturer_key: str = "manufacturer_name"
    model_key: str = "model_name"
    timestamp_key: str = "datetime"
    datetime_format: Optional[str] = None
    timezone: str = "UTC"

    @classmethod
    def from_dict(cls, meta: Dict[str, Any]) -> "SourceMeta":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in meta.items() if k in known and v})


class Client:
    """Builds ingest data for one source in one run."""

    def __init__(self, source: Dict[str, Any], config: Optional[FetcherConfig] = None):
        self.source = source
        self.config = config or FetcherConfig()
        self.meta = SourceMeta.from_dict(source.get("meta") or {})
        self.parameters = source.get("parameters") or {}
        self.measurands: Dict[str, Measurand] = {}
        self.measures = Measures(MeasureKind.FIXED)
        self.locations: Dict[str, Location] = {}
        # flat index so sensors can be found without walking every location
        self.sensors: Dict[str, Sensor] = {}
        # errors and warnings by type, reported in the summary
        self.log: Dict[str, List[dict]] = {}
        self.fetch_measurands()

    @property
    def provider(self) -> str:
        return clean_key(self.source["provider"])

    def fetch_measurands(self) -> None:
        self.measurands = get_indexed_supported_measurands(self.parameters)

    # --- ids -----------------------------------------------------------------

    def get_location_id(self, row: Dict[str, Any]) -> str:
        location = clean_key(row.get(self.meta.location_key))
        if not location:
            raise ValueError(f"Missing location field. Looking in {self.meta.location_key}")
        return f"{self.provider}-{location}"

    def get_system_id(self, row: Dict[str, Any]) -> str:
        manufacturer = clean_key(row.get(self.meta.manufacturer_key))
        model = clean_key(row.get(self.meta.model_key))
        location_id = self.get_location_id(row)
        if manufacturer and model:
            key = f"{manufacturer}::{model}"
        elif not manufacturer and not model:
            key = "default"
        else:
            key = manufacturer or model
        return f"{location_id}-{key}"

    def get_sensor_id(self, row: Dict[str, Any]) -> str:
        """
        Builds the sensor id for a row whose 'metric' holds the provider parameter.

        Raises:
            UnsupportedMeasurandError: If the metric has no supported measurand.
        """
        metric = row.get("metric")
        measurand = self.measurands.get(metric)
        if measurand is None:
            raise UnsupportedMeasurandError(f"Could not find measurand for {metric}")
        location_id = self.get_location_id(row)
        key = [measurand.parameter]
        instance = clean_key(row.get("instance"))
        version = clean_key(row.get("version_date"))
        if instance:
            key.append(instance)
        if version:
            key.append(version)
        return f"{location_id}-{':'.join(key)}"

    def get_label(self, row: Dict[str, Any]) -> Any:
        return row.get(self.meta.label_key)

    # --- lookups -------------------------------------------------------------

    def get_location(self, key: Union[str, Dict[str, Any]]) -> Location:
        """Returns a location by id or row data, creating it if needed."""
        if isinstance(key, dict):
            return self.add_location(key)
        if key not in self.locations:
            self.locations[key] = Location({"location_id": key})
        return self.locations[key]

    def get_sensor(self, key: Union[str, Dict[str, Any]]) -> Optional[Sensor]:
        if isinstance(key, dict):
            key = self.get_sensor_id(key)
        return self.sensors.get(key)

    def add_location(self, row: Dict[str, Any]) -> Location:
        key = self.get_location_id(row)
        if key not in self.locations:
            self.locations[key] = Location(
                {
                    **row,
                    "location_id": key,
                    "label": self.get_label(row),
                    "ismobile": truthy(row.get("ismobile")),
                    "lat": self._coordinate(row, self.meta.latitude_key),
                    "lon": self._coordinate(row, self.meta.longitude_key),
                }
            )
        return self.locations[key]

    @staticmethod
    def _coordinate(row: Dict[str, Any], key: str) -> Optional[float]:
        value = row.get(key)
        if value is None or value == "":
            return None
        # malformed coordinates raise and drop the row
        return float(value)

    # --- values --------------------------------------------------------------

    def normalize(self, meas: Dict[str, Any]) -> float:
        return self.measurands[meas["metric"]].normalize_value(meas["value"])

    def get_datetime(self, row: Dict[str, Any]) -> str:
        """Parses the row timestamp in the source timezone and returns it as UTC ISO."""
        value = row.get(self.meta.timestamp_key)
        if not value:
            raise ValueError(f"Missing date/time field. Looking in {self.meta.timestamp_key}")
        try:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                # numeric timestamps are epoch seconds
                ts = pd.to_datetime(value, unit="s", utc=True)
            else:
                ts = pd.to_datetime(value, format=self.meta.datetime_format)
        except (ValueError, TypeError) as e:
            raise ValueError(
                f"A valid date could not be made from {value} using {self.meta.datetime_format}"
            ) from e
        if ts.tzinfo is None:
            ts = ts.tz_localize(self.meta.timezone)
        return to_iso_timestamp(ts.tz_convert("UTC"))

    def log_message(self, type_: str, message: str, err: Exception = None, level=logging.WARNING):
        self.log.setdefault(type_, []).append({"message": message, "err": str(err) if err else None})
        logging.log(level, f"{type_}: {message}")

    # --- processing ----------------------------------------------------------

    def fetch_data(self, descriptor: Dict[str, Any]) -> Optional[List[dict]]:
        return fetch_file(descriptor, self.config)

    def process_data(self, descriptor: Dict[str, Any], data: Optional[List[dict]] = None) -> None:
        """
        Entry point for one input file.

        Args:
            descriptor (dict): File descriptor with a 'type' of locations,
                sensors, measurements or flags.
            data (list): Already fetched rows. Fetched from the descriptor if omitted.
        """
        if data is None:
            data = self.fetch_data(descriptor)
        if data is None:
            raise ValueError("No data was returned from file")

        file_type = descriptor.get("type")
        if file_type == "locations":
            self.process_locations_data(data)
        elif file_type == "sensors":
            self.process_sensors_data(data)
        elif file_type == "measurements":
            self.process_measurements_data(data)
        elif file_type == "flags":
            self.process_flags_data(data)
        else:
            logging.warning(f"Unknown file type '{file_type}', expected one of {FILE_TYPES}")

    def process_locations_data(self, locations: List[dict]) -> None:
        logging.info(f"Processing {len(locations)} locations")
        for row in locations:
            try:
                self.add_location(row)
            except Exception as e:
                self.log_message("LOCATION_ERROR", f"Error adding location {row}: {e}", e)

    def process_sensors_data(self, sensors: List[dict]) -> None:
        logging.info(f"Processing {len(sensors)} sensors")
        for row in sensors:
            try:
                metric = row.get(self.meta.parameter_key)
                sensor_id = self.get_sensor_id({**row, "metric": metric})
                system_id = self.get_system_id(row)
                location = self.get_location(row)
                self.sensors[sensor_id] = location.add(
                    {
                        **row,
                        "sensor_id": sensor_id,
                        "system_id": system_id,
                        "manufacturer_name": row.get(self.meta.manufacturer_key),
                        "model_name": row.get(self.meta.model_key),
                        "parameter": self.measurands[metric].parameter,
                    }
                )
            except Exception as e:
                self.log_message("SENSOR_ERROR", f"Error adding sensor {row}: {e}", e)

    def process_measurements_data(self, measurements: List[dict]) -> None:
        """
        Adds every reading in a measurements file to the batch.

        Long format (parameter and value columns present) yields one reading
        per row; otherwise each configured parameter column is a reading.
        Empty values are skipped.
        """
        logging.info(f"Processing {len(measurements)} measurements")
        if not measurements:
            return

        keys = measurements[0].keys()
        long_format = self.meta.parameter_key in keys and self.meta.value_key in keys
        params = [self.meta.parameter_key] if long_format else list(self.parameters.keys())

        for row in measurements:
            try:
                timestamp = self.get_datetime(row)
                location = row.get(self.meta.location_key)
                self.get_location(row)
            except Exception as e:
                self.log_message("MEASUREMENT_ERROR", f"Error reading row {row}: {e}", e)
                continue

            for p in params:
                value = row.get(self.meta.value_key) if long_format else row.get(p)
                metric = row.get(p) if long_format else p
                if not value:
                    self.log_message(
                        "VALUE_NOT_FOUND", f"No {metric} value at {location}", level=logging.DEBUG
                    )
                    continue
                try:
                    m = {**row, self.meta.location_key: location, "metric": metric, "value": value}
                    self.measures.push(
                        Measure(
                            sensor_id=self.get_sensor_id(m),
                            measure=self.normalize(m),
                            timestamp=timestamp,
                        )
                    )
                except Exception as e:
                    self.log_message(
                        "MEASUREMENT_ERROR", f"Error adding {metric} at {location}: {e}", e
                    )

    def process_flags_data(self, flags: List[dict]) -> None:
        logging.info(f"Processing {len(flags)} flags")
        for row in flags:
            try:
                sensor = self.get_sensor({**row, "metric": row.get(self.meta.parameter_key)})
                if sensor is None:
                    self.log_message("FLAG_ERROR", f"No sensor found for flag {row}")
                    continue
                sensor.add(row)
            except Exception as e:
                self.log_message("FLAG_ERROR", f"Error adding flag {row}: {e}", e)

    # --- output --------------------------------------------------------------

    def data(self) -> Dict[str, Any]:
        """Dumps everything collected in the ingest format."""
        return {
            "meta": {
                "schema": SCHEMA_VERSION,
                "source": self.provider,
                "matching_method": "ingest-id",
            },
            "measures": self.measures.json(),
            "locations": [loc.json() for loc in self.locations.values()],
        }

    def summary(self) -> Dict[str, Any]:
        systems = [s for loc in self.locations.values() for s in loc.systems.values()]
        return {
            "source_name": self.provider,
            "locations": len(self.locations),
            "systems": len(systems),
            "sensors": sum(len(s.sensors) for s in systems),
            "flags": sum(len(s.flags) for s in self.sensors.values()),
            "measures": len(self.measures),
            "errors": {k: len(v) for k, v in self.log.items()},
            "from": self.measures.from_,
            "to": self.measures.to,
        }


def processor(source: Dict[str, Any], config: FetcherConfig) -> Dict[str, Any]:
    """
    Runs one generic source: fetch its files, reshape them and store the result.

    Returns:
        dict: The run summary.
    """
    client = Client(source, config)
    files = source.get("files") or []

    # fetch concurrently, then fold rows in one at a time in listed order
    results = fetch_files(files, config)
    for descriptor, rows in zip(files, results):
        if rows is None:
            client.log_message(
                "FILE_ERROR", f"No data was returned from {descriptor.get('path', 'inline data')}"
            )
            continue
        client.process_data(descriptor, rows)

    key = "test_data" if config.dry_run else None
    put_measures_json(client.provider, client.data(), config, key=key)

    summary = client.summary()
    logging.info(f"Finished {client.provider}: {summary}")
    return summary
