"""
Station metadata model: SensorNode -> SensorSystem -> Sensor, plus Version.

Serialized forms are sparse. A key whose value is None is left out at every
level, and downstream ingestion reads an absent key as "no data".
"""

# Imports
import logging
from typing import Any, Dict, List, Optional


def strip_nulls(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Drops keys whose value is None."""
    return {k: v for k, v in obj.items() if v is not None}


class _Record:
    """Shared construction logic: a fixed attribute set and optional key aliases."""

    FIELDS: tuple = ()
    ALIASES: Dict[str, str] = {}

    def __init__(self, **data):
        for name in self.FIELDS:
            setattr(self, name, None)
        self._assign(data)

    def _assign(self, data: Dict[str, Any]) -> None:
        for key, value in data.items():
            name = self.ALIASES.get(key, key)
            if name in self.FIELDS:
                setattr(self, name, value)
            else:
                logging.debug(f"{type(self).__name__}: ignoring unknown field '{key}'")

    def _fields_json(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.FIELDS}


class Sensor(_Record):
    """One measurement channel: exactly one canonical parameter and unit."""

    FIELDS = (
        "sensor_id",
        "sensor_system_id",
        "sensor_data_averaging_period",
        "sensor_data_averaging_period_unit",
        "sensor_data_logging_interval_second",
        "sensor_lifecycle_stage",
        "sensor_description",
        "sensor_deployed_by",
        "sensor_deployment_date",
        "sensor_deactivation_date",
        "sensor_deployment_notes",
        "sensor_firmware_version",
        "sensor_flow_rate_unit",
        "sensor_flow_rate",
        "sensor_calibration_procedure",
        "sensor_calibration_date",
        "sensor_last_calibration_timestamp",
        "sensor_last_service_timestamp",
        "sensor_service_date",
        "sensor_manufacturer_batch_number",
        "sensor_manufacturer_name",
        "sensor_model_name",
        "sensor_model_version_name",
        "sensor_origin_date",
        "sensor_purchase_date",
        "sensor_sampling_duration",
        "sensor_serial_number",
        "sensor_size_range",
        "measurand_parameter",
        "measurand_unit",
    )
    ALIASES = {
        "manufacturer_name": "sensor_manufacturer_name",
        "model_name": "sensor_model_name",
        "interval_seconds": "sensor_data_averaging_period",
        "calibration_date": "sensor_calibration_date",
        "last_calibration_timestamp": "sensor_last_calibration_timestamp",
        "last_service_timestamp": "sensor_last_service_timestamp",
        "calibration_procedure": "sensor_calibration_procedure",
        "deployment_date": "sensor_deployment_date",
        "service_date": "sensor_service_date",
        "flow_rate": "sensor_flow_rate",
        "firmware_version": "sensor_firmware_version",
        "size_range": "sensor_size_range",
    }

    def json(self) -> Dict[str, Any]:
        return strip_nulls(self._fields_json())


class SensorSystem(_Record):
    """One instrument deployment at a station. Owns its sensors."""

    FIELDS = (
        "sensor_system_id",
        "sensor_node_id",
        "sensor_system_metadata_effective_tsa",
        "sensor_system_cost_band",
        "sensor_system_description",
        "sensor_system_deployed_by",
        "sensor_system_deployment_date",
        "sensor_system_deployment_notes",
        "sensor_system_firmware_version",
        "sensor_system_height_from_ground_meter",
        "sensor_system_inlet_orientation",
        "sensor_system_manufacturer_batch_number",
        "sensor_system_manufacturer_name",
        "sensor_system_model_name",
        "sensor_system_model_version_name",
        "sensor_system_origin_date",
        "sensor_system_purchase_date",
        "sensor_system_serial_number",
        "sensor_system_source_id",
        "sensor_system_attribution",
    )

    def __init__(self, sensor: Optional[Sensor] = None, sensors=None, **data):
        super().__init__(**data)
        self.sensors: List[Sensor] = list(sensors or [])
        if sensor is not None:
            self.sensors.insert(0, sensor)

    def add_sensor(self, sensor: Sensor) -> Sensor:
        self.sensors.append(sensor)
        return sensor

    def json(self) -> Dict[str, Any]:
        return strip_nulls(
            {
                **self._fields_json(),
                "sensors": [s.json() for s in self.sensors],
            }
        )


class SensorNode(_Record):
    """A monitoring site. Geometry is [lon, lat]."""

    FIELDS = (
        "sensor_node_id",
        "sensor_node_site_name",
        "sensor_node_source_name",
        "sensor_node_site_description",
        "sensor_node_deployed_by",
        "sensor_node_deployed_date",
        "sensor_node_deploy_notes",
        "sensor_node_ismobile",
        "sensor_node_geometry",
        "sensor_node_timezone",
        "sensor_node_reporting_frequency",
        "sensor_node_city",
        "sensor_node_country",
        "sensor_node_project",
        "sensor_node_location_type",
        "sensor_node_height_meters",
        "sensor_node_distance_from_road_meters",
    )
    ALIASES = {
        "city": "sensor_node_city",
        "country": "sensor_node_country",
        "project": "sensor_node_project",
        "height_meters": "sensor_node_height_meters",
        "distance_from_road_meters": "sensor_node_distance_from_road_meters",
        "location_type": "sensor_node_location_type",
        "ismobile": "sensor_node_ismobile",
        "is_mobile": "sensor_node_ismobile",
        "mobile": "sensor_node_ismobile",
    }
    # Never touched by merge(); geometry is handled on its own.
    MERGE_IGNORE = ("sensor_systems", "sensor_node_geometry")

    def __init__(self, sensor_system: Optional[SensorSystem] = None, **data):
        super().__init__(**data)
        self.sensor_systems: List[SensorSystem] = []
        if sensor_system is not None:
            self.sensor_systems.append(sensor_system)
        logging.debug(f"Created new sensor node {self.sensor_node_id}")

    def add_sensor(self, sensor: Sensor) -> Sensor:
        """Adds a sensor to the first system, creating a default one if needed."""
        if not self.sensor_systems:
            self.sensor_systems.append(SensorSystem(sensor_node_id=self.sensor_node_id))
        return self.sensor_systems[0].add_sensor(sensor)

    def merge(self, other: "SensorNode") -> None:
        """
        Updates scalar station metadata from another node.

        Non-empty values in `other` that differ from ours win. Geometry is
        taken from `other` whenever it has one. Systems are left as they are.
        """
        for name in self.FIELDS:
            if name in self.MERGE_IGNORE:
                continue
            value = getattr(other, name, None)
            if value and value != getattr(self, name):
                setattr(self, name, value)

        if other.sensor_node_geometry:
            self.sensor_node_geometry = other.sensor_node_geometry

    def json(self) -> Dict[str, Any]:
        return strip_nulls(
            {
                **self._fields_json(),
                "sensor_systems": [s.json() for s in self.sensor_systems],
            }
        )


class Version(_Record):
    """Lifecycle record of a sensor: which files produced it and its readme."""

    FIELDS = (
        "parent_sensor_id",
        "version_id",
        "sensor_id",
        "life_cycle_id",
        "parameter",
        "readme",
        "filename",
        "provider",
    )
    COMPARE = (
        "parent_sensor_id",
        "sensor_id",
        "version_id",
        "life_cycle_id",
        "parameter",
        "readme",
    )

    def __init__(self, merged=None, **data):
        super().__init__(**data)
        self.merged: List[str] = list(merged or [])

    def different(self, other: "Version") -> bool:
        """True when any identity/readme field set here differs. Unset and nested values are not compared."""
        for key in self.COMPARE:
            value = getattr(self, key)
            if value is None or isinstance(value, (dict, list)):
                continue
            if value != getattr(other, key, None):
                return True
        return False

    def merge(self, other: "Version") -> None:
        if other.sensor_id != self.sensor_id:
            logging.warning(
                f"You are trying to merge non-matching versions, {other.sensor_id} to {self.sensor_id}"
            )
            return
        if other.merged:
            self.merged.extend(other.merged)
        if other.readme:
            self.readme = other.readme
            self.merged.append(other.filename)

    def json(self) -> Dict[str, Any]:
        return strip_nulls(
            {
                "parent_sensor_id": self.parent_sensor_id,
                "version_id": self.version_id,
                "sensor_id": self.sensor_id,
                "parameter": self.parameter,
                "life_cycle_id": self.life_cycle_id,
                "filename": self.filename,
                "readme": self.readme,
            }
        )
