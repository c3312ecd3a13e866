from pathlib import Path

import pytest

from aq_fetcher.config import FetcherConfig
from aq_fetcher.exceptions import UnsupportedMeasurandError
from aq_fetcher.providers import generic

DATA_DIR = Path(__file__).parent / "data"

SOURCE = {
    "provider": "testing",
    "meta": {
        "parameter_key": "parameter",
        "value_key": "value",
    },
    "parameters": {
        "co": ["co", "ppb"],
        "wd": ["wind_direction", "deg"],
        "ws": ["wind_speed", "m/s"],
    },
}


def run_files(*files):
    client = generic.Client(SOURCE)
    for file_type, name in files:
        client.process_data({"type": file_type, "path": str(DATA_DIR / name)})
    return client


def test_clean_key_examples():
    assert generic.clean_key("  My Site Name!! ") == "my_site_name"
    assert generic.clean_key("Node-S") == "nodes"
    assert generic.clean_key(None) is None


def test_ids_are_deterministic():
    client = generic.Client(SOURCE)
    row = {"location": "Test Site 1", "manufacturer_name": "MetOne", "model_name": "AIO2", "metric": "co"}
    assert client.get_location_id(row) == "testing-test_site_1"
    assert client.get_system_id(row) == "testing-test_site_1-metone::aio2"
    assert client.get_sensor_id(row) == "testing-test_site_1-co"
    assert client.get_sensor_id(dict(row)) == client.get_sensor_id(row)


def test_system_id_variants():
    client = generic.Client(SOURCE)
    assert client.get_system_id({"location": "A"}) == "testing-a-default"
    assert client.get_system_id({"location": "A", "model_name": "AIO 2"}) == "testing-a-aio_2"
    assert client.get_system_id({"location": "A", "manufacturer_name": "MetOne"}) == "testing-a-metone"


def test_sensor_id_requires_supported_measurand():
    client = generic.Client(SOURCE)
    with pytest.raises(UnsupportedMeasurandError):
        client.get_sensor_id({"location": "A", "metric": "pm25"})


def test_wide_measurements_work():
    client = run_files(("measurements", "test_measurements_wide.csv"))
    data = client.data()

    assert data["meta"]["source"] == "testing"
    assert len(data["measures"]) == 2
    assert data["measures"][0]["sensor_id"] == "testing-test_site_1-co"
    # ppb -> ppm
    assert data["measures"][0]["measure"] == pytest.approx(0.45)
    assert data["measures"][0]["timestamp"] == "2024-01-01T01:00:00Z"
    # the measurement row creates its location
    assert len(data["locations"]) == 1
    assert client.summary()["errors"] == {"VALUE_NOT_FOUND": 1}


def test_wide_measurements_yield_one_reading_per_parameter_column():
    client = generic.Client(SOURCE)
    rows = [
        {"location": "A", "datetime": "2024-01-01 00:00:00", "co": "100", "wd": "180", "ws": "3"},
        {"location": "B", "datetime": "2024-01-01 00:00:00", "co": "200", "wd": "90", "ws": ""},
    ]
    client.process_data({"type": "measurements"}, rows)
    assert len(client.measures) == 5


def test_long_measurements_work():
    client = run_files(("measurements", "test_measurements_long.csv"))
    data = client.data()

    assert len(data["measures"]) == 2
    assert data["measures"][0]["sensor_id"] == "testing-test_site_1-co"
    assert data["measures"][1]["sensor_id"] == "testing-test_site_1-wind_speed"
    summary = client.summary()
    assert summary["from"] == "2024-01-01T01:00:00Z"
    assert summary["to"] == "2024-01-01T02:00:00Z"


def test_zero_and_empty_values_are_skipped():
    client = generic.Client(SOURCE)
    rows = [
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": 0},
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": ""},
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": "5"},
    ]
    client.process_data({"type": "measurements"}, rows)
    assert len(client.measures) == 1


def test_bad_rows_do_not_stop_the_batch():
    client = generic.Client(SOURCE)
    rows = [
        {"location": "A", "datetime": "not a date", "parameter": "co", "value": "1"},
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "pm25", "value": "1"},
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": "abc"},
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": "10"},
    ]
    client.process_data({"type": "measurements"}, rows)
    assert len(client.measures) == 1
    assert client.summary()["errors"]["MEASUREMENT_ERROR"] == 3


def test_non_finite_values_are_dropped():
    client = generic.Client(SOURCE)
    rows = [
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": "NaN"},
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": "inf"},
        {"location": "A", "datetime": "2024-01-01 00:00:00", "parameter": "co", "value": "-Infinity"},
    ]
    client.process_data({"type": "measurements"}, rows)
    assert len(client.measures) == 0
    assert client.summary()["errors"]["MEASUREMENT_ERROR"] == 3


def test_numeric_timestamps_are_epoch_seconds():
    client = generic.Client(SOURCE)
    assert client.get_datetime({"datetime": 1704070800}) == "2024-01-01T01:00:00Z"
    assert client.get_datetime({"datetime": 1704070800.0}) == "2024-01-01T01:00:00Z"


def test_simple_locations_work():
    data = run_files(("locations", "test_locations.csv")).data()

    assert len(data["locations"]) == 2
    assert len(data["measures"]) == 0
    loc = data["locations"][0]
    assert loc["location"] == "testing-test_site_1"
    assert loc["label"] == "Test Site 1"
    assert loc["lat"] == pytest.approx(34.05)
    assert loc["lon"] == pytest.approx(-118.25)
    assert loc["systems"] == []


def test_advanced_locations_metadata():
    loc = run_files(("locations", "test_advanced_locations.csv")).data()["locations"][0]
    assert loc["location"] == "testing-test_site_1"
    assert set(loc["metadata"]) == {"project", "city", "state", "country"}


def test_malformed_coordinates_drop_the_location():
    client = generic.Client(SOURCE)
    client.process_data(
        {"type": "locations"},
        [{"location": "A", "lat": "north", "lng": "1"}, {"location": "B", "lat": "1", "lng": "2"}],
    )
    assert list(client.locations) == ["testing-b"]
    assert client.summary()["errors"] == {"LOCATION_ERROR": 1}


def test_simple_sensors_work():
    data = run_files(("sensors", "test_sensors_simple.csv")).data()
    loc1, loc2 = data["locations"]

    assert len(data["locations"]) == 2
    assert len(loc1["systems"]) == 2
    assert len(loc1["systems"][0]["sensors"]) == 1
    assert len(loc2["systems"]) == 1
    assert len(loc2["systems"][0]["sensors"]) == 2
    assert loc2["systems"][0]["sensors"][0]["status"] == "u"
    assert loc2["systems"][0]["sensors"][0]["parameter"] == "co"
    assert loc2["systems"][0]["system_id"] == "testing-test_site_2-metone::aio2"
    assert loc2["systems"][0]["manufacturer_name"] == "MetOne"


def test_all_files_work():
    client = run_files(
        ("locations", "test_locations.csv"),
        ("sensors", "test_sensors_simple.csv"),
        ("measurements", "test_measurements_wide.csv"),
    )
    data = client.data()
    loc1, loc2 = data["locations"]

    assert data["meta"] == {"schema": "v0.1", "source": "testing", "matching_method": "ingest-id"}
    assert len(data["measures"]) == 2
    assert data["measures"][0]["sensor_id"] == "testing-test_site_1-co"
    assert len(data["locations"]) == 2
    assert len(loc1["systems"]) == 2
    assert len(loc2["systems"]) == 1
    assert len(loc2["systems"][0]["sensors"]) == 2
    assert loc1["lat"] == pytest.approx(34.05)

    summary = client.summary()
    assert summary["locations"] == 2
    assert summary["systems"] == 3
    assert summary["sensors"] == 4
    assert summary["measures"] == 2


def test_files_in_any_order_give_same_ids():
    forward = run_files(
        ("locations", "test_locations.csv"),
        ("sensors", "test_sensors_simple.csv"),
    )
    backward = run_files(
        ("sensors", "test_sensors_simple.csv"),
        ("locations", "test_locations.csv"),
    )
    assert set(forward.locations) == set(backward.locations)
    assert set(forward.sensors) == set(backward.sensors)


def test_versioned_sensors_work():
    data = run_files(("sensors", "test_sensors_versioned.csv")).data()
    loc1 = data["locations"][0]

    assert len(data["locations"]) == 1
    assert len(loc1["systems"]) == 1
    sensors = loc1["systems"][0]["sensors"]
    assert [s["sensor_id"] for s in sensors] == [
        "testing-test_site_1-co:20240101",
        "testing-test_site_1-co:20240201",
    ]


def test_sensor_instances_work():
    data = run_files(("sensors", "test_sensor_instances.csv")).data()
    loc1 = data["locations"][0]

    assert len(loc1["systems"]) == 1
    assert len(loc1["systems"][0]["sensors"]) == 2


def test_flags_attach_to_known_sensors():
    client = run_files(
        ("sensors", "test_sensors_simple.csv"),
        ("flags", "test_flags.csv"),
    )
    sensor = client.sensors["testing-test_site_2-co"]
    flag = sensor.json()["flags"][0]

    assert flag["flag_id"] == "testing-test_site_2-co-maintenance::2024-01-01"
    assert flag["datetime_to"] == "2024-01-02"
    assert flag["note"] == "filter change"
    assert client.summary()["flags"] == 1
    assert client.summary()["errors"]["FLAG_ERROR"] == 1


def test_processor_stores_data_and_returns_summary(monkeypatch):
    stored = {}

    def fake_put(provider, data, config, key=None):
        stored.update(provider=provider, data=data, key=key)
        return True

    monkeypatch.setattr(generic, "put_measures_json", fake_put)

    source = {
        **SOURCE,
        "files": [
            {"type": "locations", "path": str(DATA_DIR / "test_locations.csv")},
            {"type": "measurements", "path": str(DATA_DIR / "does_not_exist.csv")},
            {"type": "measurements", "data": "location,datetime,co\nTest Site 2,2024-01-01 00:00:00,1000\n"},
        ],
    }
    summary = generic.processor(source, FetcherConfig(bucket="b"))

    assert summary["source_name"] == "testing"
    assert summary["locations"] == 2
    assert summary["measures"] == 1
    assert summary["errors"]["FILE_ERROR"] == 1
    assert stored["provider"] == "testing"
    assert stored["data"]["measures"][0] == {
        "sensor_id": "testing-test_site_2-co",
        "measure": 1.0,
        "timestamp": "2024-01-01T00:00:00Z",
    }


def test_source_timezone_is_applied():
    source = {**SOURCE, "meta": {**SOURCE["meta"], "timezone": "America/New_York"}}
    client = generic.Client(source)
    assert client.get_datetime({"datetime": "2024-01-01 00:00:00"}) == "2024-01-01T05:00:00Z"
