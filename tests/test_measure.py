import datetime as dt

from aq_fetcher.measure import Measure, MeasureKind, Measures, to_iso_timestamp


def test_fixed_csv_has_fixed_header():
    measures = Measures(MeasureKind.FIXED)
    measures.push({"sensor_id": "a-co", "measure": 1.5, "timestamp": "2024-01-01T00:00:00Z"})
    lines = measures.csv().splitlines()
    assert lines[0] == "sensor_id,measure,timestamp"
    assert lines[1] == "a-co,1.5,2024-01-01T00:00:00Z"


def test_mobile_csv_has_position_columns():
    measures = Measures(MeasureKind.MOBILE)
    measures.push(
        Measure(sensor_id="a-co", measure=2.0, timestamp="2024-01-01T00:00:00Z", latitude=1.0, longitude=2.0)
    )
    lines = measures.csv().splitlines()
    assert lines[0] == "sensor_id,measure,timestamp,longitude,latitude"
    assert lines[1] == "a-co,2.0,2024-01-01T00:00:00Z,2.0,1.0"


def test_empty_batch_serializes_header_only():
    assert Measures().csv().strip() == "sensor_id,measure,timestamp"


def test_duplicates_are_kept_in_order():
    measures = Measures()
    for value in (1, 2, 3):
        measures.push({"sensor_id": "a-co", "measure": value, "timestamp": "2024-01-01T00:00:00Z"})
    assert len(measures) == 3
    assert [m["measure"] for m in measures.json()] == [1, 2, 3]


def test_from_and_to_track_the_time_range():
    measures = Measures()
    for ts in ("2024-01-02T00:00:00Z", "2024-01-01T00:00:00Z", "2024-01-03T00:00:00Z"):
        measures.push({"sensor_id": "a-co", "measure": 1, "timestamp": ts})
    assert measures.from_ == "2024-01-01T00:00:00Z"
    assert measures.to == "2024-01-03T00:00:00Z"


def test_datetimes_are_formatted_as_utc():
    naive = dt.datetime(2024, 1, 1, 12, 30)
    offset = dt.datetime(2024, 1, 1, 12, 30, tzinfo=dt.timezone(dt.timedelta(hours=2)))
    assert to_iso_timestamp(naive) == "2024-01-01T12:30:00Z"
    assert to_iso_timestamp(offset) == "2024-01-01T10:30:00Z"
