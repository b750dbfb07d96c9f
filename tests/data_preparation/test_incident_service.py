"""
Tests for shooting incident ingestion: jurisdiction filter, normalization,
time buckets and the processed-file cache.
"""

import pandas as pd
import pytest

from data_preparation.data_services.incident_service import IncidentService
from data_preparation.errors import SchemaViolationError


def _raw():
    return pd.DataFrame(
        {
            "INCIDENT_KEY": ["1", "2", "3", "4"],
            "OCCUR_DATE": ["01/01/2020", "06/15/2020", "07/04/2021", "12/31/2021"],
            "OCCUR_TIME": ["23:15:00", "02:30:00", "12:00:00", "00:05:00"],
            "BORO": ["BRONX", "BROOKLYN", "QUEENS", "MANHATTAN"],
            "JURISDICTION_CODE": ["0", "2", None, "1.0"],
            "LOCATION_DESC": [None, "(null)", "MULTI DWELL - PUBLIC HOUS", "BAR/NIGHT CLUB"],
            "PERP_AGE_GROUP": ["224", None, "18-24", "UNKNOWN"],
            "PERP_SEX": [None, "M", "M", "U"],
            "PERP_RACE": ["(null)", "BLACK", "WHITE", None],
            "VIC_AGE_GROUP": ["25-44", "<18", "45-64", "65+"],
            "VIC_SEX": ["M", "F", "M", "F"],
            "VIC_RACE": ["BLACK", "WHITE HISPANIC", "ASIAN / PACIFIC ISLANDER", "BLACK HISPANIC"],
        }
    )


def test_records_without_jurisdiction_are_dropped():
    service = IncidentService(raw=_raw())
    data = service.get_data()

    assert service.dropped_no_jurisdiction == 1
    assert len(data) == 3
    assert "3" not in data["INCIDENT_KEY"].tolist()
    assert data["JURISDICTION"].tolist() == ["Patrol", "Housing", "Transit"]


def test_time_buckets():
    data = IncidentService(raw=_raw()).get_data()

    first = data.iloc[0]
    assert first["year"] == 2020
    assert first["month"] == 1
    assert first["day_of_week"] == 2  # 2020-01-01 was a Wednesday
    assert first["hour"] == 23
    assert data["year"].tolist() == [2020, 2020, 2021]


def test_categorical_defaults_applied():
    data = IncidentService(raw=_raw()).get_data()

    assert data.loc[0, "LOCATION_DESC"] == "NONE"
    assert data.loc[1, "LOCATION_DESC"] == "NONE"
    assert data.loc[0, "PERP_AGE_GROUP"] == "UNKNOWN"
    assert data.loc[0, "PERP_SEX"] == "U"
    assert data.loc[0, "PERP_RACE"] == "UNKNOWN"


def test_unknown_jurisdiction_code_is_a_schema_violation():
    raw = _raw()
    raw.loc[0, "JURISDICTION_CODE"] = "7"
    with pytest.raises(SchemaViolationError) as excinfo:
        IncidentService(raw=raw)
    assert excinfo.value.field == "JURISDICTION_CODE"


def test_raw_frame_is_left_alone():
    raw = _raw()
    before = raw.copy()
    IncidentService(raw=raw)
    pd.testing.assert_frame_equal(raw, before)


def test_processed_file_is_cached(tmp_path):
    raw_path = tmp_path / "incidents.csv"
    processed_path = tmp_path / "processed" / "incidents.csv"
    _raw().to_csv(raw_path, index=False)

    first = IncidentService(raw_path=raw_path, processed_path=processed_path).get_data()
    assert processed_path.exists()

    # raw file gone: the second load must come from the cache
    raw_path.unlink()
    second = IncidentService(raw_path=raw_path, processed_path=processed_path).get_data()

    assert len(second) == len(first)
    assert second["occurred_at"].tolist() == first["occurred_at"].tolist()
    assert second["VIC_RACE"].tolist() == first["VIC_RACE"].tolist()


def test_missing_raw_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        IncidentService(raw_path=tmp_path / "nope.csv", processed_path=tmp_path / "p.csv")


def test_drop_count_survives_a_cached_load(tmp_path):
    raw_path = tmp_path / "incidents.csv"
    processed_path = tmp_path / "incidents_processed.csv"
    _raw().to_csv(raw_path, index=False)

    IncidentService(raw_path=raw_path, processed_path=processed_path)
    cached = IncidentService(raw_path=raw_path, processed_path=processed_path)

    assert cached.dropped_no_jurisdiction == 1


def test_other_input_file_is_not_served_from_cache(tmp_path):
    processed_path = tmp_path / "incidents_processed.csv"
    _raw().to_csv(tmp_path / "a.csv", index=False)
    _raw().iloc[:2].to_csv(tmp_path / "b.csv", index=False)

    first = IncidentService(raw_path=tmp_path / "a.csv", processed_path=processed_path).get_data()
    second = IncidentService(raw_path=tmp_path / "b.csv", processed_path=processed_path).get_data()

    assert first["INCIDENT_KEY"].tolist() == ["1", "2", "4"]
    assert second["INCIDENT_KEY"].tolist() == ["1", "2"]


def test_processed_file_without_source_record_is_rebuilt(tmp_path):
    raw_path = tmp_path / "incidents.csv"
    processed_path = tmp_path / "incidents_processed.csv"
    _raw().to_csv(raw_path, index=False)
    pd.DataFrame({"INCIDENT_KEY": ["stale"]}).to_csv(processed_path, index=False)

    data = IncidentService(raw_path=raw_path, processed_path=processed_path).get_data()

    assert "stale" not in data["INCIDENT_KEY"].tolist()
    assert len(data) == 3
