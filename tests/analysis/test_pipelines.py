"""
End-to-end runs of the incident and county pipelines on synthetic tables.
"""

import math

import numpy as np
import pandas as pd
import pytest

from analysis.pipelines import fitted_curve, run_county_pipeline, run_incident_pipeline
from analysis.seasonal_analysis import sinusoid
from data_preparation.data_join.data_joiner import NULL_REQUIRED_VALUE, PLACEHOLDER
from data_preparation.errors import UnmatchedFractionError
from data_preparation.vocabularies import AGE_GROUPS, BOROUGHS, DEMOGRAPHIC_COLUMNS, RACES, SEXES

MONTH_AMPLITUDE, MONTH_PHASE = 0.02, -1.4
WEEKDAY_AMPLITUDE, WEEKDAY_PHASE = 0.03, 0.6


def _counts(probabilities, total):
    counts = np.round(np.asarray(probabilities) * total).astype(int)
    counts[-1] += total - counts.sum()
    return counts


def synthetic_incidents(per_year=2400, years=(2019, 2020, 2021)):
    rng = np.random.default_rng(5)
    month_p = sinusoid(np.arange(1, 13), MONTH_AMPLITUDE, MONTH_PHASE, 1 / 12, 12)
    weekday_p = sinusoid(np.arange(7), WEEKDAY_AMPLITUDE, WEEKDAY_PHASE, 1 / 7, 7)

    frames = []
    for year in years:
        months = np.repeat(np.arange(1, 13), _counts(month_p, per_year))
        weekdays = rng.permutation(np.repeat(np.arange(7), _counts(weekday_p, per_year)))
        i = np.arange(per_year)
        frames.append(
            pd.DataFrame(
                {
                    "year": year,
                    "month": months,
                    "day_of_week": weekdays,
                    "hour": i % 24,
                    "BORO": [BOROUGHS[k % len(BOROUGHS)] for k in i],
                    "VIC_SEX": [SEXES[k % len(SEXES)] for k in i],
                    "VIC_RACE": [RACES[k % len(RACES)] for k in i],
                    "VIC_AGE_GROUP": [AGE_GROUPS[k % len(AGE_GROUPS)] for k in i],
                    "PERP_SEX": [SEXES[(k + 1) % len(SEXES)] for k in i],
                    "PERP_RACE": [RACES[(k + 2) % len(RACES)] for k in i],
                    "PERP_AGE_GROUP": [AGE_GROUPS[(k + 3) % len(AGE_GROUPS)] for k in i],
                }
            )
        )
    return pd.concat(frames, ignore_index=True)


def test_incident_pipeline_recovers_cycles():
    incidents = synthetic_incidents()
    temperature = pd.DataFrame({"month": range(1, 13)})
    temperature["temperature"] = 12 + 10 * np.sin(2 * np.pi * temperature["month"] / 12 + MONTH_PHASE)

    results = run_incident_pipeline(incidents, temperature)

    month = results.fits["month"]
    assert month.amplitude == pytest.approx(MONTH_AMPLITUDE, rel=0.05)
    assert month.phase == pytest.approx(MONTH_PHASE, abs=0.05)
    assert month.offset == pytest.approx(1 / 12, abs=1e-3)

    weekday = results.fits["day_of_week"]
    assert weekday.amplitude == pytest.approx(WEEKDAY_AMPLITUDE, rel=0.05)
    assert weekday.phase == pytest.approx(WEEKDAY_PHASE, abs=0.05)

    assert results.temperature_alignment.correlation > 0.99
    assert set(results.fit_table()["bucket"]) == {"month", "day_of_week"}


def test_incident_pipeline_fractions_partition():
    results = run_incident_pipeline(synthetic_incidents())

    for bucket, table in results.bucket_fractions.items():
        sums = table.groupby("year")["fraction"].sum()
        assert np.allclose(sums, 1.0, atol=1e-9), bucket

    demographics = results.demographic_fractions
    assert set(demographics["dimension"]) == {"BORO", *DEMOGRAPHIC_COLUMNS}
    sums = demographics.groupby(["dimension", "year"])["fraction"].sum()
    assert np.allclose(sums, 1.0, atol=1e-9)
    assert results.temperature_alignment is None


def test_fitted_curve_covers_cycle():
    results = run_incident_pipeline(synthetic_incidents())
    curve = fitted_curve(results.fits["day_of_week"])
    assert curve["position"].tolist() == list(range(7))
    assert curve["fitted"].sum() == pytest.approx(1.0, abs=1e-3)


def county_tables(n=30):
    rng = np.random.default_rng(2)
    fips = [f"01{2 * k + 1:03d}" for k in range(n)]
    population = rng.integers(10_000, 200_000, size=n)
    poverty_rate = rng.uniform(0.08, 0.3, size=n)
    income = 70_000 - 60_000 * poverty_rate + rng.normal(0, 3_000, size=n)
    case_rate = 0.05 + 0.2 * poverty_rate + rng.normal(0, 0.01, size=n)

    cases = pd.DataFrame(
        {
            "date": "2021-06-01",
            "county": [f"County {k}" for k in range(n)],
            "state": "Alabama",
            "fips": fips,
            "cases": np.round(case_rate * population).astype(int),
        }
    )
    cases["deaths"] = np.round(cases["cases"] * rng.uniform(0.01, 0.02, size=n)).astype(int)
    extra = pd.DataFrame(
        [
            ["2021-06-01", "Kusilvak Census Area", "Alaska", "02158", 900, 4],
            ["2021-06-01", "Unknown", "Alabama", None, 5, 0],
        ],
        columns=cases.columns,
    )
    cases = pd.concat([cases, extra], ignore_index=True)

    economic = pd.DataFrame(
        {
            "fips": fips + ["02158"],
            "state_abbr": ["AL"] * n + ["AK"],
            "name": [f"County {k}" for k in range(n)] + ["Kusilvak Census Area"],
            "poverty_count": pd.array(list(np.round(poverty_rate * population).astype(int)) + [None], dtype="Int64"),
            "median_income": list(income) + [np.nan],
        }
    )
    populations = pd.DataFrame(
        {
            "fips": fips + ["02158"],
            "state_name": ["Alabama"] * n + ["Alaska"],
            "county_name": [f"County {k}" for k in range(n)] + ["Kusilvak Census Area"],
            "population": pd.array(list(population) + [8314], dtype="Int64"),
        }
    )
    return cases, economic, populations


def test_county_pipeline_end_to_end():
    cases, economic, population = county_tables()
    null_report = economic[economic["poverty_count"].isna()].assign(known=True, flag="null_economic_value")

    results = run_county_pipeline(cases, economic, population, null_report=null_report)

    assert len(results.metrics) == 30
    assert "02158" not in results.metrics["fips"].tolist()
    assert results.null_report["fips"].tolist() == ["02158"]

    exclusions = results.join.exclusions
    kusilvak = exclusions[exclusions["key"] == "02158"]
    assert kusilvak["category"].tolist() == [NULL_REQUIRED_VALUE]
    unknown = exclusions[exclusions["label"] == "Unknown"]
    assert set(unknown["category"]) == {PLACEHOLDER}

    assert results.simple_fits["slope"].notna().all()
    assert len(results.simple_fits) == 4
    assert len(results.robustness) == 4
    assert len(results.coefficient_table()) == 4
    assert results.correlations.shape == (4, 4)

    poverty = results.simple_fits[
        (results.simple_fits["response"] == "cases_per_capita")
        & (results.simple_fits["predictor"] == "poverty_per_capita")
    ]
    assert poverty["slope"].iloc[0] == pytest.approx(0.2, rel=0.5)


def test_county_pipeline_stops_on_large_unmatched_share():
    cases, economic, population = county_tables()
    nyc = pd.DataFrame(
        [["2021-06-01", "New York City", "New York", None, 10**7, 10]], columns=cases.columns
    )
    cases = pd.concat([cases, nyc], ignore_index=True)

    with pytest.raises(UnmatchedFractionError):
        run_county_pipeline(cases, economic, population)

    results = run_county_pipeline(cases, economic, population, threshold=1.0)
    assert len(results.metrics) == 30
    assert math.isclose(results.join.unmatched_fraction, (10**7 + 5) / cases["cases"].sum())
