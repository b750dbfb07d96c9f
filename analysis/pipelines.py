"""
The two batch pipelines. Each stage takes the previous stage's table and
returns a new one; nothing here writes to disk.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from analysis import metrics
from analysis.seasonal_analysis import CovariateAlignment, PeriodicFit, align_covariate, fit_periodic
from data_preparation import config
from data_preparation.data_join.data_joiner import DataJoiner, JoinResult, validate_county_dataset
from data_preparation.vocabularies import DEMOGRAPHIC_COLUMNS
from model.regression import (
    MultipleFit,
    correlation_matrix,
    fit_multiple,
    fit_simple,
    fit_zscored,
    slope_robustness,
)

CYCLES = {
    "month": (config.MONTH_CYCLE, config.MONTH_GUESS),
    "day_of_week": (config.WEEKDAY_CYCLE, config.WEEKDAY_GUESS),
}


@dataclass(frozen=True)
class IncidentResults:
    incidents: pd.DataFrame
    bucket_fractions: dict
    demographic_fractions: pd.DataFrame
    fits: dict
    temperature_alignment: CovariateAlignment | None = None

    def fit_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"bucket": name, **fit.as_record()} for name, fit in self.fits.items()]
        )


def run_incident_pipeline(
    incidents: pd.DataFrame,
    temperature: pd.DataFrame | None = None,
    cycles: dict | None = None,
    group_key: str = "year",
) -> IncidentResults:
    """
    incidents: normalized records with year/month/day_of_week/hour columns
    (IncidentService output). temperature: optional 12-row month/temperature
    table aligned onto the fitted monthly curve.
    """
    cycles = CYCLES if cycles is None else cycles

    buckets = {}
    for bucket in ["month", "day_of_week", "hour"]:
        buckets[bucket] = metrics.bucket_fractions(incidents, bucket, group_key)

    demographics = metrics.demographic_fractions(incidents, ["BORO"] + DEMOGRAPHIC_COLUMNS, group_key)

    fits = {}
    for bucket, (cycle_length, guess) in cycles.items():
        averaged = metrics.mean_fraction_by_position(buckets[bucket], bucket)
        print(f"Fitting {bucket} cycle (L={cycle_length}) on {len(averaged)} positions")
        fits[bucket] = fit_periodic(averaged["position"], averaged["fraction"], cycle_length, guess)

    alignment = None
    if temperature is not None and "month" in fits:
        curve = fits["month"].predict(temperature["month"])
        alignment = align_covariate(temperature["temperature"], curve)

    return IncidentResults(
        incidents=incidents,
        bucket_fractions=buckets,
        demographic_fractions=demographics,
        fits=fits,
        temperature_alignment=alignment,
    )


@dataclass(frozen=True)
class CountyResults:
    join: JoinResult
    metrics: pd.DataFrame
    null_report: pd.DataFrame
    simple_fits: pd.DataFrame
    multiple_fit: MultipleFit
    zscored_fit: MultipleFit
    correlations: pd.DataFrame
    robustness: pd.DataFrame
    notes: list = field(default_factory=list)

    def coefficient_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.multiple_fit.as_records("multiple") + self.zscored_fit.as_records("zscored")
        )


PER_CAPITA = {
    "cases_per_capita": "cases",
    "deaths_per_capita": "deaths",
    "poverty_per_capita": "poverty_count",
}
PREDICTORS = ["poverty_per_capita", "median_income"]
RESPONSES = ["cases_per_capita", "deaths_per_capita"]


def run_county_pipeline(
    cases: pd.DataFrame,
    economic: pd.DataFrame,
    population: pd.DataFrame,
    null_report: pd.DataFrame | None = None,
    threshold: float = config.UNMATCHED_FRACTION_THRESHOLD,
    aggregated_units: dict | None = None,
    trim_quantiles=config.TRIM_QUANTILES,
    tolerance: float = config.SLOPE_RELATIVE_TOLERANCE,
) -> CountyResults:
    """
    cases: CovidService snapshot; economic: EconomicService table (nulls are
    allowed and end up in the exclusion report); population: PopulationService
    table. null_report is carried through unchanged for the audit output.
    """
    joiner = DataJoiner(
        cases,
        {"economic": economic, "population": population},
        key="fips",
        metric="cases",
        label="county",
        primary_name="cases",
        threshold=threshold,
        aggregated_units=aggregated_units,
        population="population",
        required=["poverty_count", "median_income"],
    )
    joined = joiner.build()

    table = metrics.add_per_capita(joined.data, PER_CAPITA, population="population")
    metrics.assert_finite(table, list(PER_CAPITA))
    validate_county_dataset(table, numeric_columns=config.COUNTY_METRIC_COLUMNS)

    simple, robustness = [], []
    for response in RESPONSES:
        for predictor in PREDICTORS:
            simple.append(fit_simple(table, predictor, response).as_record())
            robustness.append(
                slope_robustness(table, predictor, response, trim_quantiles, tolerance)
            )

    notes = [
        f"{r['response']} ~ {r['predictor']}: slope moves {r['relative_change']:.1%} after trimming"
        for r in robustness
        if not r["robust"]
    ]
    for note in notes:
        print(f"Warning: {note}")

    return CountyResults(
        join=joined,
        metrics=table,
        null_report=null_report if null_report is not None else pd.DataFrame(),
        simple_fits=pd.DataFrame(simple),
        multiple_fit=fit_multiple(table, PREDICTORS, "cases_per_capita"),
        zscored_fit=fit_zscored(table, PREDICTORS, "cases_per_capita"),
        correlations=correlation_matrix(table, config.COUNTY_METRIC_COLUMNS),
        robustness=pd.DataFrame(robustness),
        notes=notes,
    )


def fitted_curve(fit: PeriodicFit, positions=None) -> pd.DataFrame:
    positions = np.arange(fit.cycle_length) if positions is None else np.asarray(positions)
    return pd.DataFrame({"position": positions, "fitted": fit.predict(positions)})
