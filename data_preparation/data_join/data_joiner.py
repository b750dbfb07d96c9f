from dataclasses import dataclass

import numpy as np
import pandas as pd

from .. import config
from ..errors import DataQualityError, JoinKeyAmbiguityError, UnmatchedFractionError
from ..fips import FIPS_WIDTH, state_part

# Categories for primary rows missing from a reference table
PLACEHOLDER = "non_geographic_placeholder"
MISSING_KEY = "missing_key"
AGGREGATED = "aggregates_multiple_reference_units"
OUTSIDE_COVERAGE = "outside_reference_coverage"
UNCLASSIFIED = "unclassified"

# Categories for reference rows missing from the primary table
COVERED_BY_AGGREGATE = "covered_by_primary_aggregate"
ABSENT_FROM_PRIMARY = "absent_from_primary"

POPULATION_UNAVAILABLE = "population_unavailable"
NULL_REQUIRED_VALUE = "null_required_value"

# State codes from 80 up are used for "out of state" / "unassigned" buckets
FIRST_PLACEHOLDER_STATE = 80

EXCLUSION_COLUMNS = [
    "table",
    "direction",
    "key",
    "label",
    "category",
    "metric_value",
    "metric_fraction",
]


@dataclass(frozen=True)
class JoinResult:
    data: pd.DataFrame
    exclusions: pd.DataFrame
    unmatched_fraction: float

    def summary(self) -> pd.DataFrame:
        if self.exclusions.empty:
            return pd.DataFrame(
                columns=["table", "direction", "category", "records", "metric_value", "metric_fraction"]
            )
        return (
            self.exclusions.groupby(["table", "direction", "category"])
            .agg(
                records=("key", "size"),
                metric_value=("metric_value", "sum"),
                metric_fraction=("metric_fraction", "sum"),
            )
            .reset_index()
        )


class DataJoiner:
    """
    Inner-joins a primary county table against reference tables on a FIPS key.

    Before joining, every primary row missing from a reference table (and
    every reference row missing from the primary) is recorded and classified,
    and the share of the primary metric those rows carry is measured. The
    join only goes ahead when that share is at most `threshold`. Duplicate
    keys on either side stop the run.
    """

    def __init__(
        self,
        primary: pd.DataFrame,
        references: dict,
        key: str = "fips",
        metric: str = "cases",
        label: str | None = "county",
        primary_name: str = "primary",
        threshold: float = config.UNMATCHED_FRACTION_THRESHOLD,
        aggregated_units: dict | None = None,
        placeholder_names=config.PLACEHOLDER_COUNTY_NAMES,
        population: str | None = "population",
        required=(),
    ):
        if not references:
            raise ValueError("At least one reference table is required")
        if not 0 <= threshold <= 1:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")

        self.primary = primary
        self.references = dict(references)
        self.key = key
        self.metric = metric
        self.label = label
        self.primary_name = primary_name
        self.threshold = threshold
        self.aggregated_units = config.AGGREGATED_UNITS if aggregated_units is None else aggregated_units
        self.placeholder_names = frozenset(placeholder_names)
        self.population = population
        self.required = list(required)

        for name, df in [(primary_name, primary), *self.references.items()]:
            if key not in df.columns:
                raise DataQualityError(f"Table {name!r} has no {key!r} column")
        if metric not in primary.columns:
            raise DataQualityError(f"Table {primary_name!r} has no {metric!r} column")

    def build(self) -> JoinResult:
        print("Validating join keys...")
        validate_unique_keys(self.primary, self.key, self.primary_name, allow_missing=True)
        for name, df in self.references.items():
            validate_unique_keys(df, self.key, name, allow_missing=False)

        total = float(self.primary[self.metric].sum())
        records = []
        unmatched_index = set()

        for name, ref in self.references.items():
            ref_keys = set(ref[self.key])
            ref_states = {state_part(k) for k in ref_keys}

            lost = self.primary[~self.primary[self.key].isin(ref_keys) | self.primary[self.key].isna()]
            unmatched_index.update(lost.index)
            for _, row in lost.iterrows():
                value = float(row[self.metric])
                records.append(
                    {
                        "table": name,
                        "direction": f"{self.primary_name}_only",
                        "key": row[self.key],
                        "label": row[self.label] if self.label in row else None,
                        "category": self.classify_primary(row, ref_states),
                        "metric_value": value,
                        "metric_fraction": value / total if total else 0.0,
                    }
                )

            primary_keys = set(self.primary[self.key].dropna())
            orphans = ref[~ref[self.key].isin(primary_keys)]
            for key in orphans[self.key]:
                records.append(
                    {
                        "table": name,
                        "direction": f"{name}_only",
                        "key": key,
                        "label": None,
                        "category": self.classify_reference(key),
                        "metric_value": 0.0,
                        "metric_fraction": 0.0,
                    }
                )

        lost_metric = float(self.primary.loc[list(unmatched_index), self.metric].sum())
        unmatched_fraction = lost_metric / total if total else 0.0
        print(
            f"{len(unmatched_index)} {self.primary_name} rows unmatched, "
            f"{unmatched_fraction:.3%} of total {self.metric}"
        )
        if unmatched_fraction > self.threshold:
            worst = max(
                self.references,
                key=lambda n: sum(
                    r["metric_value"]
                    for r in records
                    if r["table"] == n and r["direction"] == f"{self.primary_name}_only"
                ),
            )
            raise UnmatchedFractionError(worst, unmatched_fraction, self.threshold)

        print("Merging all datasets...")
        merged = self.primary.dropna(subset=[self.key])
        for name, ref in self.references.items():
            merged = merged.merge(
                ref,
                on=self.key,
                how="inner",
                validate="one_to_one",
                suffixes=("", f"_{name}"),
            )

        screens = []
        if self.population is not None:
            screens.append((POPULATION_UNAVAILABLE, self.split_population_available))
        if self.required:
            screens.append((NULL_REQUIRED_VALUE, self.split_required_present))

        for category, split in screens:
            merged, dropped = split(merged)
            for _, row in dropped.iterrows():
                value = float(row[self.metric])
                records.append(
                    {
                        "table": "joined",
                        "direction": "joined",
                        "key": row[self.key],
                        "label": row[self.label] if self.label in row else None,
                        "category": category,
                        "metric_value": value,
                        "metric_fraction": value / total if total else 0.0,
                    }
                )

        exclusions = pd.DataFrame(records, columns=EXCLUSION_COLUMNS)
        print(f"Joined {len(merged)} rows, {len(exclusions)} exclusions recorded.")
        return JoinResult(merged.reset_index(drop=True), exclusions, unmatched_fraction)

    def classify_primary(self, row, ref_states: set) -> str:
        key = row[self.key]
        label = row[self.label] if self.label in row else None

        if label in self.aggregated_units:
            return AGGREGATED
        if key is None or pd.isna(key):
            if label in self.placeholder_names:
                return PLACEHOLDER
            return MISSING_KEY
        if int(state_part(key)) >= FIRST_PLACEHOLDER_STATE:
            return PLACEHOLDER
        if state_part(key) not in ref_states:
            return OUTSIDE_COVERAGE
        return UNCLASSIFIED

    def classify_reference(self, key) -> str:
        for members in self.aggregated_units.values():
            if key in members:
                return COVERED_BY_AGGREGATE
        return ABSENT_FROM_PRIMARY

    def split_population_available(self, df: pd.DataFrame):
        population = pd.to_numeric(df[self.population], errors="coerce")
        ok = population.notna() & (population > 0)
        return df[ok].copy(), df[~ok].copy()

    def split_required_present(self, df: pd.DataFrame):
        ok = df[self.required].notna().all(axis=1)
        return df[ok].copy(), df[~ok].copy()


def validate_unique_keys(df: pd.DataFrame, key: str, name: str, allow_missing: bool) -> None:
    keys = df[key]
    if keys.isna().any() and not allow_missing:
        raise DataQualityError(f"Table {name!r} has {int(keys.isna().sum())} rows without {key!r}")

    present = keys.dropna()
    bad_width = present[present.astype(str).str.len() != FIPS_WIDTH]
    if not bad_width.empty:
        raise DataQualityError(f"Table {name!r} has malformed keys: {bad_width.head().tolist()}")

    duplicated = present[present.duplicated(keep=False)]
    if not duplicated.empty:
        raise JoinKeyAmbiguityError(name, set(duplicated))


def validate_county_dataset(df: pd.DataFrame, key: str = "fips", numeric_columns=None) -> None:
    """
    Checks a joined county table before it goes to modelling:
    1. unique, well-formed keys
    2. no missing or infinite values in the numeric columns
    """
    validate_unique_keys(df, key, "joined", allow_missing=False)

    columns = numeric_columns or df.select_dtypes(include="number").columns.tolist()
    values = df[columns].apply(pd.to_numeric, errors="coerce").astype(float)
    nulls = values.isna().sum()
    if (nulls > 0).any():
        raise DataQualityError(f"Nulls found in:\n{nulls[nulls > 0]}")
    infinite = np.isinf(values).sum()
    if (infinite > 0).any():
        raise DataQualityError(f"Infinite values found in:\n{infinite[infinite > 0]}")

    print("Dataset validation passed.")
