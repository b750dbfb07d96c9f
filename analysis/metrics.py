import numpy as np
import pandas as pd

from data_preparation.errors import DataQualityError, NumericDegeneracyError

PARTITION_TOLERANCE = 1e-9


def per_capita(values: pd.Series, population: pd.Series) -> pd.Series:
    """
    values / population for rows that have already been screened for a usable
    population. Any row with a missing or non-positive population, or a
    missing value, is a caller error rather than an Infinity or NaN.
    """
    population = pd.to_numeric(population, errors="coerce")
    values = pd.to_numeric(values, errors="coerce")

    bad_population = population.isna() | (population <= 0)
    if bad_population.any():
        raise NumericDegeneracyError(
            population.name or "population",
            f"{int(bad_population.sum())} rows have a missing or non-positive population",
        )
    if values.isna().any():
        raise NumericDegeneracyError(
            values.name or "value", f"{int(values.isna().sum())} rows have no value"
        )

    return values.astype(float) / population.astype(float)


def add_per_capita(df: pd.DataFrame, columns: dict, population: str = "population") -> pd.DataFrame:
    """columns maps output name -> count column, e.g. {"cases_per_capita": "cases"}."""
    out = df.copy()
    for name, source in columns.items():
        out[name] = per_capita(out[source], out[population])
    return out


def fraction_of_total(
    df: pd.DataFrame,
    group_keys: list,
    categories: list,
    weight: str | None = None,
) -> pd.DataFrame:
    """
    Count (or weight sum) per group_keys x categories, divided by the total
    for the same group_keys.

    >>> fraction_of_total(incidents, ["year"], ["VIC_SEX"])
       year VIC_SEX  count  total  fraction
    """
    group_keys, categories = list(group_keys), list(categories)
    if weight is None:
        counts = df.groupby(group_keys + categories).size().reset_index(name="count")
        totals = df.groupby(group_keys).size().reset_index(name="total")
    else:
        counts = df.groupby(group_keys + categories)[weight].sum().reset_index(name="count")
        totals = df.groupby(group_keys)[weight].sum().reset_index(name="total")

    out = counts.merge(totals, on=group_keys, how="left", validate="many_to_one")
    out["fraction"] = out["count"] / out["total"]
    return out.sort_values(group_keys + categories).reset_index(drop=True)


def check_partition(fractions: pd.DataFrame, group_keys: list, tolerance: float = PARTITION_TOLERANCE) -> None:
    sums = fractions.groupby(list(group_keys))["fraction"].sum()
    off = sums[(sums - 1.0).abs() > tolerance]
    if not off.empty:
        raise DataQualityError(f"Fractions do not sum to 1 for groups:\n{off}")


def bucket_fractions(incidents: pd.DataFrame, bucket: str, group_key: str = "year") -> pd.DataFrame:
    """Fraction of each year's incidents falling in each month / weekday / hour."""
    fractions = fraction_of_total(incidents, [group_key], [bucket])
    check_partition(fractions, [group_key])
    return fractions


def demographic_fractions(incidents: pd.DataFrame, columns: list, group_key: str = "year") -> pd.DataFrame:
    """One long table: dimension, category, year, count, total, fraction."""
    frames = []
    for column in columns:
        fractions = fraction_of_total(incidents, [group_key], [column])
        check_partition(fractions, [group_key])
        fractions = fractions.rename(columns={column: "category"})
        fractions.insert(0, "dimension", column)
        frames.append(fractions)
    return pd.concat(frames, ignore_index=True)


def mean_fraction_by_position(fractions: pd.DataFrame, bucket: str) -> pd.DataFrame:
    """Average each bucket's fraction across years, the input to the seasonal fit."""
    return (
        fractions.groupby(bucket)["fraction"]
        .mean()
        .reset_index()
        .rename(columns={bucket: "position"})
    )


def trim_percentiles(df: pd.DataFrame, column: str, low: float, high: float) -> pd.DataFrame:
    """Keep rows with quantile(low) <= value < quantile(high)."""
    if not 0 <= low < high <= 1:
        raise ValueError(f"Need 0 <= low < high <= 1, got ({low}, {high})")
    values = pd.to_numeric(df[column], errors="coerce")
    lower, upper = values.quantile([low, high])
    keep = (values >= lower) & (values < upper)
    return df[keep].copy()


def assert_finite(df: pd.DataFrame, columns: list) -> None:
    values = df[columns].astype(float).to_numpy()
    if not np.isfinite(values).all():
        raise NumericDegeneracyError(", ".join(columns), "non-finite values in output")
