import pandas as pd

from .errors import DataQualityError, SchemaViolationError
from .vocabularies import FIELD_RULES, NULL_TOKENS


class FieldNormalizer:
    """
    Maps raw categorical values onto closed vocabularies.

    Per column, in order:
      1. strip whitespace, treat NULL_TOKENS as missing
      2. missing -> the column's default (if it has one)
      3. rewrite values found in the column's remap table
      4. every value must now be in the allowed set, otherwise SchemaViolationError

    Columns whose allowed set is None are free text and only get steps 1-2.
    """

    def __init__(self, rules: dict | None = None):
        self.rules = FIELD_RULES if rules is None else rules

    def normalize(self, df: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in self.rules if c not in df.columns]
        if missing:
            raise DataQualityError(f"Missing categorical columns: {missing}")

        out = df.copy()
        for column, (allowed, default, remap) in self.rules.items():
            out[column] = self.normalize_column(out[column], allowed, default, remap)
        return out

    @staticmethod
    def normalize_column(series: pd.Series, allowed, default, remap) -> pd.Series:
        values = series.astype("string").str.strip()
        values = values.mask(values.isin(NULL_TOKENS))

        if default is not None:
            values = values.fillna(default)
        if remap:
            values = values.replace(remap)

        if allowed is not None:
            bad = values.isna() | ~values.isin(allowed)
            if bad.any():
                index = bad.idxmax()
                value = values.loc[index]
                raise SchemaViolationError(
                    series.name, None if pd.isna(value) else str(value), index
                )

        return values.astype(object)

    def check(self, df: pd.DataFrame) -> None:
        """Raise if any closed column holds a value outside its vocabulary."""
        for column, (allowed, _, _) in self.rules.items():
            if allowed is None:
                continue
            bad = ~df[column].isin(allowed)
            if bad.any():
                index = bad.idxmax()
                raise SchemaViolationError(column, df.at[index, column], index)
