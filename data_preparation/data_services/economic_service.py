import pandas as pd
from pathlib import Path

from .. import config
from ..errors import DataQualityError
from ..fips import fips_series_from_parts
from . import processed_cache


class EconomicService:
    """
    County poverty counts and median household income from the SAIPE
    spreadsheet. The sheet opens with a title block, so the header sits
    ECONOMIC_HEADER_ROWS rows down. State and national summary rows share the
    file and are removed (county code 0).
    """

    RAW_PATH = config.ECONOMIC_RAW_PATH
    PROCESSED_PATH = config.PROCESSED_DIR / "economic_counties.csv"

    COLUMN_MAP = {
        "State FIPS Code": "state_code",
        "County FIPS Code": "county_code",
        "Postal Code": "state_abbr",
        "Name": "name",
        "Poverty Estimate, All Ages": "poverty_count",
        "Median Household Income": "median_income",
    }

    def __init__(
        self,
        raw: pd.DataFrame | None = None,
        raw_path: Path | None = None,
        processed_path: Path | None = None,
        known_null_fips=config.KNOWN_NULL_ECONOMIC_FIPS,
    ):
        self.raw_path = Path(raw_path) if raw_path else self.RAW_PATH
        self.processed_path = Path(processed_path) if processed_path else self.PROCESSED_PATH
        self.known_null_fips = frozenset(known_null_fips)
        self.data: pd.DataFrame = pd.DataFrame()

        if raw is not None:
            self.data = self.prepare(raw)
        else:
            self.__load()

    def __load(self):
        signature = processed_cache.source_signature(
            self.raw_path, header_rows=config.ECONOMIC_HEADER_ROWS
        )
        if processed_cache.is_fresh(self.processed_path, signature):
            print(f"Loading from cached file {self.processed_path}")
            self.data = pd.read_csv(self.processed_path, dtype={"fips": str})
            return

        if not self.raw_path.exists():
            raise FileNotFoundError(f"{self.raw_path} does not exist.")

        print(f"Processing economic data from raw data: {self.raw_path}")
        raw = pd.read_excel(self.raw_path, skiprows=config.ECONOMIC_HEADER_ROWS)
        self.data = self.prepare(raw)

        processed_cache.write(self.processed_path, self.data, signature)

    @classmethod
    def prepare(cls, raw: pd.DataFrame) -> pd.DataFrame:
        df = raw.copy()
        df.columns = [str(c).strip() for c in df.columns]
        missing = [c for c in cls.COLUMN_MAP if c not in df.columns]
        if missing:
            raise DataQualityError(f"Economic data is missing columns: {missing}")

        df = df[list(cls.COLUMN_MAP)].rename(columns=cls.COLUMN_MAP)
        df = df.dropna(subset=["state_code", "county_code"])
        df["county_code"] = pd.to_numeric(df["county_code"], errors="raise").astype(int)
        df["state_code"] = pd.to_numeric(df["state_code"], errors="raise").astype(int)
        df = df[(df["county_code"] != 0) & (df["state_code"] != 0)].copy()

        df["fips"] = fips_series_from_parts(df["state_code"], df["county_code"])

        # SAIPE writes "." for suppressed estimates
        df["poverty_count"] = pd.to_numeric(df["poverty_count"], errors="coerce").astype("Int64")
        df["median_income"] = pd.to_numeric(df["median_income"], errors="coerce")

        return df[["fips", "state_abbr", "name", "poverty_count", "median_income"]].reset_index(
            drop=True
        )

    def null_report(self) -> pd.DataFrame:
        """
        Counties with a missing poverty count or income, kept for the record.
        More of them than the known set means the source regressed.
        """
        df = self.get_data()
        nulls = df[df["poverty_count"].isna() | df["median_income"].isna()].copy()
        nulls["known"] = nulls["fips"].isin(self.known_null_fips)
        nulls["flag"] = "null_economic_value"

        unexpected = nulls.loc[~nulls["known"], "fips"].tolist()
        if unexpected:
            raise DataQualityError(
                f"{len(unexpected)} counties have unexpected null economic values: {unexpected[:10]}"
            )
        return nulls.reset_index(drop=True)

    def get_data(self) -> pd.DataFrame:
        if self.data.empty:
            raise RuntimeError("Economic data not loaded.")
        return self.data.copy()
