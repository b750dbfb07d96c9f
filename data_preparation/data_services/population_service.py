import pandas as pd
from pathlib import Path

from .. import config
from ..errors import DataQualityError
from ..fips import fips_series_from_parts
from . import processed_cache

COUNTY_SUMMARY_LEVEL = 50


class PopulationService:
    """
    County population estimates. The census file mixes nation, state and
    county rows whose codes overlap, so only SUMLEV 50 rows are kept.
    """

    RAW_PATH = config.POPULATION_RAW_PATH
    PROCESSED_PATH = config.PROCESSED_DIR / "population_counties.csv"

    def __init__(
        self,
        raw: pd.DataFrame | None = None,
        raw_path: Path | None = None,
        processed_path: Path | None = None,
        estimate_column: str = config.POPULATION_ESTIMATE_COLUMN,
    ):
        self.raw_path = Path(raw_path) if raw_path else self.RAW_PATH
        self.processed_path = Path(processed_path) if processed_path else self.PROCESSED_PATH
        self.estimate_column = estimate_column
        self.data: pd.DataFrame = pd.DataFrame()

        if raw is not None:
            self.data = self.prepare(raw, estimate_column)
        else:
            self.__load()

    def __load(self):
        signature = processed_cache.source_signature(
            self.raw_path, estimate_column=self.estimate_column
        )
        if processed_cache.is_fresh(self.processed_path, signature):
            print(f"Loading from cached file {self.processed_path}")
            self.data = pd.read_csv(self.processed_path, dtype={"fips": str})
            return

        if not self.raw_path.exists():
            raise FileNotFoundError(f"{self.raw_path} does not exist.")

        print(f"Processing population estimates from raw data: {self.raw_path}")
        raw = pd.read_csv(self.raw_path, encoding="latin-1", dtype={"STATE": str, "COUNTY": str})
        self.data = self.prepare(raw, self.estimate_column)

        processed_cache.write(self.processed_path, self.data, signature)

    @staticmethod
    def prepare(raw: pd.DataFrame, estimate_column: str = config.POPULATION_ESTIMATE_COLUMN) -> pd.DataFrame:
        required = ["SUMLEV", "STATE", "COUNTY", "STNAME", "CTYNAME", estimate_column]
        missing = [c for c in required if c not in raw.columns]
        if missing:
            raise DataQualityError(f"Population data is missing columns: {missing}")

        df = raw[required].copy()
        df = df[pd.to_numeric(df["SUMLEV"], errors="coerce") == COUNTY_SUMMARY_LEVEL].copy()

        df["fips"] = fips_series_from_parts(df["STATE"], df["COUNTY"])
        df["population"] = pd.to_numeric(df[estimate_column], errors="coerce").astype("Int64")
        df = df.rename(columns={"STNAME": "state_name", "CTYNAME": "county_name"})

        return df[["fips", "state_name", "county_name", "population"]].reset_index(drop=True)

    def get_data(self) -> pd.DataFrame:
        if self.data.empty:
            raise RuntimeError("Population data not loaded.")
        return self.data.copy()
