import pandas as pd
from pathlib import Path

from .. import config
from ..errors import DataQualityError
from ..fips import pad_fips_series
from . import processed_cache


class CovidService:
    """
    Cumulative county case and death counts, one row per county for a single
    snapshot date. Rows without a FIPS code (city aggregates, "Unknown"
    counties) are kept; the joiner decides what they are.
    """

    RAW_PATH = config.COVID_RAW_PATH
    PROCESSED_PATH = config.PROCESSED_DIR / "covid_counties.csv"

    RAW_COLUMNS = ["date", "county", "state", "fips", "cases", "deaths"]

    def __init__(
        self,
        raw: pd.DataFrame | None = None,
        snapshot_date: str | None = None,
        raw_path: Path | None = None,
        processed_path: Path | None = None,
    ):
        self.raw_path = Path(raw_path) if raw_path else self.RAW_PATH
        self.processed_path = Path(processed_path) if processed_path else self.PROCESSED_PATH
        self.snapshot_date = snapshot_date
        self.data: pd.DataFrame = pd.DataFrame()

        if raw is not None:
            self.data = self.snapshot(raw, snapshot_date)
        else:
            self.__load()

    def __load(self):
        # "latest" is resolved against the raw file, so a cache built for an
        # explicit date never stands in for the default
        signature = processed_cache.source_signature(
            self.raw_path, snapshot_date=self.snapshot_date or "latest"
        )
        if processed_cache.is_fresh(self.processed_path, signature):
            print(f"Loading from cached file {self.processed_path}")
            self.data = pd.read_csv(self.processed_path, dtype={"fips": str})
            return

        if not self.raw_path.exists():
            raise FileNotFoundError(f"{self.raw_path} does not exist.")

        print(f"Processing county case counts from raw data: {self.raw_path}")
        raw = pd.read_csv(self.raw_path, dtype={"fips": str})
        self.data = self.snapshot(raw, self.snapshot_date)

        processed_cache.write(self.processed_path, self.data, signature)

    @classmethod
    def snapshot(cls, raw: pd.DataFrame, snapshot_date: str | None = None) -> pd.DataFrame:
        missing = [c for c in cls.RAW_COLUMNS if c not in raw.columns]
        if missing:
            raise DataQualityError(f"Case data is missing columns: {missing}")

        df = raw[cls.RAW_COLUMNS].copy()
        df["date"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m-%d")
        if snapshot_date is None:
            snapshot_date = df["date"].max()
        df = df[df["date"] == pd.Timestamp(snapshot_date).strftime("%Y-%m-%d")].copy()
        if df.empty:
            raise DataQualityError(f"No case rows for snapshot date {snapshot_date}")

        df["fips"] = pad_fips_series(df["fips"])
        df["cases"] = pd.to_numeric(df["cases"], errors="coerce").fillna(0).astype(int)
        df["deaths"] = pd.to_numeric(df["deaths"], errors="coerce").fillna(0).astype(int)
        return df.reset_index(drop=True)

    def get_data(self) -> pd.DataFrame:
        if self.data.empty:
            raise RuntimeError("Case data not loaded.")
        return self.data.copy()
