import pandas as pd
from pathlib import Path

from .. import config
from ..errors import DataQualityError, SchemaViolationError
from ..field_normalizer import FieldNormalizer
from ..vocabularies import JURISDICTIONS, NULL_TOKENS, VOCABULARY_VERSION
from . import processed_cache


class IncidentService:
    RAW_PATH = config.INCIDENT_RAW_PATH
    PROCESSED_PATH = config.PROCESSED_DIR / "incidents.csv"

    RAW_COLUMNS = [
        "INCIDENT_KEY",
        "OCCUR_DATE",
        "OCCUR_TIME",
        "BORO",
        "JURISDICTION_CODE",
        "LOCATION_DESC",
        "PERP_AGE_GROUP",
        "PERP_SEX",
        "PERP_RACE",
        "VIC_AGE_GROUP",
        "VIC_SEX",
        "VIC_RACE",
    ]

    def __init__(
        self,
        raw: pd.DataFrame | None = None,
        raw_path: Path | None = None,
        processed_path: Path | None = None,
        normalizer: FieldNormalizer | None = None,
    ):
        self.raw_path = Path(raw_path) if raw_path else self.RAW_PATH
        self.processed_path = Path(processed_path) if processed_path else self.PROCESSED_PATH
        self.normalizer = normalizer or FieldNormalizer()
        self.data: pd.DataFrame = pd.DataFrame()
        self.dropped_no_jurisdiction: int | None = None

        if raw is not None:
            self.data = self.prepare(raw)
        else:
            self.__load()

    def __load(self):
        signature = processed_cache.source_signature(
            self.raw_path, vocabulary=VOCABULARY_VERSION
        )
        if processed_cache.is_fresh(self.processed_path, signature):
            print(f"Loading from cached file {self.processed_path}")
            df = pd.read_csv(self.processed_path, dtype={"INCIDENT_KEY": str})
            df["occurred_at"] = pd.to_datetime(df["occurred_at"])
            self.normalizer.check(df)
            self.data = df
            self.dropped_no_jurisdiction = processed_cache.read_stats(self.processed_path).get(
                "dropped_no_jurisdiction"
            )
            return

        if not self.raw_path.exists():
            raise FileNotFoundError(f"{self.raw_path} does not exist.")

        print(f"Processing incidents from raw data: {self.raw_path}")
        raw = pd.read_csv(self.raw_path, usecols=self.RAW_COLUMNS, dtype=str)
        self.data = self.prepare(raw)

        processed_cache.write(
            self.processed_path,
            self.data,
            signature,
            dropped_no_jurisdiction=self.dropped_no_jurisdiction,
        )

    def prepare(self, raw: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in self.RAW_COLUMNS if c not in raw.columns]
        if missing:
            raise DataQualityError(f"Incident data is missing columns: {missing}")

        df = raw[self.RAW_COLUMNS].copy()

        code = df["JURISDICTION_CODE"].astype("string").str.strip()
        code = code.mask(code.isin(NULL_TOKENS))
        keep = code.notna()
        self.dropped_no_jurisdiction = int((~keep).sum())
        if self.dropped_no_jurisdiction:
            print(f"Dropped {self.dropped_no_jurisdiction} incidents without a jurisdiction code")
        df = df[keep].copy()

        df["JURISDICTION"] = self.__jurisdiction_names(code[keep])
        df = df.drop(columns=["JURISDICTION_CODE"])

        df = self.normalizer.normalize(df)

        date = pd.to_datetime(df["OCCUR_DATE"], format="%m/%d/%Y")
        time = pd.to_timedelta(df["OCCUR_TIME"].fillna("00:00:00"))
        df["occurred_at"] = date + time
        df = df.drop(columns=["OCCUR_DATE", "OCCUR_TIME"])

        return self.add_time_buckets(df).reset_index(drop=True)

    @staticmethod
    def add_time_buckets(df: pd.DataFrame, column: str = "occurred_at") -> pd.DataFrame:
        """year / month / day_of_week (0=Monday) / hour from a datetime column."""
        out = df.copy()
        dt = pd.to_datetime(out[column]).dt
        out["year"] = dt.year
        out["month"] = dt.month
        out["day_of_week"] = dt.dayofweek
        out["hour"] = dt.hour
        return out

    @staticmethod
    def __jurisdiction_names(code: pd.Series) -> pd.Series:
        numeric = pd.to_numeric(code, errors="coerce")
        names = numeric.map(JURISDICTIONS)
        bad = names.isna()
        if bad.any():
            index = bad.idxmax()
            raise SchemaViolationError("JURISDICTION_CODE", code.loc[index], index)
        return names

    def get_data(self) -> pd.DataFrame:
        if self.data.empty:
            raise RuntimeError("Incident data not loaded.")
        return self.data.copy()
