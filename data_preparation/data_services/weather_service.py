import pandas as pd
from pathlib import Path

from .. import config
from ..errors import DataQualityError


class WeatherService:
    """
    Average temperature per calendar month (12 rows: month, temperature),
    the covariate lined up against the monthly incident curve.
    """

    RAW_PATH = config.TEMPERATURE_RAW_PATH

    def __init__(self, raw: pd.DataFrame | None = None, raw_path: Path | None = None):
        self.raw_path = Path(raw_path) if raw_path else self.RAW_PATH
        self.data = pd.DataFrame()

        if raw is not None:
            self.data = self.prepare(raw)
        else:
            self.__load()

    def __load(self):
        if not self.raw_path.exists():
            raise FileNotFoundError(f"{self.raw_path} does not exist.")
        print(f"Loading monthly temperatures from {self.raw_path}")
        self.data = self.prepare(pd.read_csv(self.raw_path))

    @staticmethod
    def prepare(raw: pd.DataFrame) -> pd.DataFrame:
        if not {"month", "temperature"}.issubset(raw.columns):
            raise DataQualityError("Temperature table needs month and temperature columns")

        df = raw[["month", "temperature"]].copy()
        df["month"] = pd.to_numeric(df["month"], errors="raise").astype(int)
        df["temperature"] = pd.to_numeric(df["temperature"], errors="raise").astype(float)
        df = df.groupby("month", as_index=False)["temperature"].mean()

        if sorted(df["month"]) != list(range(1, 13)):
            raise DataQualityError(f"Expected months 1-12, got {sorted(df['month'])}")
        return df.sort_values("month").reset_index(drop=True)

    def get_data(self):
        if self.data.empty:
            raise RuntimeError("Weather data not loaded.")
        return self.data.copy()
