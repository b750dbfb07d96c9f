"""
Configuration for the incident and county covid pipelines.

Paths are relative to the working directory the batch is started from,
like the data services have always assumed.
"""

import math
from pathlib import Path

# Project paths
RAW_DIR = Path("data/raw")
PROCESSED_DIR = Path("data/processed")
RUNS_DIR = Path("runs")

# Raw file locations (filled by download_raw_data.py)
INCIDENT_RAW_PATH = RAW_DIR / "incidents" / "shooting_incidents.csv"
COVID_RAW_PATH = RAW_DIR / "covid" / "us_counties.csv"
ECONOMIC_RAW_PATH = RAW_DIR / "economic" / "saipe_counties.xls"
POPULATION_RAW_PATH = RAW_DIR / "population" / "county_population.csv"
TEMPERATURE_RAW_PATH = RAW_DIR / "weather" / "monthly_temperature.csv"

# Source URLs
INCIDENT_URL = "https://data.cityofnewyork.us/api/views/833y-fsy8/rows.csv?accessType=DOWNLOAD"
COVID_URL = "https://raw.githubusercontent.com/nytimes/covid-19-data/master/us-counties.csv"
ECONOMIC_URL = "https://www2.census.gov/programs-surveys/saipe/datasets/2019/2019-state-and-county/est19all.xls"
POPULATION_URL = "https://www2.census.gov/programs-surveys/popest/datasets/2010-2019/counties/totals/co-est2019-alldata.csv"
TEMPERATURE_URL = None  # hand-curated 12-row table, no canonical download

# Spreadsheet header sits below a title block
ECONOMIC_HEADER_ROWS = 3
POPULATION_ESTIMATE_COLUMN = "POPESTIMATE2019"

# Joins: share of the primary metric that may be lost before the run fails
UNMATCHED_FRACTION_THRESHOLD = 0.01

# Counties allowed to carry null economic values without failing the run
KNOWN_NULL_ECONOMIC_FIPS = frozenset({"02158"})

# Primary-dataset rows that report several reference units under one label
AGGREGATED_UNITS = {
    "New York City": ["36005", "36047", "36061", "36081", "36085"],
    "Kansas City": ["29037", "29047", "29095", "29165"],
    "Joplin": ["29097", "29145"],
}

# Labels used by case datasets for rows with no real geography
PLACEHOLDER_COUNTY_NAMES = frozenset({"Unknown", "Unassigned"})

# Robustness checks
TRIM_QUANTILES = (0.01, 0.99)
SLOPE_RELATIVE_TOLERANCE = 0.10

# Sinusoid starting guesses: (amplitude, phase, offset)
MONTH_CYCLE = 12
WEEKDAY_CYCLE = 7
MONTH_GUESS = (0.02, -math.pi / 2, 1 / MONTH_CYCLE)
WEEKDAY_GUESS = (0.03, 0.0, 1 / WEEKDAY_CYCLE)

# Numeric columns fed to the county regressions
COUNTY_METRIC_COLUMNS = [
    "cases_per_capita",
    "deaths_per_capita",
    "poverty_per_capita",
    "median_income",
]
