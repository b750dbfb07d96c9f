"""
County FIPS keys: 2-digit state code + 3-digit county code, zero padded.

Sources disagree on how they hand these out. Some carry the two parts as
separate numbers (SAIPE, census estimates), some carry one code that has lost
its leading zero or picked up a float suffix on the way through a CSV
("1001.0"). Both end up as the same 5-character string here.
"""

import re

import numpy as np
import pandas as pd

FIPS_WIDTH = 5
STATE_WIDTH = 2
COUNTY_WIDTH = 3

_FLOAT_SUFFIX = re.compile(r"\.0+$")


def fips_from_parts(state, county) -> str:
    state, county = int(state), int(county)
    if not 0 < state < 10**STATE_WIDTH:
        raise ValueError(f"State code {state} outside 1..99")
    if not 0 <= county < 10**COUNTY_WIDTH:
        raise ValueError(f"County code {county} outside 0..999")
    return f"{state:0{STATE_WIDTH}d}{county:0{COUNTY_WIDTH}d}"


def pad_fips(code) -> str | None:
    """Normalize a single joined code. Missing stays missing."""
    if code is None or (isinstance(code, float) and np.isnan(code)) or code is pd.NA:
        return None
    text = _FLOAT_SUFFIX.sub("", str(code).strip())
    if not text:
        return None
    if not text.isdigit() or len(text) > FIPS_WIDTH:
        raise ValueError(f"Not a county FIPS code: {code!r}")
    padded = text.zfill(FIPS_WIDTH)
    if int(state_part(padded)) == 0:
        raise ValueError(f"State code 00 in {code!r} is outside 1..99")
    return padded


def fips_series_from_parts(state: pd.Series, county: pd.Series) -> pd.Series:
    state = pd.to_numeric(state, errors="raise").astype(int)
    county = pd.to_numeric(county, errors="raise").astype(int)
    if ((state <= 0) | (state >= 10**STATE_WIDTH)).any():
        raise ValueError("State codes must be within 1..99")
    if ((county < 0) | (county >= 10**COUNTY_WIDTH)).any():
        raise ValueError("County codes must be within 0..999")
    return state.astype(str).str.zfill(STATE_WIDTH) + county.astype(str).str.zfill(
        COUNTY_WIDTH
    )


def pad_fips_series(codes: pd.Series) -> pd.Series:
    return codes.map(pad_fips).astype(object)


def state_part(fips: str) -> str:
    return fips[:STATE_WIDTH]
