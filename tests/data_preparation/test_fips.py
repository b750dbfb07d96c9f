"""
Tests for building 5-character county FIPS keys.
"""

import numpy as np
import pandas as pd
import pytest

from data_preparation.fips import (
    fips_from_parts,
    fips_series_from_parts,
    pad_fips,
    pad_fips_series,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1001", "01001"),
        ("01001", "01001"),
        ("1001.0", "01001"),
        (1001, "01001"),
        (1001.0, "01001"),
        (" 36061 ", "36061"),
    ],
)
def test_pad_fips(raw, expected):
    assert pad_fips(raw) == expected


@pytest.mark.parametrize("raw", [None, np.nan, "", pd.NA])
def test_pad_fips_keeps_missing(raw):
    assert pad_fips(raw) is None


@pytest.mark.parametrize("raw", ["123456", "AB001", "-1001", "00123", "123", 0])
def test_pad_fips_rejects_non_codes(raw):
    with pytest.raises(ValueError):
        pad_fips(raw)


def test_parts_are_padded_and_concatenated():
    assert fips_from_parts(2, 158) == "02158"
    assert fips_from_parts("36", "61") == "36061"


@pytest.mark.parametrize("state, county", [(0, 1), (100, 1), (1, 1000), (1, -1)])
def test_parts_out_of_range(state, county):
    with pytest.raises(ValueError):
        fips_from_parts(state, county)


def test_parts_to_key_is_injective():
    """Every (state, county) pair in range maps to its own 5-character key."""
    states, counties = np.meshgrid(np.arange(1, 100), np.arange(0, 1000), indexing="ij")
    state = pd.Series(states.ravel())
    county = pd.Series(counties.ravel())

    keys = fips_series_from_parts(state, county)

    assert keys.str.len().eq(5).all()
    assert keys.nunique() == len(keys)
    assert keys.iloc[0] == "01000"
    assert keys.iloc[-1] == "99999"


def test_series_helpers_agree_with_scalars():
    keys = fips_series_from_parts(pd.Series([1, 2, 56]), pd.Series([1.0, 158.0, 45.0]))
    assert keys.tolist() == ["01001", "02158", "56045"]

    padded = pad_fips_series(pd.Series(["1001", None, "56045.0"]))
    assert padded.tolist() == ["01001", None, "56045"]


def test_series_parts_reject_out_of_range():
    with pytest.raises(ValueError):
        fips_series_from_parts(pd.Series([1]), pd.Series([1000]))


@pytest.mark.parametrize("state, county", [(0, 123), (1, 0), (99, 999)])
def test_joined_and_split_codes_accept_the_same_range(state, county):
    joined = f"{state:02d}{county:03d}"
    if state == 0:
        with pytest.raises(ValueError):
            pad_fips(joined)
        with pytest.raises(ValueError):
            fips_from_parts(state, county)
    else:
        assert pad_fips(joined) == fips_from_parts(state, county)
