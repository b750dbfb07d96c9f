"""
Closed vocabularies for the shooting incident dataset.

These lists are checked in rather than read off the data so that two runs on
different snapshots validate against the same categories. Bump
VOCABULARY_VERSION whenever a list changes.
"""

VOCABULARY_VERSION = "2023.1"

BOROUGHS = ("BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND")

JURISDICTIONS = {0: "Patrol", 1: "Transit", 2: "Housing"}

SEXES = ("M", "F", "U")

RACES = (
    "AMERICAN INDIAN/ALASKAN NATIVE",
    "ASIAN / PACIFIC ISLANDER",
    "BLACK",
    "BLACK HISPANIC",
    "WHITE",
    "WHITE HISPANIC",
    "UNKNOWN",
)

AGE_GROUPS = ("<18", "18-24", "25-44", "45-64", "65+", "UNKNOWN")

# Age codes seen in the raw data that are typos, not age groups
INVALID_AGE_CODES = ("1020", "1022", "224", "940")

# Literal strings the open data portal uses in place of a missing value
NULL_TOKENS = ("(null)", "")

UNKNOWN = "UNKNOWN"
NO_LOCATION = "NONE"
UNKNOWN_SEX = "U"

# column -> (allowed values or None for free text, null default, remap table)
FIELD_RULES = {
    "BORO": (BOROUGHS, None, {}),
    "JURISDICTION": (tuple(JURISDICTIONS.values()), None, {}),
    "LOCATION_DESC": (None, NO_LOCATION, {}),
    "VIC_SEX": (SEXES, UNKNOWN_SEX, {}),
    "VIC_RACE": (RACES, UNKNOWN, {}),
    "VIC_AGE_GROUP": (AGE_GROUPS, UNKNOWN, {code: UNKNOWN for code in INVALID_AGE_CODES}),
    "PERP_SEX": (SEXES, UNKNOWN_SEX, {}),
    "PERP_RACE": (RACES, UNKNOWN, {}),
    "PERP_AGE_GROUP": (AGE_GROUPS, UNKNOWN, {code: UNKNOWN for code in INVALID_AGE_CODES}),
}

DEMOGRAPHIC_COLUMNS = [
    "VIC_SEX",
    "VIC_RACE",
    "VIC_AGE_GROUP",
    "PERP_SEX",
    "PERP_RACE",
    "PERP_AGE_GROUP",
]
