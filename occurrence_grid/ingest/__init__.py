"""
Reading Darwin Core style occurrence tables into observation frames.

Every column is validated before anything is written, so a malformed input
aborts the run with no output on disk.
"""

import numpy as np
import pandas as pd
import xarray as xr
from loguru import logger

from occurrence_grid.config import TIME_UNITS, CALENDAR
from occurrence_grid.exceptions import ObservationSchemaError, EventDateError
from occurrence_grid.recipe.models import ColumnMap

OBSERVATION_COLUMNS = ["lon", "lat", "time", "aphiaid", "taxon_name", "taxon_lsid", "status"]

# Darwin Core occurrenceStatus vocabulary
STATUS_WORDS = {"present": 1, "absent": 0}


def read_observations(path, columns: ColumnMap = None) -> pd.DataFrame:
    if columns is None:
        columns = ColumnMap()
    logger.info(f"Reading observations from {path}")
    text_columns = [columns.event_date, columns.taxon_name, columns.taxon_lsid, columns.status]
    raw = pd.read_csv(path, dtype={c: str for c in text_columns}, keep_default_na=True)
    observations = parse_observations(raw, columns)
    logger.info(f"Read {len(observations)} observations")
    return observations


def parse_observations(raw: pd.DataFrame, columns: ColumnMap = None) -> pd.DataFrame:
    """Validate a raw table and convert it to canonical observation columns"""
    if columns is None:
        columns = ColumnMap()

    missing = [c for c in columns.model_dump().values() if c not in raw.columns]
    if missing:
        raise ObservationSchemaError(f"Missing required column(s): {', '.join(missing)}")
    if raw.empty:
        raise ObservationSchemaError("Input table contains no observations")

    aphiaid = _numeric_column(raw[columns.taxon_id], columns.taxon_id)
    if not np.all(np.mod(aphiaid, 1) == 0):
        raise ObservationSchemaError(f"Column {columns.taxon_id} must contain integer taxon ids")

    taxon_name = raw[columns.taxon_name]
    if taxon_name.isna().any() or (taxon_name.astype(str).str.strip() == "").any():
        raise ObservationSchemaError(f"Column {columns.taxon_name} has empty values")

    taxon_lsid = raw[columns.taxon_lsid]
    if taxon_lsid.isna().any():
        logger.warning(f"{int(taxon_lsid.isna().sum())} observation(s) have no {columns.taxon_lsid}")
        taxon_lsid = taxon_lsid.fillna("")

    observations = pd.DataFrame(
        {
            "lon": _numeric_column(raw[columns.longitude], columns.longitude),
            "lat": _numeric_column(raw[columns.latitude], columns.latitude),
            "time": encode_event_dates(raw[columns.event_date]),
            "aphiaid": aphiaid.astype("int64"),
            "taxon_name": taxon_name.astype(str).str.strip().to_numpy(),
            "taxon_lsid": taxon_lsid.astype(str).str.strip().to_numpy(),
            "status": parse_status(raw[columns.status], columns.status),
        },
        columns=OBSERVATION_COLUMNS,
    )

    out_of_range = (observations.lon.abs() > 360) | (observations.lat.abs() > 90)
    if out_of_range.any():
        first = observations[out_of_range].index[0]
        raise ObservationSchemaError(f"Coordinates out of range at row {first}")
    return observations


def _numeric_column(series: pd.Series, name: str) -> np.ndarray:
    values = pd.to_numeric(series, errors="coerce")
    bad = values.isna()
    if bad.any():
        first = series[bad].index[0]
        raise ObservationSchemaError(
            f"Column {name} has {int(bad.sum())} missing or non-numeric value(s), first at row {first}"
        )
    return values.to_numpy(dtype="float64")


def parse_status(series: pd.Series, name: str = "occurrenceStatus") -> np.ndarray:
    """Map occurrence status to 1 (presence) / 0 (absence)"""
    words = series.astype(str).str.strip().str.lower()
    status = words.map(STATUS_WORDS)
    numeric = pd.to_numeric(words, errors="coerce")
    status = status.fillna(numeric)
    bad = ~status.isin([0, 1])
    if bad.any():
        first = series[bad].index[0]
        raise ObservationSchemaError(
            f"Column {name} must be 0/1 or present/absent, got {series[first]!r} at row {first}"
        )
    return status.to_numpy(dtype="int32")


def encode_event_dates(series: pd.Series, units: str = TIME_UNITS, calendar: str = CALENDAR) -> np.ndarray:
    """Parse ISO 8601 event dates as UTC and encode them as CF time offsets"""
    try:
        dates = pd.to_datetime(series, utc=True, format="ISO8601")
    except (ValueError, TypeError) as e:
        raise EventDateError(f"Unparseable event date: {e}") from e
    if dates.isna().any():
        first = series[dates.isna()].index[0]
        raise EventDateError(f"Missing event date at row {first}")

    naive = dates.dt.tz_convert(None).to_numpy(dtype="datetime64[ns]")
    num, _, _ = xr.coding.times.encode_cf_datetime(naive, units=units, calendar=calendar)
    return np.asarray(num, dtype="float64")


def decode_times(values, units: str = TIME_UNITS, calendar: str = CALENDAR):
    return xr.coding.times.decode_cf_datetime(np.asarray(values), units=units, calendar=calendar)
