import datetime
from typing import Any, Dict

import numpy as np
from loguru import logger

from occurrence_grid.config import CONVENTIONS, GRID_VARIABLE, TIME_UNITS, CALENDAR, STRING_LENGTH
from occurrence_grid.ingest import decode_times
from occurrence_grid.settings.main import grid_settings


VARIABLE_ATTRS = {
    "lon": {
        "units": "degrees_east",
        "standard_name": "longitude",
        "long_name": "Longitude",
        "axis": "X",
    },
    "lat": {
        "units": "degrees_north",
        "standard_name": "latitude",
        "long_name": "Latitude",
        "axis": "Y",
    },
    "time": {
        "standard_name": "time",
        "long_name": "Time",
        "units": TIME_UNITS,
        "calendar": CALENDAR,
        "axis": "T",
    },
    "aphiaid": {
        "units": "level",
        "long_name": "Life Science Identifier - World Register of Marine Species",
    },
    "taxon_name": {
        "standard_name": "biological_taxon_name",
        "long_name": "Scientific name of the taxa",
    },
    "taxon_lsid": {
        "standard_name": "biological_taxon_lsid",
        "long_name": "Life Science Identifier - World Register of Marine Species",
    },
    GRID_VARIABLE: {
        "long_name": "Probability of occurrence of biological entity",
        "comment": "1 = presence, 0 = absence",
        "flag_values": np.array([0, 1], dtype="int32"),
        "flag_meanings": "absent present",
        "coordinates": "taxon_name taxon_lsid",
        "grid_mapping": "crs",
    },
}

WGS84_WKT = (
    'GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563]],'
    'PRIMEM["Greenwich",0],UNIT["degree",0.0174532925199433,AUTHORITY["EPSG","9122"]],'
    'AXIS["Latitude",NORTH],AXIS["Longitude",EAST],AUTHORITY["EPSG","4326"]]'
)


def variable_attributes() -> Dict[str, Dict[str, Any]]:
    return {k: dict(v) for k, v in VARIABLE_ATTRS.items()}


def crs_attributes(crs=None) -> Dict[str, Any]:
    """Grid mapping attributes, lat/lon coordinates are assumed to be WGS84"""
    if crs is None:
        crs = grid_settings.crs
    return {
        "long_name": "Coordinate Reference System",
        "geographic_crs_name": crs.name,
        "grid_mapping_name": "latitude_longitude",
        "reference_ellipsoid_name": crs.name,
        "prime_meridian_name": "Greenwich",
        "longitude_of_prime_meridian": 0.0,
        "semi_major_axis": crs.semi_major_axis,
        "semi_minor_axis": crs.semi_minor_axis,
        "inverse_flattening": crs.inverse_flattening,
        "epsg_code": f"EPSG:{crs.epsg}",
        "spatial_ref": WGS84_WKT,
    }


def build_global_attributes(index, metadata=None, input_path: str = None) -> Dict[str, Any]:
    """Container level attributes, recipe extras are applied last"""
    attrs = {
        "Conventions": CONVENTIONS,
        "featureType": "grid",
        "cdm_data_type": "Grid",
    }
    if metadata is not None:
        attrs.update(metadata.model_dump(exclude={"extra"}))

    creator = grid_settings.creator
    attrs.setdefault("creator_name", None)
    attrs["creator_name"] = attrs["creator_name"] or creator.name
    attrs["creator_email"] = attrs.get("creator_email") or creator.email
    attrs["creator_url"] = attrs.get("creator_url") or creator.url
    attrs["institution"] = attrs.get("institution") or creator.institution

    now = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0).isoformat()
    if input_path and not attrs.get("source"):
        attrs["source"] = f"Occurrence records from {input_path}"
    if not attrs.get("history"):
        attrs["history"] = f"{now} gridded to longitude x latitude x time x taxon"

    attrs.update(
        {
            "geospatial_lon_min": float(index.lon[0]),
            "geospatial_lon_max": float(index.lon[-1]),
            "geospatial_lon_units": "degrees_east",
            "geospatial_lat_min": float(index.lat[0]),
            "geospatial_lat_max": float(index.lat[-1]),
            "geospatial_lat_units": "degrees_north",
        }
    )
    start, end = decode_times([index.time[0], index.time[-1]])
    attrs["time_coverage_start"] = str(start)
    attrs["time_coverage_end"] = str(end)
    attrs["date_created"] = now

    # Add extra global attributes last!
    if metadata is not None and metadata.extra:
        for k, v in metadata.extra.items():
            attrs[k] = v

    return {k: v for k, v in attrs.items() if v is not None}


def fixed_width_strings(values, length: int = STRING_LENGTH) -> np.ndarray:
    """UTF-8 encode text into a fixed width byte array, truncating long values"""
    encoded = [str(v).encode("utf-8") for v in values]
    too_long = [v for v in encoded if len(v) > length]
    if too_long:
        logger.warning(
            f"{len(too_long)} value(s) longer than {length} bytes will be truncated, "
            f"e.g. {too_long[0][:40]!r}"
        )
    # drop a multi-byte character cut in half by the truncation
    clipped = [v[:length].decode("utf-8", "ignore").encode("utf-8") for v in encoded]
    return np.array(clipped, dtype=f"S{length}")
