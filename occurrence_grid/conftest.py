import pandas as pd
import pytest

from occurrence_grid.ingest import parse_observations
from occurrence_grid.recipe.models import GridRecipe

TAXA = {
    137117: ("Phocoena phocoena", "urn:lsid:marinespecies.org:taxname:137117"),
    137094: ("Delphinus delphis", "urn:lsid:marinespecies.org:taxname:137094"),
    137111: ("Tursiops truncatus", "urn:lsid:marinespecies.org:taxname:137111"),
    137087: ("Balaenoptera acutorostrata", "urn:lsid:marinespecies.org:taxname:137087"),
}

# 10 rows: 10 longitudes, 10 latitudes, 3 dates, 4 taxa
DEMO_ROWS = [
    (2.15, 51.30, "2019-06-17", 137117, 1),
    (2.40, 51.45, "2019-06-17", 137094, 0),
    (2.65, 51.60, "2019-07-01", 137111, 1),
    (2.90, 51.75, "2019-07-01", 137117, 0),
    (3.15, 51.90, "2019-08-15", 137087, 1),
    (3.40, 52.05, "2019-08-15", 137094, 1),
    (3.65, 52.20, "2019-06-17", 137111, 0),
    (3.90, 52.35, "2019-07-01", 137087, 0),
    (4.15, 52.50, "2019-08-15", 137117, 1),
    (4.40, 52.65, "2019-06-17", 137094, 1),
]


def make_table(rows) -> pd.DataFrame:
    """Darwin Core table from (lon, lat, date, aphiaid, status) tuples"""
    return pd.DataFrame(
        [
            {
                "decimalLongitude": lon,
                "decimalLatitude": lat,
                "eventDate": date,
                "scientificName": TAXA[aphiaid][0],
                "scientificNameID": TAXA[aphiaid][1],
                "AphiaID": aphiaid,
                "occurrenceStatus": status,
            }
            for lon, lat, date, aphiaid, status in rows
        ]
    )


@pytest.fixture
def demo_table():
    return make_table(DEMO_ROWS)


@pytest.fixture
def demo_csv(tmp_path, demo_table):
    path = tmp_path / "dataset.csv"
    demo_table.to_csv(path, index=False)
    return path


@pytest.fixture
def observations(demo_table):
    return parse_observations(demo_table)


@pytest.fixture
def make_recipe(tmp_path, demo_csv):
    def _make(output="grid.nc", **kwargs):
        kwargs.setdefault("name", "demo")
        kwargs.setdefault("input_path", str(demo_csv))
        kwargs.setdefault("output_path", str(tmp_path / output))
        return GridRecipe(**kwargs)

    return _make
