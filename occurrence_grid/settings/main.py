from occurrence_grid.settings.models import (
    CreatorConfig,
    GridDefaults,
    TimeConfig,
    TaxonConfig,
    CRSConfig,
)
from pydantic_settings import BaseSettings


class GridSettings(BaseSettings):
    grid: GridDefaults = GridDefaults()
    creator: CreatorConfig = CreatorConfig()
    time: TimeConfig = TimeConfig()
    taxon: TaxonConfig = TaxonConfig()
    crs: CRSConfig = CRSConfig()


grid_settings = GridSettings()
