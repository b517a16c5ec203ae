from typing import Any, Dict, Literal, Optional
from pathlib import Path

import yaml
from pydantic import field_validator, BaseModel

from occurrence_grid.config import DIMENSIONS, DWC_COLUMNS, MAX_CHUNK, OUTPUT_FORMAT


class ColumnMap(BaseModel):
    longitude: str = DWC_COLUMNS["longitude"]
    latitude: str = DWC_COLUMNS["latitude"]
    event_date: str = DWC_COLUMNS["event_date"]
    taxon_name: str = DWC_COLUMNS["taxon_name"]
    taxon_lsid: str = DWC_COLUMNS["taxon_lsid"]
    taxon_id: str = DWC_COLUMNS["taxon_id"]
    status: str = DWC_COLUMNS["status"]

    @field_validator("*")
    @classmethod
    def must_exists(cls, v):
        if not v.strip():
            raise ValueError("Column names cannot be empty")
        return v


class ChunkOptions(BaseModel):
    mode: Literal["bulk", "taxon", "cell", "auto"] = "bulk"
    chunks: Dict[str, int] = {}
    max_chunk: str = MAX_CHUNK
    staging_path: Optional[str] = None
    staging_rows: int = 100_000

    @field_validator("chunks")
    @classmethod
    def chunks_on_known_axes(cls, v):
        for axis, extent in v.items():
            if axis not in DIMENSIONS:
                raise ValueError(
                    f"Unknown chunk axis '{axis}', expected one of {', '.join(DIMENSIONS)}"
                )
            if extent < 1:
                raise ValueError(f"Chunk extent for '{axis}' must be at least 1")
        return v

    @field_validator("staging_rows")
    @classmethod
    def staging_rows_positive(cls, v):
        if v < 1:
            raise ValueError("staging_rows must be at least 1")
        return v


class DatasetMetadata(BaseModel):
    title: str = "Presence/absence of biological taxa"
    summary: Optional[str] = None
    institution: Optional[str] = None
    source: Optional[str] = None
    history: Optional[str] = None
    license: str = "CC-BY 4.0 (https://creativecommons.org/licenses/by/4.0/)"
    references: Optional[str] = None
    creator_name: Optional[str] = None
    creator_email: Optional[str] = None
    creator_url: Optional[str] = None
    extra: Dict[str, Any] = {}


class GridRecipe(BaseModel):
    name: str
    input_path: str
    output_path: str
    output_format: Literal["netcdf", "zarr"] = OUTPUT_FORMAT
    columns: ColumnMap = ColumnMap()
    chunking: ChunkOptions = ChunkOptions()
    coordinate_precision: Optional[int] = None
    taxon_conflict: Literal["first", "last", "error"] = "first"
    metadata: DatasetMetadata = DatasetMetadata()
    verify: bool = True
    strict_verify: bool = False

    @field_validator("name", "input_path", "output_path")
    @classmethod
    def path_must_exists(cls, v):
        if not v.strip():
            raise ValueError("Recipe name and paths cannot be empty")
        return v

    @field_validator("coordinate_precision")
    @classmethod
    def precision_non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("coordinate_precision must be a non-negative number of decimals")
        return v


def load_recipe(path) -> GridRecipe:
    """Read a YAML recipe and resolve relative paths against its directory"""
    path = Path(path)
    with path.open() as f:
        config_json = yaml.safe_load(f) or {}
    config_json.setdefault("name", path.stem)
    recipe = GridRecipe(**config_json)
    base = path.parent
    for attr in ("input_path", "output_path"):
        value = Path(getattr(recipe, attr)).expanduser()
        if not value.is_absolute():
            setattr(recipe, attr, str(base / value))
    staging = recipe.chunking.staging_path
    if staging and not Path(staging).expanduser().is_absolute():
        recipe.chunking.staging_path = str(base / staging)
    return recipe
