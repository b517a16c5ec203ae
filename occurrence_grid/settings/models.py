from typing import Literal, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class CreatorConfig(BaseSettings):
    name: Optional[str] = Field(None, validation_alias="grid_creator_name")
    email: Optional[str] = Field(None, validation_alias="grid_creator_email")
    url: Optional[str] = Field(None, validation_alias="grid_creator_url")
    institution: Optional[str] = Field(None, validation_alias="grid_institution")


class GridDefaults(BaseSettings):
    missing_value: int = -99999
    output_format: Literal["netcdf", "zarr"] = Field(
        "netcdf", validation_alias="grid_output_format"
    )
    max_chunk: str = Field("100MB", validation_alias="grid_max_chunk")
    recipe_dir: str = Field("flow_configs", validation_alias="grid_recipe_dir")


class TimeConfig(BaseModel):
    units: str = "days since 1970-01-01 00:00:00"
    calendar: str = "standard"
    fill_value: float = -9999.9


class TaxonConfig(BaseModel):
    string_length: int = 80
    string_dim: str = "string80"


class CRSConfig(BaseModel):
    name: str = "WGS 84"
    epsg: int = 4326
    semi_major_axis: float = 6378137.0
    semi_minor_axis: float = 6356752.314245179
    inverse_flattening: float = 298.257223563
