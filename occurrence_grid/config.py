from occurrence_grid.settings.main import grid_settings

# Grid layout
DIMENSIONS = ("lon", "lat", "time", "aphiaid")
GRID_VARIABLE = "presence_absence"
MISSING_VALUE = grid_settings.grid.missing_value
GRID_DTYPE = "int32"

# Time encoding
TIME_UNITS = grid_settings.time.units
CALENDAR = grid_settings.time.calendar
TIME_FILL_VALUE = grid_settings.time.fill_value

# Taxon text variables
STRING_LENGTH = grid_settings.taxon.string_length
STRING_DIM = grid_settings.taxon.string_dim

# Output
OUTPUT_FORMAT = grid_settings.grid.output_format
MAX_CHUNK = grid_settings.grid.max_chunk
RECIPE_DIR = grid_settings.grid.recipe_dir
CONVENTIONS = "CF-1.8, ACDD-1.3"

# Darwin Core input columns -> canonical observation columns
DWC_COLUMNS = {
    "longitude": "decimalLongitude",
    "latitude": "decimalLatitude",
    "event_date": "eventDate",
    "taxon_name": "scientificName",
    "taxon_lsid": "scientificNameID",
    "taxon_id": "AphiaID",
    "status": "occurrenceStatus",
}
