"""Key names used in registry datasets and in the registry graph.

A dataset is a JSON document with top-level sections for metadata, objects, aliases,
areas and grids. Objects reference each other with "AUTHORITY:CODE" strings.
"""

# Top-level sections of a dataset document
METADATA_KEY = "metadata"
OBJECTS_KEY = "objects"
ALIASES_KEY = "aliases"
GRIDS_KEY = "grids"
AREAS_KEY = "areas"

# Keys shared by every object record
AUTHORITY_KEY = "authority"
CODE_KEY = "code"
TYPE_KEY = "type"
NAME_KEY = "name"
DEPRECATED_KEY = "deprecated"
REPLACED_BY_KEY = "replaced_by"
AREA_KEY = "area"
REMARKS_KEY = "remarks"
SCOPE_KEY = "scope"

# Keys of alias records
TABLE_KEY = "table"
ALT_NAME_KEY = "alt_name"
SOURCE_KEY = "source"

# Keys used on the registry graph
RECORD_KEY = "record"
ORDER_KEY = "order"

# Alias sources understood by the codecs
ESRI_SOURCE = "ESRI"
GDAL_SOURCE = "GDAL"
PROJ_SOURCE = "PROJ"

# Environment variable overriding the default dataset
REGISTRY_PATH_ENV = "CRSKIT_REGISTRY_PATH"
