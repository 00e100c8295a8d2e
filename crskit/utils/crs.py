"""pyproj CRS constants used when crskit objects are exported to geopandas.

Areas of use are always expressed in degrees of longitude and latitude, so every
GeoDataFrame built by crskit is tagged with:
- LATLON_CRS: WGS84 geographic coordinates (EPSG:4326)
"""

from pyproj import CRS

# Areas of use are stored as (west, south, east, north) in degrees, x being the longitude
LATLON_CRS = CRS(4326)
