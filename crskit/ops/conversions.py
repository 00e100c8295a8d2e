"""Factories for the map projection conversions of the method catalogue.

Angles are expressed in `angular_unit` (degrees by default) and distances in
`linear_unit` (metres by default). Units given with a dialect spelling, such as
("Degree", 0.0174532925199433), are replaced by the catalogue unit they stand for.

The conversions are not bound to CRS; pass them to `create_projected_crs`.
"""

from __future__ import annotations

from typing import Dict, Tuple

from crskit.constructs.common import Identifier
from crskit.constructs.operation import Conversion, conversion_from_mapping
from crskit.utils import method_mappings as mm
from crskit.utils.units import DEGREE, METRE, Unit, normalise_unit

UTM_SCALE_FACTOR = 0.9996
UTM_FALSE_EASTING = 500000.0
UTM_SOUTH_FALSE_NORTHING = 10000000.0


def _create(
    method: str,
    values: Dict[str, float],
    angular_unit: Unit,
    linear_unit: Unit,
    name: str = "unknown",
    identifiers: Tuple[Identifier, ...] = (),
) -> Conversion:
    mapping = mm.method_by_code(method) or mm.method_by_name(method)
    if mapping is None:
        raise ValueError(f"unknown method {method}")
    return conversion_from_mapping(
        mapping,
        values,
        name=name,
        identifiers=identifiers,
        angular_unit=normalise_unit(angular_unit),
        linear_unit=normalise_unit(linear_unit),
    )


def conversion_utm(zone: int, north: bool = True) -> Conversion:
    """
    Build the Universal Transverse Mercator conversion of a zone.

    Args:
        zone: The zone number, from 1 to 60
        north: Whether the zone is the northern hemisphere one

    Returns:
        The "UTM zone NN[N|S]" conversion, with its EPSG identifier

    Raises:
        ValueError: If the zone number is out of range

    Examples:
        >>> conversion_utm(31).name
        'UTM zone 31N'
    """
    if not 1 <= zone <= 60:
        raise ValueError(f"UTM zone {zone} out of range 1..60")
    hemisphere = "N" if north else "S"
    code = (16000 if north else 16100) + zone
    values = {
        "8801": 0.0,
        "8802": zone * 6.0 - 183.0,
        "8805": UTM_SCALE_FACTOR,
        "8806": UTM_FALSE_EASTING,
        "8807": 0.0 if north else UTM_SOUTH_FALSE_NORTHING,
    }
    return _create(
        mm.TRANSVERSE_MERCATOR,
        values,
        DEGREE,
        METRE,
        name=f"UTM zone {zone}{hemisphere}",
        identifiers=(Identifier("EPSG", str(code)),),
    )


def _natural_origin(lat_0, lon_0, k_0, false_easting, false_northing) -> Dict[str, float]:
    return {"8801": lat_0, "8802": lon_0, "8805": k_0, "8806": false_easting, "8807": false_northing}


def _false_origin(lat_0, lon_0, lat_1, lat_2, easting, northing) -> Dict[str, float]:
    return {"8821": lat_0, "8822": lon_0, "8823": lat_1, "8824": lat_2, "8826": easting, "8827": northing}


def conversion_transverse_mercator(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create(mm.TRANSVERSE_MERCATOR, values, angular_unit, linear_unit)


def conversion_transverse_mercator_south_oriented(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create("9808", values, angular_unit, linear_unit)


def conversion_gauss_schreiber_transverse_mercator(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create("Gauss Schreiber Transverse Mercator", values, angular_unit, linear_unit)


def conversion_lambert_conic_conformal_1sp(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create(mm.LAMBERT_CONIC_CONFORMAL_1SP, values, angular_unit, linear_unit)


def conversion_lambert_conic_conformal_2sp(
    latitude_false_origin: float,
    longitude_false_origin: float,
    latitude_first_parallel: float,
    latitude_second_parallel: float,
    easting_false_origin: float,
    northing_false_origin: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    """
    Build a Lambert Conic Conformal (2SP) conversion.

    Examples:
        >>> lambert93 = conversion_lambert_conic_conformal_2sp(46.5, 3, 49, 44, 700000, 6600000)
        >>> lambert93.parameter_value("8823")
        49.0
    """
    values = _false_origin(
        latitude_false_origin,
        longitude_false_origin,
        latitude_first_parallel,
        latitude_second_parallel,
        easting_false_origin,
        northing_false_origin,
    )
    return _create(mm.LAMBERT_CONIC_CONFORMAL_2SP, values, angular_unit, linear_unit)


def conversion_lambert_conic_conformal_2sp_belgium(
    latitude_false_origin: float,
    longitude_false_origin: float,
    latitude_first_parallel: float,
    latitude_second_parallel: float,
    easting_false_origin: float,
    northing_false_origin: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _false_origin(
        latitude_false_origin,
        longitude_false_origin,
        latitude_first_parallel,
        latitude_second_parallel,
        easting_false_origin,
        northing_false_origin,
    )
    return _create("9803", values, angular_unit, linear_unit)


def conversion_albers_equal_area(
    latitude_false_origin: float,
    longitude_false_origin: float,
    latitude_first_parallel: float,
    latitude_second_parallel: float,
    easting_false_origin: float,
    northing_false_origin: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _false_origin(
        latitude_false_origin,
        longitude_false_origin,
        latitude_first_parallel,
        latitude_second_parallel,
        easting_false_origin,
        northing_false_origin,
    )
    return _create("9822", values, angular_unit, linear_unit)


def conversion_mercator_variant_a(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create(mm.MERCATOR_VARIANT_A, values, angular_unit, linear_unit)


def conversion_mercator_variant_b(
    latitude_first_parallel: float,
    center_long: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = {"8823": latitude_first_parallel, "8802": center_long, "8806": false_easting, "8807": false_northing}
    return _create(mm.MERCATOR_VARIANT_B, values, angular_unit, linear_unit)


def conversion_popular_visualisation_pseudo_mercator(
    center_lat: float,
    center_long: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = {"8801": center_lat, "8802": center_long, "8806": false_easting, "8807": false_northing}
    return _create("1024", values, angular_unit, linear_unit)


def conversion_oblique_stereographic(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create("9809", values, angular_unit, linear_unit)


def conversion_stereographic(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create("Stereographic", values, angular_unit, linear_unit)


def conversion_polar_stereographic_variant_a(
    center_lat: float,
    center_long: float,
    scale: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _natural_origin(center_lat, center_long, scale, false_easting, false_northing)
    return _create("9810", values, angular_unit, linear_unit)


def conversion_polar_stereographic_variant_b(
    latitude_standard_parallel: float,
    longitude_of_origin: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = {
        "8832": latitude_standard_parallel,
        "8833": longitude_of_origin,
        "8806": false_easting,
        "8807": false_northing,
    }
    return _create(mm.POLAR_STEREOGRAPHIC_VARIANT_B, values, angular_unit, linear_unit)


def _origin_4(center_lat, center_long, false_easting, false_northing) -> Dict[str, float]:
    return {"8801": center_lat, "8802": center_long, "8806": false_easting, "8807": false_northing}


def conversion_lambert_azimuthal_equal_area(
    latitude_nat_origin: float,
    longitude_nat_origin: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _origin_4(latitude_nat_origin, longitude_nat_origin, false_easting, false_northing)
    return _create("9820", values, angular_unit, linear_unit)


def conversion_azimuthal_equidistant(
    latitude_nat_origin: float,
    longitude_nat_origin: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _origin_4(latitude_nat_origin, longitude_nat_origin, false_easting, false_northing)
    return _create("1125", values, angular_unit, linear_unit)


def conversion_cassini_soldner(
    center_lat: float,
    center_long: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _origin_4(center_lat, center_long, false_easting, false_northing)
    return _create("9806", values, angular_unit, linear_unit)


def conversion_american_polyconic(
    center_lat: float,
    center_long: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _origin_4(center_lat, center_long, false_easting, false_northing)
    return _create("9818", values, angular_unit, linear_unit)


def conversion_new_zealand_mapping_grid(
    center_lat: float,
    center_long: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _origin_4(center_lat, center_long, false_easting, false_northing)
    return _create("9811", values, angular_unit, linear_unit)


def conversion_orthographic(
    center_lat: float,
    center_long: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _origin_4(center_lat, center_long, false_easting, false_northing)
    return _create("9840", values, angular_unit, linear_unit)


def conversion_gnomonic(
    center_lat: float,
    center_long: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = _origin_4(center_lat, center_long, false_easting, false_northing)
    return _create("Gnomonic", values, angular_unit, linear_unit)


def conversion_equidistant_cylindrical(
    latitude_first_parallel: float,
    longitude_nat_origin: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = {
        "8823": latitude_first_parallel,
        "8802": longitude_nat_origin,
        "8806": false_easting,
        "8807": false_northing,
    }
    return _create("1028", values, angular_unit, linear_unit)


def conversion_lambert_cylindrical_equal_area(
    latitude_first_parallel: float,
    longitude_nat_origin: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = {
        "8823": latitude_first_parallel,
        "8802": longitude_nat_origin,
        "8806": false_easting,
        "8807": false_northing,
    }
    return _create("9835", values, angular_unit, linear_unit)


def conversion_krovak(
    latitude_projection_centre: float,
    longitude_of_origin: float,
    colatitude_cone_axis: float,
    latitude_pseudo_standard_parallel: float,
    scale_factor_pseudo_standard_parallel: float,
    false_easting: float,
    false_northing: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = {
        "8811": latitude_projection_centre,
        "8833": longitude_of_origin,
        "1036": colatitude_cone_axis,
        "8818": latitude_pseudo_standard_parallel,
        "8819": scale_factor_pseudo_standard_parallel,
        "8806": false_easting,
        "8807": false_northing,
    }
    return _create("9819", values, angular_unit, linear_unit)


def conversion_hotine_oblique_mercator_variant_b(
    latitude_projection_centre: float,
    longitude_projection_centre: float,
    azimuth_initial_line: float,
    angle_from_rectified_to_skew_grid: float,
    scale: float,
    easting_projection_centre: float,
    northing_projection_centre: float,
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
) -> Conversion:
    values = {
        "8811": latitude_projection_centre,
        "8812": longitude_projection_centre,
        "8813": azimuth_initial_line,
        "8814": angle_from_rectified_to_skew_grid,
        "8815": scale,
        "8816": easting_projection_centre,
        "8817": northing_projection_centre,
    }
    return _create("9815", values, angular_unit, linear_unit)


def _world(method: str, center_long, false_easting, false_northing, angular_unit, linear_unit) -> Conversion:
    values = {"8802": center_long, "8806": false_easting, "8807": false_northing}
    return _create(method, values, angular_unit, linear_unit)


def conversion_mollweide(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Mollweide", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_robinson(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Robinson", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_sinusoidal(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Sinusoidal", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_equal_earth(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("1078", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_eckert_iv(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Eckert IV", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_eckert_vi(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Eckert VI", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_miller_cylindrical(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Miller Cylindrical", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_gall(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Gall Stereographic", center_long, false_easting, false_northing, angular_unit, linear_unit)


def conversion_van_der_grinten(
    center_long: float, false_easting: float, false_northing: float,
    angular_unit: Unit = DEGREE, linear_unit: Unit = METRE,
) -> Conversion:
    return _world("Van Der Grinten", center_long, false_easting, false_northing, angular_unit, linear_unit)
