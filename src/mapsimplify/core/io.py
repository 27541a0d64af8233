"""
Conversion between GeoDataFrames and typed feature collections.

Reading and writing files is left to geopandas; this module only maps rows
to Features and back. The GeoDataFrame index supplies feature ids and the
non-geometry columns become feature properties.
"""

import logging
from pathlib import Path

import geopandas as gpd
import pandas as pd

from mapsimplify.core.geometry import Feature, RingValidationError, from_shapely, to_shapely
from mapsimplify.core.simplify import RejectedFeature, simplify_features, simplify_features_parallel

logger = logging.getLogger(__name__)


def features_from_geodataframe(
    gdf: gpd.GeoDataFrame,
    on_invalid: str = "skip",
) -> tuple[list[Feature], list[RejectedFeature]]:
    """
    Convert GeoDataFrame rows to Features.

    Args:
        gdf: Polygon layer
        on_invalid: "skip" records rows with unsupported geometry and
                    continues; "raise" propagates the first error

    Returns:
        (features, rejected) with features in row order

    Raises:
        RingValidationError: For an unsupported row when on_invalid="raise"
    """
    geometry_column = gdf.geometry.name
    attribute_columns = [c for c in gdf.columns if c != geometry_column]

    features: list[Feature] = []
    rejected: list[RejectedFeature] = []

    for feature_id, row in gdf.iterrows():
        try:
            geometry = from_shapely(row[geometry_column])
        except RingValidationError as e:
            if on_invalid == "raise":
                raise RingValidationError(f"Feature {feature_id!r}: {e}") from e
            logger.warning(f"Rejected feature {feature_id!r}: {e}")
            rejected.append(RejectedFeature(feature_id=feature_id, error=str(e)))
            continue

        properties = {c: row[c] for c in attribute_columns}
        features.append(Feature(id=feature_id, geometry=geometry, properties=properties))

    return features, rejected


def features_to_geodataframe(
    features: list[Feature],
    crs=None,
    columns: list[str] | None = None,
    index_name: str | None = None,
) -> gpd.GeoDataFrame:
    """
    Convert Features to a GeoDataFrame indexed by feature id.

    Args:
        features: Features to convert
        crs: Coordinate reference system of the coordinates
        columns: Attribute column order (defaults to first-seen order)
        index_name: Name given to the index

    Returns:
        GeoDataFrame with one row per feature
    """
    if columns is None:
        columns = list(dict.fromkeys(key for feature in features for key in feature.properties))

    data = {c: [feature.properties.get(c) for feature in features] for c in columns}
    index = pd.Index([feature.id for feature in features], name=index_name)
    geometries = [to_shapely(feature.geometry) for feature in features]

    return gpd.GeoDataFrame(data, index=index, geometry=geometries, crs=crs)


def read_features(path: Path, layer: str | None = None, on_invalid: str = "skip"):
    """
    Read a polygon layer from any format geopandas supports.

    Args:
        path: Shapefile, GeoPackage, GeoJSON, ...
        layer: Layer name for multi-layer sources
        on_invalid: See features_from_geodataframe

    Returns:
        (features, rejected, crs)

    Raises:
        FileNotFoundError: If the path does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input layer not found: {path}")

    logger.info(f"Reading {path}" + (f" (layer '{layer}')" if layer else ""))
    gdf = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)
    features, rejected = features_from_geodataframe(gdf, on_invalid=on_invalid)
    logger.info(f"Read {len(features)} features from {path}")

    return features, rejected, gdf.crs


def simplify_geodataframe(
    gdf: gpd.GeoDataFrame,
    keep: float = 0.05,
    keep_shapes: bool = True,
    workers: int = 1,
    **options,
) -> gpd.GeoDataFrame:
    """
    Simplify the polygons of a GeoDataFrame.

    Attributes, index and CRS are carried over. Rows with unsupported
    geometry are left out (or raise, with on_invalid="raise").

    Args:
        gdf: Polygon layer
        keep: Proportion of vertices to retain, in (0, 1]
        keep_shapes: Never drop a feature because its geometry collapsed
        workers: Worker processes for independent boundary groups
        **options: Forwarded to simplify_features

    Returns:
        Simplified GeoDataFrame

    Example:
        >>> counties = gpd.read_file("counties.shp")
        >>> simplified = simplify_geodataframe(counties, keep=0.05)
    """
    on_invalid = options.pop("on_invalid", "skip")
    features, _ = features_from_geodataframe(gdf, on_invalid=on_invalid)

    if workers > 1:
        result = simplify_features_parallel(
            features, keep, keep_shapes, workers=workers, on_invalid=on_invalid, **options
        )
    else:
        result = simplify_features(features, keep, keep_shapes, on_invalid=on_invalid, **options)

    columns = [c for c in gdf.columns if c != gdf.geometry.name]
    return features_to_geodataframe(result.features, crs=gdf.crs, columns=columns, index_name=gdf.index.name)
