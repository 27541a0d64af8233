"""
Output writer module for simplified layers.

Handles writing simplified feature collections to GeoPackage or Shapefile,
including CSV logging of features that were rejected as malformed.
"""

import csv
import logging
from collections.abc import Hashable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from mapsimplify.core.geometry import Feature
from mapsimplify.core.io import features_to_geodataframe

logger = logging.getLogger(__name__)

REJECTED_CSV = "REJECTED.csv"


class OutputFormat(str, Enum):
    """Supported output file formats."""

    GEOPACKAGE = "gpkg"
    SHAPEFILE = "shp"

    @property
    def driver(self) -> str:
        return "GPKG" if self is OutputFormat.GEOPACKAGE else "ESRI Shapefile"


@dataclass
class RejectedRecord:
    """
    Record of a rejected feature within a named layer.

    Attributes:
        layer_name: Name of the layer the feature belongs to
        feature_id: Identifier of the feature
        error: Description of what went wrong
    """

    layer_name: str
    feature_id: Hashable
    error: str


class OutputWriter:
    """
    Handles output file writing for simplification results.

    Writes one file per layer into the output directory and maintains a
    centralized REJECTED.csv log for all layers.
    """

    def __init__(
        self,
        output_dir: Path,
        output_format: OutputFormat = OutputFormat.GEOPACKAGE,
        target_crs: str | None = None,
    ):
        """
        Initialize writer with output directory.

        Args:
            output_dir: Base directory for all outputs
            output_format: File format for simplified layers
            target_crs: Reproject layers to this CRS before writing
        """
        self.output_dir = Path(output_dir)
        self.output_format = OutputFormat(output_format)
        self.target_crs = target_crs
        self.rejected: list[RejectedRecord] = []

    def get_layer_path(self, layer_name: str) -> Path:
        """Path of the output file for a layer."""
        return self.output_dir / f"{layer_name}.{self.output_format.value}"

    def check_output_exists(self, layer_name: str) -> bool:
        return self.get_layer_path(layer_name).exists()

    def write_layer(
        self,
        layer_name: str,
        features: list[Feature],
        crs=None,
        columns: list[str] | None = None,
    ) -> Path:
        """
        Write a simplified layer.

        Args:
            layer_name: Name of the layer (used as file stem and GeoPackage layer)
            features: Simplified features
            crs: CRS of the feature coordinates
            columns: Attribute column order

        Returns:
            Path to the written file

        Raises:
            ValueError: If features is empty
        """
        if not features:
            raise ValueError(f"Cannot write layer '{layer_name}': no features provided")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_layer_path(layer_name)

        gdf = features_to_geodataframe(features, crs=crs, columns=columns)
        if self.target_crs is not None:
            if gdf.crs is None:
                raise ValueError(f"Cannot reproject layer '{layer_name}' to {self.target_crs}: source CRS is unknown")
            logger.info(f"Reprojecting layer '{layer_name}' from {gdf.crs} to {self.target_crs}")
            gdf = gdf.to_crs(self.target_crs)

        # Keep feature ids as a regular column so they survive formats without an index
        gdf = gdf.reset_index(names="feature_id") if "feature_id" not in gdf.columns else gdf.reset_index(drop=True)

        logger.info(f"Writing {len(gdf)} features for layer '{layer_name}' to {path}")
        if self.output_format is OutputFormat.GEOPACKAGE:
            gdf.to_file(path, driver=self.output_format.driver, layer=layer_name)
        else:
            gdf.to_file(path, driver=self.output_format.driver)

        logger.info(f"Successfully wrote {path}")
        return path

    def record_rejection(self, layer_name: str, feature_id: Hashable, error: str) -> None:
        """
        Record a rejected feature for later writing to REJECTED.csv.

        Args:
            layer_name: Name of the layer the feature belongs to
            feature_id: Identifier of the feature
            error: Description of what went wrong
        """
        self.rejected.append(RejectedRecord(layer_name=layer_name, feature_id=feature_id, error=error))
        logger.warning(f"Recorded rejection for {layer_name}/{feature_id}: {error}")

    def write_rejected_csv(self) -> Path | None:
        """
        Write all recorded rejections to REJECTED.csv.

        CSV columns: layer_name, feature_id, error

        Returns:
            Path to REJECTED.csv if any rejections were recorded, else None
        """
        if not self.rejected:
            logger.info("No rejections to write")
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        rejected_csv = self.output_dir / REJECTED_CSV

        logger.info(f"Writing {len(self.rejected)} rejections to {rejected_csv}")

        with open(rejected_csv, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["layer_name", "feature_id", "error"])

            for record in self.rejected:
                writer.writerow([record.layer_name, record.feature_id, record.error])

        return rejected_csv

    def finalize(self) -> Path | None:
        """
        Finalize output by writing REJECTED.csv.

        Call this after all layers have been processed.

        Returns:
            Path to REJECTED.csv if any rejections occurred, else None
        """
        return self.write_rejected_csv()
