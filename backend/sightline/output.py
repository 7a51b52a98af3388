from __future__ import annotations

from typing import Any

from sightline.raycast import Segment
from sightline.sweep import VisibilitySet


def segment_to_feature(segment: Segment) -> dict[str, Any]:
  """GeoJSON LineString feature with exactly two [lon, lat] vertices."""

  return {
    "type": "Feature",
    "properties": {"bearing": segment.bearing},
    "geometry": {
      "type": "LineString",
      "coordinates": [segment.start.as_lonlat(), segment.end.as_lonlat()],
    },
  }


def visibility_set_to_geojson(visibility: VisibilitySet) -> dict[str, Any]:
  return {
    "type": "FeatureCollection",
    "features": [segment_to_feature(segment) for segment in visibility.segments if segment.blocked],
  }


def visibility_metadata(visibility: VisibilitySet) -> dict[str, Any]:
  return {
    "rayCount": len(visibility.bearings),
    "segmentCount": len(visibility.segments),
    "failedRays": visibility.failed_rays,
    "noDataSamples": visibility.no_data_samples,
  }
