from sightline.geodesy import GeoPoint
from sightline.output import segment_to_feature, visibility_metadata, visibility_set_to_geojson
from sightline.raycast import RayResult, Segment
from sightline.sweep import VisibilitySet


def _segment(bearing: float) -> Segment:
  return Segment(
    start=GeoPoint(lon=1.5, lat=-2.25),
    end=GeoPoint(lon=1.75, lat=-2.5),
    bearing=bearing,
    start_index=3,
    end_index=9,
  )


def test_segment_feature_has_two_lonlat_vertices() -> None:
  feature = segment_to_feature(_segment(135.0))

  assert feature["type"] == "Feature"
  assert feature["geometry"]["type"] == "LineString"
  assert feature["geometry"]["coordinates"] == [[1.5, -2.25], [1.75, -2.5]]
  assert feature["properties"] == {"bearing": 135.0}


def test_collection_carries_every_segment() -> None:
  visibility = VisibilitySet()
  visibility.add(RayResult(bearing=10.0, segments=[_segment(10.0), _segment(10.0)]))
  visibility.add(RayResult(bearing=20.0))
  visibility.add(RayResult(bearing=30.0, error="boom"))

  collection = visibility_set_to_geojson(visibility)
  assert collection["type"] == "FeatureCollection"
  assert len(collection["features"]) == 2

  assert visibility_metadata(visibility) == {
    "rayCount": 3,
    "segmentCount": 2,
    "failedRays": 1,
    "noDataSamples": 0,
  }
