import pytest

from trackmate_mars.model import (
    Feature, FeatureCatalog, ImageInfo, RunContext, Shape, Spot, Track,
)

SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<TrackMate version="7.11.1">
  <Model spatialunits="micron" timeunits="sec">
    <FeatureDeclarations>
      <SpotFeatures>
        <Feature feature="QUALITY" name="Quality" shortname="Quality" dimension="QUALITY" isint="false" />
        <Feature feature="POSITION_X" name="X" shortname="X" dimension="POSITION" isint="false" />
        <Feature feature="POSITION_Y" name="Y" shortname="Y" dimension="POSITION" isint="false" />
        <Feature feature="POSITION_Z" name="Z" shortname="Z" dimension="POSITION" isint="false" />
        <Feature feature="POSITION_T" name="T" shortname="T" dimension="TIME" isint="false" />
        <Feature feature="FRAME" name="Frame" shortname="Frame" dimension="NONE" isint="true" />
        <Feature feature="VISIBILITY" name="Visibility" shortname="Visibility" dimension="NONE" isint="true" />
      </SpotFeatures>
      <EdgeFeatures />
      <TrackFeatures />
    </FeatureDeclarations>
    <AllSpots nspots="6">
      <SpotsInFrame frame="0">
        <Spot ID="1" name="ID1" QUALITY="5.0" POSITION_T="0.0" POSITION_X="1.0" POSITION_Y="1.0" POSITION_Z="0.0" FRAME="0" VISIBILITY="1" />
        <Spot ID="4" name="ID4" QUALITY="3.0" POSITION_T="0.0" POSITION_X="9.0" POSITION_Y="9.0" POSITION_Z="0.0" FRAME="0" VISIBILITY="1" />
        <Spot ID="7" name="ID7" QUALITY="1.0" POSITION_T="0.0" POSITION_X="20.0" POSITION_Y="20.0" POSITION_Z="0.0" FRAME="0" VISIBILITY="1" />
      </SpotsInFrame>
      <SpotsInFrame frame="1">
        <Spot ID="2" name="ID2" QUALITY="4.0" POSITION_T="2.0" POSITION_X="2.0" POSITION_Y="1.5" POSITION_Z="0.0" FRAME="1" VISIBILITY="1" />
        <Spot ID="5" name="ID5" POSITION_T="2.0" POSITION_X="9.5" POSITION_Y="8.0" POSITION_Z="0.0" FRAME="1" VISIBILITY="1" />
        <Spot ID="8" name="ID8" QUALITY="1.0" POSITION_T="2.0" POSITION_X="21.0" POSITION_Y="20.0" POSITION_Z="0.0" FRAME="1" VISIBILITY="1" />
      </SpotsInFrame>
    </AllSpots>
    <AllTracks>
      <Track name="Track_0" TRACK_ID="0">
        <Edge SPOT_SOURCE_ID="1" SPOT_TARGET_ID="2" />
      </Track>
      <Track name="Track_1" TRACK_ID="1">
        <Edge SPOT_SOURCE_ID="5" SPOT_TARGET_ID="4" />
      </Track>
      <Track name="Track_2" TRACK_ID="2">
        <Edge SPOT_SOURCE_ID="7" SPOT_TARGET_ID="8" />
      </Track>
    </AllTracks>
    <FilteredTracks>
      <TrackID TRACK_ID="0" />
      <TrackID TRACK_ID="1" />
    </FilteredTracks>
  </Model>
  <Settings>
    <ImageData filename="movie.ome.tif" folder="/data/run1" width="64" height="32" nslices="1" nframes="2" pixelwidth="0.1" pixelheight="0.1" voxeldepth="1.0" timeinterval="2.0" />
  </Settings>
</TrackMate>
"""


@pytest.fixture
def catalog():
    return FeatureCatalog([
        Feature("QUALITY", False),
        Feature("POSITION_X", False),
        Feature("POSITION_Y", False),
        Feature("POSITION_Z", False),
        Feature("FRAME", True),
        Feature("VISIBILITY", True),
    ])


@pytest.fixture
def context(catalog):
    return RunContext(
        space_units="micron",
        frame_interval=0.5,
        time_units="sec",
        features=catalog,
    )


def make_track(track_id, frames, positions=None, shape=False, features=None):
    positions = positions or [(float(f), float(f), 0.0) for f in frames]
    spots = []
    for i, (frame, (x, y, z)) in enumerate(zip(frames, positions)):
        spots.append(Spot(
            frame=frame, x=x, y=y, z=z,
            features=dict(features or {"QUALITY": 1.0, "VISIBILITY": 1}),
            shape=Shape([-1.0, 1.0, 0.0], [0.0, 0.0, 1.0]) if shape else None,
            spot_id=track_id * 100 + i,
        ))
    return Track(track_id, spots)


@pytest.fixture
def three_tracks():
    return [make_track(tid, [1, 2, 3]) for tid in range(3)]


@pytest.fixture
def sample_xml(tmp_path):
    path = tmp_path / "sample.xml"
    path.write_text(SAMPLE_XML, encoding="utf-8")
    return path


@pytest.fixture
def image_info():
    return ImageInfo(width=64, height=32, nchannels=2, nslices=3, nframes=4,
                     filename="movie.ome.tif", folder="/data/run1")
