"""Tests for archive.py."""

import xml.etree.ElementTree as ET

import numpy as np
import pandas as pd
import pytest

from conftest import make_track
from trackmate_mars.archive import (
    Archive, ArchiveMetadata, MoleculeRecord, RecordKind, ShapeRecord,
    load_archive, save_archive, write_tracks_xml,
)
from trackmate_mars.exporter import export_tracks


def _metadata(kind=RecordKind.POINT):
    return ArchiveMetadata("Mon, 19 Oct 2026 10:00:00", 0, "micron", 1.0, "sec", kind, "test")


class TestArchive:
    def test_duplicate_uid_rejected(self):
        archive = Archive(_metadata())
        table = pd.DataFrame({"frame": [0], "x": [0.0], "y": [0.0], "z": [0.0]})
        archive.add(MoleculeRecord("abc", table))
        with pytest.raises(KeyError):
            archive.add(MoleculeRecord("abc", table))

    def test_merge_updates_count(self):
        a = Archive(_metadata())
        b = Archive(_metadata())
        table = pd.DataFrame({"frame": [0], "x": [0.0], "y": [0.0], "z": [0.0]})
        b.add(MoleculeRecord("one", table))
        b.add(MoleculeRecord("two", table))
        a.merge(b)
        assert a.metadata.n_records == 2

    def test_merge_kind_mismatch(self):
        a = Archive(_metadata(RecordKind.POINT))
        b = Archive(_metadata(RecordKind.SHAPE))
        with pytest.raises(ValueError):
            a.merge(b)


class TestJsonArchive:
    def test_save_and_load(self, tmp_path, context, image_info):
        context.image = image_info
        track = make_track(5, [1, 2, 3])
        del track.spots[1].features["QUALITY"]
        archive = export_tracks([track], context)
        path = tmp_path / "out.yama"
        save_archive(archive, path)

        loaded = load_archive(path)
        assert loaded.metadata.kind is RecordKind.POINT
        assert loaded.metadata.space_units == "micron"
        assert loaded.image.size_c == 2
        assert len(loaded.image.planes) == 24

        rec = next(iter(loaded))
        orig = next(iter(archive))
        assert rec.uid == orig.uid
        assert rec.parameters["track_id"] == 5
        assert list(rec.table.columns) == list(orig.table.columns)
        assert rec.table["frame"].tolist() == [0, 1, 2]
        assert np.isnan(rec.table["QUALITY"].iloc[1])

    def test_shapes_saved(self, tmp_path, context):
        archive = export_tracks([make_track(1, [1, 2], shape=True)], context)
        path = tmp_path / "shapes.yama"
        save_archive(archive, path)
        loaded = load_archive(path)
        rec = next(iter(loaded))
        assert isinstance(rec, ShapeRecord)
        assert sorted(rec.shapes) == [0, 1]
        assert rec.shapes[0] == next(iter(archive)).shapes[0]


class TestTracksXml:
    def test_document_layout(self, tmp_path, context):
        tracks = [make_track(0, [2, 1]), make_track(1, [1, 2, 3])]
        archive = export_tracks(tracks, context)
        path = tmp_path / "movie_Tracks.xml"
        write_tracks_xml(archive, path)

        root = ET.parse(path).getroot()
        assert root.tag == "Tracks"
        assert root.attrib["nTracks"] == "2"
        assert root.attrib["spaceUnits"] == "micron"
        assert root.attrib["frameInterval"] == "0.5"
        assert root.attrib["timeUnits"] == "sec"
        assert "generationDateTime" in root.attrib
        assert "from" in root.attrib

        particles = root.findall("particle")
        assert [p.attrib["nSpots"] for p in particles] == ["2", "3"]
        first = particles[0].findall("detection")
        assert [d.attrib["t"] for d in first] == ["0", "1"]
        assert first[0].attrib["x"] == "1.0"


class TestMergedRuns:
    def test_image_references_survive_merge_and_reload(self, tmp_path, three_tracks, context, image_info):
        context.image = image_info
        first = export_tracks(three_tracks, context)
        second = export_tracks(three_tracks, context)
        first.merge(second)
        assert len(first.images) == 2

        path = tmp_path / "merged.yama"
        save_archive(first, path)
        loaded = load_archive(path)
        assert len(loaded) == 6
        assert set(loaded.images) == set(first.images)
        for rec in loaded:
            assert rec.parameters["metadata_uid"] in loaded.images

    def test_merge_refuses_shared_record_uid(self):
        table = pd.DataFrame({"frame": [0], "x": [0.0], "y": [0.0], "z": [0.0]})
        a = Archive(_metadata())
        b = Archive(_metadata())
        a.add(MoleculeRecord("same", table))
        b.add(MoleculeRecord("new", table))
        b.add(MoleculeRecord("same", table))
        with pytest.raises(KeyError):
            a.merge(b)
        assert list(a.records) == ["same"]
