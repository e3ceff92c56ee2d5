"""
Convert TrackMate tracks into a Mars MoleculeArchive.

Each visible track becomes one record whose table lists the track's
spots sorted by frame. The record kind (plain points or points with
shapes) is decided once for the whole run.
"""

from datetime import datetime

import numpy as np
import pandas as pd

from . import __version__
from .archive import (
    Archive, ArchiveMetadata, ImageDescriptor, MoleculeRecord, Plane,
    RecordKind, ShapeRecord, UNKNOWN, new_uid,
)
from .lineage import is_branching
from .log import LoggerSink

PLUGIN_NAME = "trackmate_mars"
BASE_COLUMNS = ["frame", "x", "y", "z"]
TIME_FORMAT = "%a, %d %b %Y %H:%M:%S"


class MixedShapeError(ValueError):
    """Raised when only some spots of a run carry a shape."""


def select_kind(tracks):
    """Pick the record kind for a whole run from the spots' shapes."""
    n_shaped = 0
    n_total = 0
    for track in tracks:
        for spot in track.spots:
            n_total += 1
            if spot.shape is not None:
                n_shaped += 1
    if n_shaped == 0:
        return RecordKind.POINT
    if n_shaped == n_total:
        return RecordKind.SHAPE
    raise MixedShapeError(
        f"{n_shaped} of {n_total} spots carry a shape; "
        "a run must be either all shapes or no shapes."
    )


def sort_spots(spots):
    # sorted() is stable, ties keep the host's iteration order
    return sorted(spots, key=lambda s: s.frame)


def _cell(value, isint):
    if value is None:
        return np.nan
    try:
        if np.isnan(value):
            return np.nan
    except TypeError:
        pass
    return int(value) if isint else float(value)


def build_track_table(spots, extra_features, frame_base=1):
    """
    Build the per-track table.

    Parameters
    ----------
    spots : list of Spot
        Spots already sorted by frame.
    extra_features : list of Feature
        Catalog features other than frame/x/y/z, in catalog order.
    frame_base : int
        Host index of the first frame; subtracted to make frames 0-based.

    Returns
    -------
    table : pd.DataFrame
        Columns frame, x, y, z followed by the extra features.
    """
    data = {
        "frame": [int(s.frame) - frame_base for s in spots],
        "x": [float(s.x) for s in spots],
        "y": [float(s.y) for s in spots],
        "z": [float(s.z) for s in spots],
    }
    for feat in extra_features:
        data[feat.name] = [_cell(s.get_feature(feat.name), feat.isint) for s in spots]
    columns = BASE_COLUMNS + [f.name for f in extra_features]
    return pd.DataFrame(data, columns=columns)


def build_record(track, kind, extra_features, frame_base=1, metadata_uid=None):
    spots = sort_spots(track.spots)
    table = build_track_table(spots, extra_features, frame_base)
    params = {"track_id": track.track_id, "n_spots": len(spots)}
    if metadata_uid is not None:
        params["metadata_uid"] = metadata_uid

    if kind is RecordKind.SHAPE:
        shapes = {}
        for spot in spots:
            shapes[int(spot.frame) - frame_base] = spot.shape.positions(spot.x, spot.y)
        return ShapeRecord(new_uid(), table, params, shapes)
    return MoleculeRecord(new_uid(), table, params)


def build_image_descriptor(image):
    """Structural description of the source image, one plane per (z, c, t)."""
    if image.channel_names:
        names = list(image.channel_names)
    else:
        names = [f"Channel {c}" for c in range(image.nchannels)]
    channels = [{"index": c, "name": names[c] if c < len(names) else f"Channel {c}"}
                for c in range(image.nchannels)]

    planes = [Plane(z, c, t)
              for z in range(image.nslices)
              for c in range(image.nchannels)
              for t in range(image.nframes)]

    return ImageDescriptor(
        uid=new_uid(),
        size_x=image.width,
        size_y=image.height,
        size_c=image.nchannels,
        size_z=image.nslices,
        size_t=image.nframes,
        source_directory=image.folder or UNKNOWN,
        source_name=image.filename or UNKNOWN,
        channels=channels,
        planes=planes,
    )


def export_tracks(tracks, context, logger=None):
    """
    Export tracks to an Archive.

    Returns None when there is nothing to export. Raises
    MissingMetadataError or MixedShapeError before building anything
    when the run cannot be exported.
    """
    logger = logger or LoggerSink()
    tracks = [t for t in tracks if len(t.spots) > 0]
    if not tracks:
        logger.log("No visible track found. Aborting.\n")
        return None

    context.validate()
    kind = select_kind(tracks)
    extra_features = context.features.extra_features()
    image = build_image_descriptor(context.image) if context.image is not None else None

    metadata = ArchiveMetadata(
        generated=datetime.now().strftime(TIME_FORMAT),
        n_records=len(tracks),
        space_units=context.space_units,
        frame_interval=context.frame_interval,
        time_units=context.time_units,
        kind=kind,
        provenance=context.provenance or f"{PLUGIN_NAME} v{__version__}",
    )
    archive = Archive(metadata, image)

    logger.set_status("Marshalling...")
    n = len(tracks)
    for i, track in enumerate(tracks, start=1):
        if track.edges and is_branching(track):
            logger.warn(f"Track {track.track_id} splits or merges; "
                        "its spots are exported as a single time series.\n")
        record = build_record(track, kind, extra_features, context.frame_base,
                              image.uid if image is not None else None)
        archive.add(record)
        logger.set_progress(i / n)

    logger.set_status("")
    logger.set_progress(1)
    return archive
