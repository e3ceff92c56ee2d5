import xml.etree.ElementTree as ET
import pandas as pd
import numpy as np

from .model import Feature, FeatureCatalog, ImageInfo, RunContext, Shape, Spot, Track

# Spot attributes that are bookkeeping rather than features
_NON_FEATURE_ATTRS = {"ID", "id", "name", "ROI_N_POINTS"}
# ImageData attributes that are always text, even when they look numeric
_IMAGE_TEXT_ATTRS = {"filename", "folder"}


def _localname(tag):
    """Return XML local name without namespace."""
    return tag.split('}')[-1] if '}' in tag else tag


def _parse_roi(elem):
    """Return a Shape from a Spot's ROI polygon, or None."""
    n = elem.attrib.get('ROI_N_POINTS')
    if not n or not elem.text or not elem.text.strip():
        return None
    coords = np.array(elem.text.split(), dtype=float)
    n = int(n)
    if coords.size != 2 * n:
        raise ValueError(f"Spot {elem.attrib.get('ID')} declares {n} ROI points "
                         f"but carries {coords.size} coordinates")
    return Shape(coords[0::2].tolist(), coords[1::2].tolist())


def parse_trackmate_xml(xml_path):
    """
    Parse a TrackMate XML file into spot and edge tables.

    Parameters
    ----------
    xml_path : str
        Path to the TrackMate XML file.

    Returns
    -------
    spots_df : pd.DataFrame
        Spot-level data: 'spot_id', 'frame', 'track_id', 'shape' and every
        numeric spot attribute under its TrackMate name.
    edges_df : pd.DataFrame
        Columns ['source', 'target', 'track_id'].
    """
    tree = ET.parse(xml_path)
    root = tree.getroot()

    # Collect all spots
    spots = []
    for elem in root.iter():
        if _localname(elem.tag) == 'Spot':
            a = elem.attrib
            sid = int(a.get('ID') or a.get('id', -1))
            frame = int(float(a.get('FRAME') or a.get('frame') or 0))
            rec = {'spot_id': sid, 'frame': frame, 'shape': _parse_roi(elem)}
            for k, v in a.items():
                if k in _NON_FEATURE_ATTRS or k in ('FRAME', 'frame'):
                    continue
                try:
                    rec[k] = float(v)
                except ValueError:
                    rec[k] = v
            spots.append(rec)

    spots_df = pd.DataFrame(spots)
    if spots_df.empty:
        raise ValueError(f"No <Spot> elements found in {xml_path}")

    # Map spot_id -> track_id
    spot_to_track = {}
    edges = []
    for elem in root.iter():
        if _localname(elem.tag) == 'Track':
            track_id = int(elem.attrib.get('TRACK_ID', -1))
            for child in elem.iter():
                lname = _localname(child.tag)
                if lname == 'SpotRef':
                    sid = child.attrib.get('ID') or child.attrib.get('id')
                    if sid:
                        spot_to_track[int(sid)] = track_id
                elif lname == 'Edge':
                    s = child.attrib.get('SPOT_SOURCE_ID') or child.attrib.get('source')
                    t = child.attrib.get('SPOT_TARGET_ID') or child.attrib.get('target')
                    if s:
                        spot_to_track[int(s)] = track_id
                    if t:
                        spot_to_track[int(t)] = track_id
                    if s and t:
                        edges.append({'source': int(s), 'target': int(t), 'track_id': track_id})

    spots_df["track_id"] = spots_df["spot_id"].map(spot_to_track).astype("Int64")
    edges_df = pd.DataFrame(edges, columns=['source', 'target', 'track_id'])
    return spots_df, edges_df


def extract_image_metadata(xml_path):
    """Extract <ImageData> metadata from TrackMate XML."""
    tree = ET.parse(xml_path)
    root = tree.getroot()

    metadata = {}
    for elem in root.iter():
        if elem.tag.endswith("ImageData"):
            for k, v in elem.attrib.items():
                if k.lower() in _IMAGE_TEXT_ATTRS:
                    metadata[k.lower()] = v
                    continue
                try:
                    if "." in v or "e" in v.lower():
                        metadata[k.lower()] = float(v)
                    else:
                        metadata[k.lower()] = int(v)
                except ValueError:
                    metadata[k.lower()] = v
            break
    return metadata


def extract_model_units(xml_path):
    """Return (spatial_units, time_units) from the <Model> element."""
    root = ET.parse(xml_path).getroot()
    for elem in root.iter():
        if _localname(elem.tag) == "Model":
            return elem.attrib.get("spatialunits"), elem.attrib.get("timeunits", "frames")
    return None, "frames"


def extract_feature_catalog(xml_path):
    """Spot features declared in <FeatureDeclarations>, in file order."""
    root = ET.parse(xml_path).getroot()
    features = []
    for elem in root.iter():
        if _localname(elem.tag) == "SpotFeatures":
            for feat in elem:
                if _localname(feat.tag) != "Feature":
                    continue
                features.append(Feature(
                    feat.attrib["feature"],
                    feat.attrib.get("isint", "false").lower() == "true",
                ))
            break
    return FeatureCatalog(features)


def extract_visible_track_ids(xml_path):
    """Track IDs listed under <FilteredTracks>, or None if the block is absent."""
    root = ET.parse(xml_path).getroot()
    for elem in root.iter():
        if _localname(elem.tag) == "FilteredTracks":
            return [int(t.attrib["TRACK_ID"]) for t in elem
                    if _localname(t.tag) == "TrackID"]
    return None


def _row_to_spot(row, feature_names):
    features = {}
    for name in feature_names:
        v = row.get(name)
        if v is None or (isinstance(v, float) and np.isnan(v)):
            continue
        features[name] = v
    z = row.get("POSITION_Z")
    shape = row.get("shape")
    return Spot(
        frame=int(row["frame"]),
        x=float(row.get("POSITION_X", 0.0)),
        y=float(row.get("POSITION_Y", 0.0)),
        z=0.0 if z is None or pd.isna(z) else float(z),
        features=features,
        shape=shape if isinstance(shape, Shape) else None,
        spot_id=int(row["spot_id"]),
    )


def load_trackmate_model(xml_path):
    """
    Load the visible tracks and the run context from a TrackMate XML file.

    TrackMate files store 0-based frames, so the returned context has
    frame_base=0.

    Returns
    -------
    tracks : list of Track
    context : RunContext
    """
    spots_df, edges_df = parse_trackmate_xml(xml_path)
    catalog = extract_feature_catalog(xml_path)
    space_units, time_units = extract_model_units(xml_path)
    meta = extract_image_metadata(xml_path)
    visible = extract_visible_track_ids(xml_path)

    feature_names = [f.name for f in catalog]
    tracked = spots_df[spots_df["track_id"].notna()]
    tracks = []
    for tid, df in tracked.groupby("track_id", sort=True):
        tid = int(tid)
        if visible is not None and tid not in visible:
            continue
        spots = [_row_to_spot(row, feature_names) for row in df.to_dict("records")]
        e = edges_df[edges_df["track_id"] == tid]
        tracks.append(Track(tid, spots, list(zip(e["source"].tolist(), e["target"].tolist()))))

    image = None
    if meta:
        image = ImageInfo(
            width=int(meta.get("width", 0)),
            height=int(meta.get("height", 0)),
            nchannels=int(meta.get("nchannels", 1)),
            nslices=int(meta.get("nslices", 1)),
            nframes=int(meta.get("nframes", 1)),
            filename=meta.get("filename") or None,
            folder=meta.get("folder") or None,
        )

    context = RunContext(
        space_units=space_units,
        frame_interval=meta.get("timeinterval"),
        time_units=time_units,
        features=catalog,
        image=image,
        frame_base=0,
    )
    return tracks, context
