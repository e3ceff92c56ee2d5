"""
MoleculeArchive containers and their on-disk formats.

An archive holds run metadata, the image descriptors its records refer
to and one record per exported track. Records and descriptors are keyed
by generated UIDs so that archives from separate runs can be merged
without collisions.
"""

import json
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

UNKNOWN = "unknown"


class RecordKind(Enum):
    POINT = "point"
    SHAPE = "shape"


def new_uid():
    return uuid.uuid4().hex


@dataclass
class MoleculeRecord:
    uid: str
    table: pd.DataFrame
    parameters: Dict[str, object] = field(default_factory=dict)

    kind = RecordKind.POINT


@dataclass
class ShapeRecord(MoleculeRecord):
    # zero-based frame -> (x vertices, y vertices)
    shapes: Dict[int, tuple] = field(default_factory=dict)

    kind = RecordKind.SHAPE


@dataclass
class Plane:
    z: int
    c: int
    t: int


@dataclass
class ImageDescriptor:
    uid: str
    size_x: int
    size_y: int
    size_c: int = 1
    size_z: int = 1
    size_t: int = 1
    dimension_order: str = "XYCZT"
    source_directory: str = UNKNOWN
    source_name: str = UNKNOWN
    channels: List[dict] = field(default_factory=list)
    planes: List[Plane] = field(default_factory=list)


@dataclass
class ArchiveMetadata:
    generated: str
    n_records: int
    space_units: str
    frame_interval: float
    time_units: str
    kind: RecordKind
    provenance: str


class Archive:
    """
    Records keyed by UID plus the image descriptors they reference.

    Each record's `metadata_uid` parameter names a descriptor in
    `images`; merging carries the other archive's descriptors along.
    """

    def __init__(self, metadata, image=None):
        self.metadata = metadata
        self.images = {}
        self.records = {}
        if image is not None:
            self.add_image(image)

    @property
    def image(self):
        """Descriptor of the first run in this archive, or None."""
        return next(iter(self.images.values()), None)

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records.values())

    def add(self, record):
        if record.uid in self.records:
            raise KeyError(f"Duplicate record UID {record.uid}")
        self.records[record.uid] = record

    def add_image(self, image):
        if image.uid in self.images:
            raise KeyError(f"Duplicate image metadata UID {image.uid}")
        self.images[image.uid] = image

    def merge(self, other):
        """Add every record and image descriptor from another archive."""
        if other.metadata.kind is not self.metadata.kind:
            raise ValueError(
                f"Cannot merge a {other.metadata.kind.value} archive "
                f"into a {self.metadata.kind.value} archive."
            )
        dupes = set(self.records) & set(other.records)
        if dupes:
            raise KeyError(f"Duplicate record UID(s) {sorted(dupes)}")
        for image in other.images.values():
            if image.uid not in self.images:
                self.add_image(image)
        for record in other:
            self.add(record)
        self.metadata.n_records = len(self.records)
        return self


def _clean(value):
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return None if np.isnan(value) else float(value)
    return value


def _table_to_json(table):
    return {col: [_clean(v) for v in table[col].tolist()] for col in table.columns}


def _table_from_json(columns):
    # null cells come back as NaN, int columns without gaps stay int
    return pd.DataFrame(columns).apply(pd.to_numeric, errors="coerce")


def archive_to_dict(archive):
    meta = archive.metadata
    doc = {
        "MoleculeArchiveProperties": {
            "generationDateTime": meta.generated,
            "numberOfMolecules": meta.n_records,
            "spaceUnits": meta.space_units,
            "frameInterval": meta.frame_interval,
            "timeUnits": meta.time_units,
            "kind": meta.kind.value,
            "from": meta.provenance,
        },
        "ImageMetadata": [],
        "Molecules": [],
    }
    for img in archive.images.values():
        doc["ImageMetadata"].append({
            "UID": img.uid,
            "SizeX": img.size_x,
            "SizeY": img.size_y,
            "SizeC": img.size_c,
            "SizeZ": img.size_z,
            "SizeT": img.size_t,
            "DimensionOrder": img.dimension_order,
            "SourceDirectory": img.source_directory,
            "SourceName": img.source_name,
            "Channels": img.channels,
            "Planes": [{"Z": p.z, "C": p.c, "T": p.t} for p in img.planes],
        })
    for rec in archive:
        mol = {
            "UID": rec.uid,
            "Parameters": {k: _clean(v) for k, v in rec.parameters.items()},
            "Table": _table_to_json(rec.table),
        }
        if rec.kind is RecordKind.SHAPE:
            mol["Shapes"] = {
                str(frame): {"x": list(xs), "y": list(ys)}
                for frame, (xs, ys) in rec.shapes.items()
            }
        doc["Molecules"].append(mol)
    return doc


def archive_from_dict(doc):
    props = doc["MoleculeArchiveProperties"]
    kind = RecordKind(props["kind"])
    meta = ArchiveMetadata(
        generated=props["generationDateTime"],
        n_records=props["numberOfMolecules"],
        space_units=props["spaceUnits"],
        frame_interval=props["frameInterval"],
        time_units=props["timeUnits"],
        kind=kind,
        provenance=props["from"],
    )
    archive = Archive(meta)
    for im in doc.get("ImageMetadata", []):
        archive.add_image(ImageDescriptor(
            uid=im["UID"], size_x=im["SizeX"], size_y=im["SizeY"],
            size_c=im["SizeC"], size_z=im["SizeZ"], size_t=im["SizeT"],
            dimension_order=im["DimensionOrder"],
            source_directory=im["SourceDirectory"], source_name=im["SourceName"],
            channels=im["Channels"],
            planes=[Plane(p["Z"], p["C"], p["T"]) for p in im["Planes"]],
        ))
    for mol in doc["Molecules"]:
        table = _table_from_json(mol["Table"])
        if kind is RecordKind.SHAPE:
            shapes = {int(k): (v["x"], v["y"]) for k, v in mol.get("Shapes", {}).items()}
            rec = ShapeRecord(mol["UID"], table, mol["Parameters"], shapes)
        else:
            rec = MoleculeRecord(mol["UID"], table, mol["Parameters"])
        archive.add(rec)
    return archive


def save_archive(archive, path):
    """Write an archive as a JSON document."""
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(archive_to_dict(archive), fh, indent=2)


def load_archive(path):
    with open(path, "r", encoding="utf-8") as fh:
        return archive_from_dict(json.load(fh))


def archive_to_xml(archive):
    """Build the flat <Tracks><particle><detection/> document."""
    meta = archive.metadata
    root = ET.Element("Tracks")
    root.set("nTracks", str(meta.n_records))
    root.set("spaceUnits", str(meta.space_units))
    root.set("frameInterval", str(meta.frame_interval))
    root.set("timeUnits", str(meta.time_units))
    root.set("generationDateTime", meta.generated)
    root.set("from", meta.provenance)
    for rec in archive:
        particle = ET.SubElement(root, "particle")
        particle.set("nSpots", str(len(rec.table)))
        for row in rec.table[["frame", "x", "y", "z"]].itertuples(index=False):
            det = ET.SubElement(particle, "detection")
            det.set("t", str(int(row.frame)))
            det.set("x", str(float(row.x)))
            det.set("y", str(float(row.y)))
            det.set("z", str(float(row.z)))
    return root


def write_tracks_xml(archive, path):
    tree = ET.ElementTree(archive_to_xml(archive))
    ET.indent(tree, space="  ")
    tree.write(path, encoding="UTF-8", xml_declaration=True)
