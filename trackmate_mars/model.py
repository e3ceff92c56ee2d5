from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

# Host feature keys that map onto the fixed leading columns.
FRAME_KEYS = ("FRAME", "frame", "T", "t")
X_KEYS = ("POSITION_X", "x", "X")
Y_KEYS = ("POSITION_Y", "y", "Y")
Z_KEYS = ("POSITION_Z", "z", "Z")
POSITION_KEYS = frozenset(FRAME_KEYS + X_KEYS + Y_KEYS + Z_KEYS)


class MissingMetadataError(ValueError):
    """Raised when the run context lacks a field required for export."""


@dataclass
class Shape:
    """ROI polygon, vertex offsets relative to the spot centre."""
    x: Sequence[float]
    y: Sequence[float]

    def __post_init__(self):
        if len(self.x) != len(self.y):
            raise ValueError("Shape x and y must have the same number of vertices.")

    def positions(self, cx, cy):
        """Absolute vertex coordinates for a spot centred at (cx, cy)."""
        return [float(cx + dx) for dx in self.x], [float(cy + dy) for dy in self.y]


@dataclass
class Spot:
    frame: int
    x: float
    y: float
    z: float = 0.0
    features: Dict[str, float] = field(default_factory=dict)
    shape: Optional[Shape] = None
    spot_id: Optional[int] = None

    def get_feature(self, name):
        """Return a feature value, or None when the spot does not define it."""
        return self.features.get(name)


@dataclass
class Track:
    track_id: int
    spots: List[Spot] = field(default_factory=list)
    # (source spot_id, target spot_id) pairs, when the host provides them
    edges: List[tuple] = field(default_factory=list)

    def __len__(self):
        return len(self.spots)


@dataclass(frozen=True)
class Feature:
    name: str
    isint: bool = False


class FeatureCatalog:
    """
    Ordered spot features known for a whole run.

    The order is the host's reported order and drives the table columns
    that follow frame, x, y and z.
    """

    def __init__(self, features=()):
        self._features = []
        for feat in features:
            if isinstance(feat, str):
                feat = Feature(feat)
            elif isinstance(feat, tuple):
                feat = Feature(*feat)
            self._features.append(feat)

    def __iter__(self):
        return iter(self._features)

    def __len__(self):
        return len(self._features)

    def __contains__(self, name):
        return any(f.name == name for f in self._features)

    def isint(self, name):
        for f in self._features:
            if f.name == name:
                return f.isint
        raise KeyError(name)

    def extra_features(self):
        """Features other than frame/x/y/z, in catalog order, without duplicates."""
        seen = set()
        out = []
        for f in self._features:
            if f.name in POSITION_KEYS or f.name in seen:
                continue
            seen.add(f.name)
            out.append(f)
        return out


@dataclass
class ImageInfo:
    width: int
    height: int
    nchannels: int = 1
    nslices: int = 1
    nframes: int = 1
    filename: Optional[str] = None
    folder: Optional[str] = None
    channel_names: Optional[List[str]] = None


@dataclass
class RunContext:
    """Run-level settings read once per export."""
    space_units: Optional[str]
    frame_interval: Optional[float]
    time_units: str = "frames"
    features: FeatureCatalog = field(default_factory=FeatureCatalog)
    image: Optional[ImageInfo] = None
    frame_base: int = 1
    provenance: Optional[str] = None

    def validate(self):
        missing = []
        if not self.space_units:
            missing.append("space_units")
        if self.frame_interval is None:
            missing.append("frame_interval")
        if missing:
            raise MissingMetadataError(
                f"Run metadata is missing required field(s): {', '.join(missing)}"
            )
