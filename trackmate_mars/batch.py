import os
import glob
import logging
import xml.etree.ElementTree as ET
from pathlib import Path

import pandas as pd

from .action import FORMATS, GoToMarsAction
from .io import load_trackmate_model
from .log import LoggerSink
from .tracks import filter_tracks_by_length

logger = logging.getLogger(__name__)


def process_trackmate_folder(folder, out_root, fmt="archive", min_spots=None):
    """
    Convert every TrackMate XML file in a folder to a Mars archive.

    Each output is written to `out_root` as the XML file stem plus the
    format suffix. A TSV summary of the run is saved alongside.
    """
    rows = []
    os.makedirs(out_root, exist_ok=True)
    sink = LoggerSink(logger)

    for xml_path in sorted(glob.glob(os.path.join(folder, "*.xml"))):
        fname = os.path.basename(xml_path)
        logger.info(f"Processing {fname} ...")
        try:
            tracks, context = load_trackmate_model(xml_path)
        except (ValueError, ET.ParseError) as e:
            logger.warning(f"Skipping {fname}: {e}")
            continue
        if min_spots is not None:
            tracks = filter_tracks_by_length(tracks, min_spots=min_spots)

        # several XMLs may track the same movie, so name by the XML file
        out_name = Path(fname).stem + FORMATS[fmt][0]
        action = GoToMarsAction(
            logger=sink,
            save_prompt=lambda p, name=out_name: Path(out_root) / name,
            fmt=fmt,
        )
        out_path = action.execute(tracks, context)
        rows.append({
            "xml_file": fname,
            "n_tracks": len(tracks),
            "output": str(out_path) if out_path is not None else None,
        })

    if not rows:
        logger.info("No XML files found or no tracks extracted.")
        return pd.DataFrame(columns=["xml_file", "n_tracks", "output"])

    summary = pd.DataFrame(rows)
    summary_path = os.path.join(out_root, "export_summary.tsv")
    summary.to_csv(summary_path, sep="\t", index=False)
    logger.info(f"Saved export summary to {summary_path}")
    return summary
