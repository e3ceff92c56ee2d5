"""
Command-line interface for batch conversion of TrackMate XML files.

Uses the `process_trackmate_folder()` function defined in `batch.py`.

Example usage:
    python batch_cli.py --input ./data/xmls --output ./archives --format xml
"""

import argparse
from trackmate_mars import log
from trackmate_mars.batch import process_trackmate_folder


def main():
    parser = argparse.ArgumentParser(
        description="Convert TrackMate XML files to Mars MoleculeArchives."
    )

    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input folder containing TrackMate XML files."
    )
    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output folder for the archives and the export summary."
    )
    parser.add_argument(
        "--format", "-f",
        choices=["archive", "xml"],
        default="archive",
        help="Output format: JSON MoleculeArchive or legacy Tracks XML."
    )
    parser.add_argument(
        "--min-spots",
        type=int,
        default=None,
        help="Drop tracks with fewer spots than this."
    )
    log.add_argument(parser)

    args = parser.parse_args()
    log.get_logger(__file__, args.log_level.upper())

    process_trackmate_folder(folder=args.input, out_root=args.output,
                             fmt=args.format, min_spots=args.min_spots)


if __name__ == "__main__":
    main()
