"""
Host-facing "Go to Mars" action.

Wraps `export_tracks` with what the host menu action does around it:
output naming, the save prompt, handing the archive to a command
runner, and reporting failures on the host's log instead of raising.
"""

from pathlib import Path

from .archive import save_archive, write_tracks_xml
from .exporter import MixedShapeError, export_tracks
from .log import LoggerSink
from .model import MissingMetadataError

NAME = "Go to Mars"
KEY = "EXPORT_TRACKS_TO_MARS"
INFO_TEXT = (
    "Export the tracks in the current model content to a Mars "
    "MoleculeArchive and provide the archive as an output. "
    "The MoleculeArchive has one record per track, and each record holds "
    "a table of spots sorted by frame number, with the frame this spot is "
    "in, its X, Y, Z position in physical units and every other spot "
    "feature. Track merging and splitting are not represented; the format "
    "is suited to non-branching tracks."
)

# format -> (suffix, default filename, writer)
FORMATS = {
    "archive": ("_archive.yama", "archive.yama", save_archive),
    "xml": ("_Tracks.xml", "Tracks.xml", write_tracks_xml),
}
OUTPUT_NAME = "archive"


def default_output_path(image=None, fmt="archive"):
    """
    Default save location for an export.

    The folder is the source image folder, else the current directory.
    The name is the image filename up to its first dot plus the format
    suffix, else the format's fixed default name.
    """
    suffix, default_name, _ = FORMATS[fmt]
    folder = Path(image.folder) if image is not None and image.folder else Path.cwd()
    if image is not None and image.filename:
        stem = image.filename.split(".", 1)[0]
        return folder / (stem + suffix)
    return folder / default_name


class GoToMarsAction:
    """
    Parameters
    ----------
    logger : LoggerSink, optional
        Host status channel.
    command_runner : object, optional
        Capability with ``run(name, inputs) -> output``. When given, the
        archive is handed over as the named output instead of written.
    save_prompt : callable, optional
        ``save_prompt(default_path) -> path or None``; None means the user
        cancelled. Without a prompt the default path is used.
    fmt : {'archive', 'xml'}
        Output format when writing to disk.
    """

    def __init__(self, logger=None, command_runner=None, save_prompt=None, fmt="archive"):
        if fmt not in FORMATS:
            raise ValueError(f"Unknown format {fmt!r}, use one of: {', '.join(FORMATS)}")
        self.logger = logger or LoggerSink()
        self.command_runner = command_runner
        self.save_prompt = save_prompt
        self.fmt = fmt

    def execute(self, tracks, context):
        logger = self.logger
        logger.log("Exporting tracks to Mars MoleculeArchive.\n")

        try:
            archive = export_tracks(tracks, context, logger)
        except (MissingMetadataError, MixedShapeError) as e:
            logger.error(f"Cannot export tracks:\n{e}\n")
            return None
        if archive is None:
            return None

        if self.command_runner is not None:
            logger.log("  Handing archive over as output.\n")
            result = self.command_runner.run(KEY, {OUTPUT_NAME: archive})
            logger.log("Done.\n")
            return result

        path = default_output_path(context.image, self.fmt)
        if self.save_prompt is not None:
            path = self.save_prompt(path)
            if path is None:
                return None

        logger.log("  Writing to file.\n")
        _, _, writer = FORMATS[self.fmt]
        try:
            writer(archive, path)
        except OSError as e:
            logger.error(f"Trouble writing to {path}:\n{e}\n")
            return None
        logger.log("Done.\n")
        return Path(path)
