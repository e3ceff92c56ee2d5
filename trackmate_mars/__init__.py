"""
trackmate_mars
--------------
Export TrackMate tracks to Mars MoleculeArchives.

Modules:
    model.py     - Spots, tracks, feature catalog and run context
    io.py        - TrackMate XML parsing into the model
    exporter.py  - Track-to-record conversion and archive assembly
    archive.py   - Archive containers, JSON archive and Tracks XML writers
    action.py    - The "Go to Mars" host action (naming, saving, handover)
    lineage.py   - Split/merge detection within a track
    tracks.py    - Track summaries and filtering
    batch.py     - Folder-level conversion
    log.py       - Logging helpers and the host status sink
"""

__version__ = "1.0.0"
