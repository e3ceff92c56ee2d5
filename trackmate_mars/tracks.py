import pandas as pd


def track_summary(tracks):
    """One row per track: 'track_id', 'n_spots', 'start_frame', 'end_frame', 'duration_frames'."""
    rows = []
    for track in tracks:
        frames = [s.frame for s in track.spots]
        if frames:
            start, end = min(frames), max(frames)
            duration = end - start + 1
        else:
            start = end = pd.NA
            duration = 0
        rows.append({
            "track_id": track.track_id,
            "n_spots": len(frames),
            "start_frame": start,
            "end_frame": end,
            "duration_frames": duration,
        })
    columns = ["track_id", "n_spots", "start_frame", "end_frame", "duration_frames"]
    return pd.DataFrame(rows, columns=columns).set_index("track_id")


def filter_tracks_by_length(tracks, min_spots=None, max_spots=None):
    """Keep only tracks whose spot count is within limits."""
    stats = track_summary(tracks)
    mask = pd.Series(True, index=stats.index)
    if min_spots is not None:
        mask &= stats["n_spots"] >= min_spots
    if max_spots is not None:
        mask &= stats["n_spots"] <= max_spots
    valid_ids = set(stats[mask].index)
    return [t for t in tracks if t.track_id in valid_ids]
