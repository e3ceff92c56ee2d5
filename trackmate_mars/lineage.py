import networkx as nx
import pandas as pd


def build_track_graph(track):
    """
    Build a directed spot graph for one track.

    Nodes are spot IDs carrying the spot frame; edges point from the
    earlier spot to the later one regardless of how the host stored them.
    """
    G = nx.DiGraph()
    frames = {}
    for spot in track.spots:
        if spot.spot_id is None:
            continue
        frames[spot.spot_id] = spot.frame
        G.add_node(spot.spot_id, frame=spot.frame)

    for s, t in track.edges:
        if s not in frames or t not in frames:
            continue
        if frames[s] <= frames[t]:
            G.add_edge(s, t)
        else:
            G.add_edge(t, s)
    return G


def detect_branching(track):
    """
    Find split and merge points in a track.

    Returns
    -------
    events : pd.DataFrame
        Columns: ['spot_id', 'frame', 'event', 'n_links']
    """
    G = build_track_graph(track)
    rows = []
    for node in G.nodes:
        out_deg = G.out_degree(node)
        in_deg = G.in_degree(node)
        if out_deg > 1:
            rows.append({"spot_id": node, "frame": G.nodes[node]["frame"],
                         "event": "split", "n_links": out_deg})
        if in_deg > 1:
            rows.append({"spot_id": node, "frame": G.nodes[node]["frame"],
                         "event": "merge", "n_links": in_deg})
    return pd.DataFrame(rows, columns=["spot_id", "frame", "event", "n_links"])


def is_branching(track):
    return not detect_branching(track).empty
