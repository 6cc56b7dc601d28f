#!/usr/bin/env python3
"""Sanity-check a campus graph artifact before serving it.

    python -m backend.tools.validate_graph --prefix data/graphs/legon
"""
import argparse
import json
from typing import List, Optional

import pandas as pd

from backend.campus_nav.geo import distance_between, estimate_driving_min, estimate_walking_min
from backend.campus_nav.graph_loader import load_campus


def check_frames(nodes: pd.DataFrame, edges: pd.DataFrame) -> List[str]:
    problems = []
    if not nodes["lat"].between(-90, 90).all():
        problems.append("latitude out of range")
    if not nodes["lon"].between(-180, 180).all():
        problems.append("longitude out of range")
    if nodes["location_id"].astype(str).duplicated().any():
        problems.append("duplicate location ids")
    if not (edges["distance_m"] >= 0).all():
        problems.append("negative edge distance")
    if not ((edges["walking_min"] >= 0) & (edges["driving_min"] >= 0)).all():
        problems.append("negative edge time")
    known = set(nodes["location_id"].astype(str))
    dangling = ~(edges["u"].astype(str).isin(known) & edges["v"].astype(str).isin(known))
    if dangling.any():
        problems.append(f"{int(dangling.sum())} edges reference unknown locations")
    return problems


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Validate campus graph artifacts")
    ap.add_argument("--prefix", required=True, help="e.g., data/graphs/legon")
    args = ap.parse_args(argv)

    nodes = pd.read_parquet(args.prefix + ".nodes.parquet")
    edges = pd.read_parquet(args.prefix + ".edges.parquet")

    problems = check_frames(nodes, edges)
    if problems:
        for p in problems:
            print("ERROR:", p)
        return 1

    bundle = load_campus(args.prefix, key=args.prefix)
    g = bundle.graph
    print("Meta:", json.dumps(bundle.meta, indent=2))
    print(f"Locations: {g.location_count:,}, Connections: {g.edge_count:,}")

    # A* assumes edges are never faster than the straight-line estimate
    fast = 0
    for e in g.all_edges():
        crow = distance_between(e.source, e.destination)
        if e.base_walking_min < estimate_walking_min(crow) or e.base_driving_min < estimate_driving_min(crow):
            fast += 1
    if fast:
        print(f"WARNING: {fast} directed edges are faster than the A* heuristic allows")

    isolated = sum(1 for loc in g.locations if not g.get_neighbors(loc))
    if isolated:
        print(f"WARNING: {isolated} locations have no connections")
    print("OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
