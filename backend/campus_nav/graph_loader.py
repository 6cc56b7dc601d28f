# backend/campus_nav/graph_loader.py
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from .graph import CampusGraph
from .models import Edge, Location

NODE_COLUMNS = ["location_id", "name", "lat", "lon"]
EDGE_COLUMNS = ["u", "v", "distance_m", "walking_min", "driving_min"]


@dataclass
class CampusBundle:
    key: str
    graph: CampusGraph
    meta: Dict[str, Any]


def _keywords(value: Any) -> List[str]:
    # parquet round-trips lists as arrays; CSV-style sources use "a;b;c"
    if value is None:
        return []
    if isinstance(value, str):
        return [k.strip() for k in value.split(";") if k.strip()]
    if isinstance(value, (list, tuple, np.ndarray)):
        return [str(k) for k in value]
    if pd.isna(value):
        return []
    return [str(value)]


def _text(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value)


def graph_from_frames(nodes_df: pd.DataFrame, edges_df: pd.DataFrame) -> CampusGraph:
    missing = [c for c in NODE_COLUMNS if c not in nodes_df.columns]
    missing += [c for c in EDGE_COLUMNS if c not in edges_df.columns]
    if missing:
        raise ValueError(f"Graph frames are missing columns: {missing}")

    g = CampusGraph()
    for row in nodes_df.itertuples(index=False):
        g.add_location(Location(
            id=str(row.location_id),
            name=str(row.name),
            lat=float(row.lat),
            lon=float(row.lon),
            category=_text(getattr(row, "category", None)),
            keywords=_keywords(getattr(row, "keywords", None)),
        ))

    has_road = "road_name" in edges_df.columns
    has_access = "accessible" in edges_df.columns
    for _, r in edges_df.iterrows():
        u = g.get_location_by_id(str(r["u"]))
        v = g.get_location_by_id(str(r["v"]))
        if u is None or v is None:
            raise ValueError(f"Edge {r['u']} -> {r['v']} references an unknown location")
        g.add_edge(Edge(
            source=u,
            destination=v,
            distance_m=float(r["distance_m"]),
            base_walking_min=float(r["walking_min"]),
            base_driving_min=float(r["driving_min"]),
            road_name=_text(r["road_name"]) if has_road else "",
            accessible=bool(r["accessible"]) if has_access else True,
        ))
    return g


def load_campus(prefix: str, key: str) -> CampusBundle:
    nodes = pd.read_parquet(prefix + ".nodes.parquet")
    edges = pd.read_parquet(prefix + ".edges.parquet")
    meta_path = Path(prefix + ".meta.json")
    meta = json.loads(meta_path.read_text()) if meta_path.exists() else {}
    return CampusBundle(key=key, graph=graph_from_frames(nodes, edges), meta=meta)


def save_campus(nodes_df: pd.DataFrame, edges_df: pd.DataFrame, meta: Dict[str, Any], out_prefix: Path) -> None:
    out_prefix.parent.mkdir(parents=True, exist_ok=True)
    nodes_df.to_parquet(str(out_prefix) + ".nodes.parquet", index=False)
    edges_df.to_parquet(str(out_prefix) + ".edges.parquet", index=False)
    with open(str(out_prefix) + ".meta.json", "w") as f:
        json.dump(meta, f, indent=2)
