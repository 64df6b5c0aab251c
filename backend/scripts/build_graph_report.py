from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from mapserver.graph_builder import GraphBuilder
from mapserver.map_data_errors import MapDataError
from mapserver.osm_extract import iter_extract
from mapserver.road_graph import RoadGraph


def _graph_payload(graph: RoadGraph, *, source: Path) -> dict[str, Any]:
    edges = [
        {"u": u, "v": v}
        for u, neighbors in sorted(graph.adjacency.items())
        for v in neighbors
        if u < v
    ]
    return {
        "version": "road-graph-v1",
        "source": str(source),
        "generated_at_utc": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "nodes": [
            {"id": node.id, "lat": node.lat, "lon": node.lon}
            for _, node in sorted(graph.nodes.items())
        ],
        "edges": edges,
    }


def build(
    *,
    source: Path,
    output: Path | None = None,
    missing_ref_policy: str = "fail",
) -> dict[str, Any]:
    builder = GraphBuilder(missing_ref_policy=missing_ref_policy)  # type: ignore[arg-type]
    builder.feed_all(iter_extract(source))
    graph = builder.build()
    if len(graph) == 0:
        raise RuntimeError("No routable roads were extracted from source input.")

    report: dict[str, Any] = {
        "source": str(source),
        "points_seen": builder.points_seen,
        "ways_seen": builder.ways_seen,
        "ways_accepted": builder.ways_accepted,
        "refs_skipped": builder.refs_skipped,
        **graph.summary(),
    }
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(_graph_payload(graph, source=source)), encoding="utf-8")
        report["output"] = str(output)
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the road graph from an OSM extract and report its shape.")
    parser.add_argument(
        "--source",
        type=Path,
        required=True,
        help="Path to the map extract (.osm/.osm.gz, or .pbf with pyosmium installed).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Optional path to also write the graph as JSON (nodes + undirected edges).",
    )
    parser.add_argument(
        "--missing-ref-policy",
        choices=("fail", "skip"),
        default="fail",
        help="What to do with way references to undefined points.",
    )
    args = parser.parse_args()
    try:
        report = build(source=args.source, output=args.output, missing_ref_policy=args.missing_ref_policy)
    except MapDataError as e:
        print(json.dumps({"error": e.reason_code, "message": e.message}, indent=2), file=sys.stderr)
        raise SystemExit(1) from e
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
