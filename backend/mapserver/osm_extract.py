from __future__ import annotations

import gzip
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from pathlib import Path
from typing import IO, Any

from .graph_builder import (
    ExtractElement,
    MissingRefPolicy,
    PointDefinition,
    WayEnd,
    WayNodeRef,
    WayStart,
    WayTag,
    build_graph,
)
from .map_data_errors import MapDataError
from .road_graph import RoadGraph

try:  # pragma: no cover - only needed for .pbf extracts
    import osmium
except Exception:  # pragma: no cover
    osmium = None  # type: ignore[assignment]


def _parse_id(raw: str | None, *, what: str) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError) as e:
        raise MapDataError(
            reason_code="malformed_extract",
            message=f"{what} has a non-numeric id: {raw!r}",
        ) from e


def _parse_coord(raw: str | None, *, node_id: int, axis: str) -> float:
    try:
        return float(str(raw))
    except (TypeError, ValueError) as e:
        raise MapDataError(
            reason_code="malformed_extract",
            message=f"node {node_id} has an invalid {axis}: {raw!r}",
        ) from e


def _open_xml(path: Path) -> IO[bytes]:
    if path.suffix.lower() == ".gz":
        return gzip.open(path, "rb")
    return path.open("rb")


def iter_osm_xml(source: Path | IO[bytes]) -> Iterator[ExtractElement]:
    """Stream an OSM XML extract as builder elements.

    Parsing is incremental; finished ``node`` and ``way`` elements are cleared
    so memory stays flat on large extracts. Tags on points and relations are
    ignored.
    """
    if isinstance(source, Path):
        with _open_xml(source) as fh:
            yield from _iter_xml_events(fh)
    else:
        yield from _iter_xml_events(source)


def _iter_xml_events(fh: IO[bytes]) -> Iterator[ExtractElement]:
    in_way = False
    try:
        for event, elem in ET.iterparse(fh, events=("start", "end")):
            tag = elem.tag
            if event == "start":
                if tag == "node":
                    node_id = _parse_id(elem.attrib.get("id"), what="node")
                    yield PointDefinition(
                        id=node_id,
                        lon=_parse_coord(elem.attrib.get("lon"), node_id=node_id, axis="lon"),
                        lat=_parse_coord(elem.attrib.get("lat"), node_id=node_id, axis="lat"),
                    )
                elif tag == "way":
                    in_way = True
                    yield WayStart(id=_parse_id(elem.attrib.get("id"), what="way"))
                elif in_way and tag == "nd":
                    yield WayNodeRef(ref=_parse_id(elem.attrib.get("ref"), what="way node reference"))
                elif in_way and tag == "tag":
                    key = str(elem.attrib.get("k", "")).strip()
                    if key:
                        yield WayTag(key=key, value=str(elem.attrib.get("v", "")).strip())
            else:
                if tag == "way":
                    in_way = False
                    yield WayEnd()
                if tag in ("node", "way", "relation"):
                    elem.clear()
    except ET.ParseError as e:
        raise MapDataError(
            reason_code="malformed_extract",
            message=f"map extract is not well-formed XML: {e}",
        ) from e


def iter_osm_pbf(source: Path) -> Iterator[ExtractElement]:
    """Read a PBF extract with pyosmium, emitting the same element sequence as XML."""
    if osmium is None:
        raise MapDataError(
            reason_code="extract_format_unsupported",
            message="pyosmium is required to read .pbf extracts (pip install osmium).",
            details={"path": str(source)},
        )

    elements: list[ExtractElement] = []

    class _ExtractHandler(osmium.SimpleHandler):  # type: ignore[misc]
        def node(self, n: Any) -> None:
            elements.append(PointDefinition(id=int(n.id), lon=float(n.location.lon), lat=float(n.location.lat)))

        def way(self, w: Any) -> None:
            elements.append(WayStart(id=int(w.id)))
            for ref in w.nodes:
                elements.append(WayNodeRef(ref=int(ref.ref)))
            for tag in w.tags:
                elements.append(WayTag(key=str(tag.k), value=str(tag.v)))
            elements.append(WayEnd())

    _ExtractHandler().apply_file(str(source))
    yield from elements


def iter_extract(path: Path) -> Iterator[ExtractElement]:
    name = path.name.lower()
    if name.endswith(".pbf"):
        return iter_osm_pbf(path)
    if name.endswith((".osm", ".xml", ".osm.gz", ".xml.gz")):
        return iter_osm_xml(path)
    raise MapDataError(
        reason_code="extract_format_unsupported",
        message=f"unsupported map extract format: {path.name}",
        details={"path": str(path)},
    )


def load_road_graph(path: Path | str, *, missing_ref_policy: MissingRefPolicy = "fail") -> RoadGraph:
    extract = Path(path)
    if not extract.exists():
        raise MapDataError(
            reason_code="extract_unavailable",
            message=f"map extract not found: {extract}",
            details={"path": str(extract)},
        )
    return build_graph(iter_extract(extract), missing_ref_policy=missing_ref_policy)
