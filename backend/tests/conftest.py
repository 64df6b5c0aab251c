from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

# Points sit inside the default (Berkeley) root tile.
#   1 - 2 - 3    residential way 100, primary way 101 joins 2 - 4
#       |
#       4        5 - 6  service way 102 (not routable)
#   7 - 8        living_street way 103, its own component
#   9            defined but on no way
SAMPLE_OSM = """<?xml version="1.0" encoding="UTF-8"?>
<osm version="0.6" generator="pytest">
  <bounds minlat="37.8228" minlon="-122.2998" maxlat="37.8922" maxlon="-122.2119"/>
  <node id="1" lat="37.87" lon="-122.26"/>
  <node id="2" lat="37.87" lon="-122.25"/>
  <node id="3" lat="37.87" lon="-122.24">
    <tag k="name" v="Corner Cafe"/>
  </node>
  <node id="4" lat="37.86" lon="-122.25"/>
  <node id="5" lat="37.85" lon="-122.23"/>
  <node id="6" lat="37.85" lon="-122.22"/>
  <node id="7" lat="37.83" lon="-122.28"/>
  <node id="8" lat="37.83" lon="-122.27"/>
  <node id="9" lat="37.89" lon="-122.29"/>
  <way id="100">
    <nd ref="1"/>
    <nd ref="2"/>
    <nd ref="3"/>
    <tag k="name" v="Hearst Avenue"/>
    <tag k="highway" v="residential"/>
  </way>
  <way id="101">
    <nd ref="2"/>
    <nd ref="4"/>
    <tag k="highway" v="primary"/>
  </way>
  <way id="102">
    <nd ref="5"/>
    <nd ref="6"/>
    <tag k="highway" v="service"/>
  </way>
  <way id="103">
    <nd ref="7"/>
    <nd ref="8"/>
    <tag k="highway" v="living_street"/>
  </way>
  <way id="104">
    <nd ref="4"/>
    <nd ref="3"/>
    <tag k="building" v="yes"/>
  </way>
  <relation id="500">
    <member type="way" ref="100" role=""/>
    <tag k="type" v="route"/>
  </relation>
</osm>
"""

BROKEN_REF_OSM = """<?xml version="1.0" encoding="UTF-8"?>
<osm version="0.6">
  <node id="1" lat="37.87" lon="-122.26"/>
  <node id="2" lat="37.87" lon="-122.25"/>
  <node id="3" lat="37.87" lon="-122.24"/>
  <way id="200">
    <nd ref="1"/>
    <nd ref="99"/>
    <nd ref="2"/>
    <nd ref="3"/>
    <tag k="highway" v="tertiary"/>
  </way>
</osm>
"""


@pytest.fixture
def write_extract(tmp_path: Path) -> Callable[..., Path]:
    def _write(content: str = SAMPLE_OSM, name: str = "region.osm") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_extract(write_extract: Callable[..., Path]) -> Path:
    return write_extract(SAMPLE_OSM)


@pytest.fixture
def broken_ref_extract(write_extract: Callable[..., Path]) -> Path:
    return write_extract(BROKEN_REF_OSM, name="broken.osm")
