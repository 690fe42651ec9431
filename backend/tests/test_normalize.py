from __future__ import annotations

from engine.normalize import (
    FieldNormalizer,
    feature_identity,
    first_present,
    geometry_fingerprint,
)
from geo.coords import Coordinate
from layers.types import PointGeometry, PolygonGeometry, RawFeature

SQUARE = PolygonGeometry(rings=[[(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 0.0)]])


def test_first_present_respects_priority_and_skips_blanks():
    attrs = {"NAME": None, "Name": "  ", "name": "Cedar Loop", "alt": "x"}
    assert first_present(attrs, ["NAME", "Name", "name", "alt"]) == "Cedar Loop"
    assert first_present(attrs, ["missing"]) is None


def test_first_present_keeps_falsy_values():
    assert first_present({"ACRES": 0}, ["ACRES"]) == 0
    assert first_present({"OPEN": False}, ["OPEN"]) is False


def test_field_normalizer_builds_canonical_record():
    normalize = FieldNormalizer(
        {
            "incidentName": ["INCDNT_NM", "Incdnt_Nm", "incdnt_nm"],
            "acres": ["GIS_ACRES", "gis_acres"],
        }
    )
    assert normalize({"Incdnt_Nm": "Pine Fire", "gis_acres": 12.5, "junk": 1}) == {
        "incidentName": "Pine Fire",
        "acres": 12.5,
    }
    assert normalize({}) == {"incidentName": None, "acres": None}
    assert FieldNormalizer()({"a": 1}) == {}


def test_identity_uses_first_present_candidate():
    raw = RawFeature(index=3, geometry=SQUARE, attributes={"OBJECTID": None, "FID": 42})
    key, identity = feature_identity(raw, ["OBJECTID", "FID"], pass_name="proximity")
    assert identity == 42
    assert key == "id:42"


def test_identity_equal_across_passes_for_same_record():
    raw_a = RawFeature(index=0, geometry=SQUARE, attributes={"OBJECTID": 7})
    raw_b = RawFeature(index=9, geometry=None, attributes={"OBJECTID": 7})
    ka, _ = feature_identity(raw_a, ["OBJECTID"], pass_name="containment")
    kb, _ = feature_identity(raw_b, ["OBJECTID"], pass_name="proximity")
    assert ka == kb


def test_identity_falls_back_to_geometry_fingerprint():
    a = RawFeature(index=0, geometry=SQUARE, attributes={})
    b = RawFeature(index=5, geometry=SQUARE, attributes={"other": 1})
    ka, ida = feature_identity(a, ["OBJECTID"], pass_name="containment")
    kb, _ = feature_identity(b, ["OBJECTID"], pass_name="proximity")
    assert ka == kb
    assert ka.startswith("geom:")
    assert ida == ka


def test_identity_position_fallback_is_scoped_to_pass():
    a = RawFeature(index=0, geometry=None, attributes={})
    ka, ida = feature_identity(a, ["OBJECTID"], pass_name="containment")
    kb, _ = feature_identity(a, ["OBJECTID"], pass_name="proximity")
    assert ka != kb
    assert ida == "containment#0"


def test_fingerprint_distinguishes_shapes_and_kinds():
    p = PointGeometry(coord=Coordinate(latitude=0.0, longitude=0.0))
    other = PolygonGeometry(rings=[[(0.0, 0.0), (2.0, 0.0), (2.0, 2.0), (0.0, 0.0)]])
    assert geometry_fingerprint(SQUARE) != geometry_fingerprint(other)
    assert geometry_fingerprint(SQUARE) != geometry_fingerprint(p)
    assert len(geometry_fingerprint(p)) == 16
