from __future__ import annotations

from typing import get_args

import pytest
from pydantic import ValidationError

from catalog.registry import (
    DatasetNotFoundError,
    clear_registry_cache,
    get_dataset,
    list_datasets,
)
from catalog.types import DatasetDescriptor
from geo.coords import Coordinate
from layers.types import PointGeometry, PolygonGeometry, PolylineGeometry

MINIMAL = """\
id: {id}
title: {id}
endpoint: https://example.test/arcgis/rest/services/{id}/FeatureServer
layerId: 0
geometryKind: point
maxRadiusMiles: 10
enabled: {enabled}
"""


@pytest.fixture(autouse=True)
def _fresh_registry():
    clear_registry_cache()
    yield
    clear_registry_cache()


def _write(root, name, text):
    d = root / name
    d.mkdir(parents=True)
    (d / "dataset.yaml").write_text(text, encoding="utf-8")


def test_repo_catalog_loads():
    ids = {d.id for d in list_datasets()}
    assert ids == {
        "blm_fire_perimeters",
        "blm_motorized_trails",
        "blm_lwcf",
        "ca_state_parks_campgrounds",
        "ca_state_parks_recreational_routes",
    }


def test_repo_catalog_descriptors():
    fires = get_dataset("blm_fire_perimeters")
    assert fires.supportsContainment is True
    assert fires.maxRadiusMiles == 25
    assert fires.query_url().endswith("BLM_Natl_Fire_Perimeters_Polygon/FeatureServer/0/query")
    assert fires.fields["incidentName"] == ["INCDNT_NM", "Incdnt_Nm", "incdnt_nm"]

    assert get_dataset("blm_lwcf").maxRadiusMiles == 50
    assert get_dataset("blm_motorized_trails").query_url().endswith("/FeatureServer/4/query")

    routes = get_dataset("ca_state_parks_recreational_routes")
    assert routes.queryAsPoints is True
    assert routes.identityFieldCandidates[0] == "FID"


def test_unknown_dataset():
    with pytest.raises(DatasetNotFoundError):
        get_dataset("nope")


def test_custom_root_and_disabled_entries(tmp_path, monkeypatch):
    _write(tmp_path, "one", MINIMAL.format(id="one", enabled="true"))
    _write(tmp_path, "two", MINIMAL.format(id="two", enabled="false"))
    monkeypatch.setenv("GEOENRICH_DATASETS_PATH", str(tmp_path))

    assert [d.id for d in list_datasets()] == ["one"]
    assert [d.id for d in list_datasets(include_disabled=True)] == ["one", "two"]
    assert get_dataset(" two ").enabled is False


def test_duplicate_ids_are_rejected(tmp_path, monkeypatch):
    _write(tmp_path, "a", MINIMAL.format(id="same", enabled="true"))
    _write(tmp_path, "b", MINIMAL.format(id="same", enabled="true"))
    monkeypatch.setenv("GEOENRICH_DATASETS_PATH", str(tmp_path))

    with pytest.raises(ValueError, match="Duplicate dataset id"):
        list_datasets()


def test_invalid_descriptor_is_rejected(tmp_path, monkeypatch):
    bad = MINIMAL.format(id="bad", enabled="true") + "supportsContainment: true\n"
    _write(tmp_path, "bad", bad)
    monkeypatch.setenv("GEOENRICH_DATASETS_PATH", str(tmp_path))

    with pytest.raises(ValidationError):
        list_datasets()


def test_missing_root_is_empty(tmp_path, monkeypatch):
    monkeypatch.setenv("GEOENRICH_DATASETS_PATH", str(tmp_path / "absent"))
    assert list_datasets() == []


def test_descriptor_geometry_kinds_match_decoded_geometry_kinds():
    decoded = {
        PointGeometry(coord=Coordinate(latitude=0.0, longitude=0.0)).kind,
        PolylineGeometry(paths=[[(0.0, 0.0), (1.0, 1.0)]]).kind,
        PolygonGeometry(rings=[[(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 0.0)]]).kind,
    }
    assert decoded == set(get_args(DatasetDescriptor.model_fields["geometryKind"].annotation))
