import sys
import threading
from pathlib import Path

import pytest


# Ensure `backend/` is on sys.path so tests can import local modules
# like `geo.*`, `engine.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

from catalog.types import DatasetDescriptor  # noqa: E402
from remote.backoff import FixedBackoff  # noqa: E402
from remote.config import FetchSettings  # noqa: E402


class ScriptedTransport:
    """
    In-process stand-in for a feature service.

    `handler(url, params)` returns the JSON body (or raises). Calls are recorded.
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def query(self, url, params):
        with self._lock:
            self.calls.append((url, dict(params)))
        return self.handler(url, params)

    def calls_for(self, pass_name: str) -> list[dict]:
        proximity = pass_name == "proximity"
        return [p for _, p in self.calls if ("distance" in p) == proximity]


def esri_polygon(oid, ring, *holes, **attrs):
    return {
        "attributes": {"OBJECTID": oid, **attrs},
        "geometry": {"rings": [ring, *holes]},
    }


def esri_point(oid, lon, lat, **attrs):
    return {"attributes": {"OBJECTID": oid, **attrs}, "geometry": {"x": lon, "y": lat}}


def esri_polyline(oid, *paths, **attrs):
    return {"attributes": {"OBJECTID": oid, **attrs}, "geometry": {"paths": list(paths)}}


@pytest.fixture
def scripted():
    return ScriptedTransport


@pytest.fixture
def esri():
    return {"polygon": esri_polygon, "point": esri_point, "polyline": esri_polyline}


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def backoff(sleeps):
    return FixedBackoff(page_delay_s=0.1, retry_delay_s=0.2, sleep=sleeps.append)


@pytest.fixture
def settings():
    return FetchSettings(page_size=2000, page_delay_s=0.1, max_offset=100_000, attempts=1)


@pytest.fixture
def polygon_dataset():
    return DatasetDescriptor(
        id="zones",
        title="Zones",
        endpoint="https://example.test/arcgis/rest/services/Zones/FeatureServer",
        layerId=0,
        geometryKind="polygon",
        supportsContainment=True,
        maxRadiusMiles=50,
        fields={"name": ["NAME", "Name", "name"]},
    )


@pytest.fixture
def line_dataset():
    return DatasetDescriptor(
        id="trails",
        title="Trails",
        endpoint="https://example.test/arcgis/rest/services/Trails/FeatureServer/4",
        geometryKind="polyline",
        maxRadiusMiles=25,
    )


@pytest.fixture
def point_dataset():
    return DatasetDescriptor(
        id="campgrounds",
        title="Campgrounds",
        endpoint="https://example.test/arcgis/rest/services/Campgrounds/FeatureServer",
        layerId=0,
        geometryKind="point",
        maxRadiusMiles=25,
        identityFieldCandidates=["FID", "OBJECTID"],
    )
