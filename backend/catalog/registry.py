from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml

from catalog.types import DatasetDescriptor


class DatasetNotFoundError(KeyError):
    pass


def _repo_root() -> Path:
    # .../backend/catalog/registry.py -> repo root is 2 levels up
    return Path(__file__).resolve().parents[2]


def datasets_root() -> Path:
    raw = (os.getenv("GEOENRICH_DATASETS_PATH") or "").strip()
    if raw:
        return Path(raw)
    return _repo_root() / "datasets"


@dataclass(frozen=True)
class DatasetEntry:
    descriptor: DatasetDescriptor
    # Absolute path to dataset.yaml on disk (useful for debugging).
    path: Path


def _iter_dataset_yaml_files(root: Path) -> Iterable[Path]:
    if not root.exists():
        return []
    # Convention: datasets/*/dataset.yaml
    return root.glob("*/dataset.yaml")


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid dataset yaml root: {path}")
    return data


@lru_cache(maxsize=4)
def _registry_for(root: str) -> dict[str, DatasetEntry]:
    out: dict[str, DatasetEntry] = {}
    for p in sorted(_iter_dataset_yaml_files(Path(root)), key=lambda x: str(x)):
        desc = DatasetDescriptor.model_validate(_load_yaml(p))
        if desc.id in out:
            raise ValueError(f"Duplicate dataset id '{desc.id}': {p}")
        out[desc.id] = DatasetEntry(descriptor=desc, path=p)
    return out


def get_registry() -> dict[str, DatasetEntry]:
    return _registry_for(str(datasets_root()))


def list_datasets(*, include_disabled: bool = False) -> list[DatasetDescriptor]:
    return [
        e.descriptor
        for e in get_registry().values()
        if include_disabled or e.descriptor.enabled
    ]


def get_dataset(dataset_id: str) -> DatasetDescriptor:
    did = (dataset_id or "").strip()
    entry = get_registry().get(did)
    if entry is None:
        raise DatasetNotFoundError(did)
    return entry.descriptor


def clear_registry_cache() -> None:
    """
    Clear in-memory dataset registry cache.

    Useful during development: YAML changes are otherwise not picked up until
    the backend process restarts.
    """
    _registry_for.cache_clear()
