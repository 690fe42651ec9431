from __future__ import annotations

from geo.great_circle import METERS_PER_MILE


def clamp(requested: float | None, dataset_max: float) -> float:
    """
    Clamp a requested search radius to the dataset ceiling.

    Returns 0 when no proximity pass should run (radius absent or <= 0).
    """
    if requested is None or requested <= 0:
        return 0.0
    return float(min(float(requested), float(dataset_max)))


def to_meters(miles: float) -> float:
    # Fixed factor 1609.34, not the exact 1609.344.
    return float(miles) * METERS_PER_MILE
