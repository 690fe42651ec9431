from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from layers.types import GeometryKind


DistanceModel = Literal["sphere", "ellipsoid"]

DEFAULT_IDENTITY_FIELDS = ["OBJECTID", "objectid", "OBJECTID_1", "FID", "fid", "ESRI_OID"]


class DatasetDescriptor(BaseModel):
    """
    Everything the resolver needs to know about one remote feature layer.

    Dataset-specific knowledge (endpoints, field aliases) lives in YAML,
    not in code.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    endpoint: str
    # Appended to `endpoint` when set; otherwise `endpoint` is already the layer URL.
    layerId: int | str | None = None
    geometryKind: GeometryKind

    # Whether the layer answers point-in-polygon ("contains") questions at all.
    supportsContainment: bool = False
    maxRadiusMiles: float = Field(ge=0.0)

    # Ordered; the first present, non-blank value is the feature identity.
    identityFieldCandidates: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IDENTITY_FIELDS)
    )
    # Line layers measured to their vertex centroid instead of their segments.
    queryAsPoints: bool = False
    distanceModel: DistanceModel = "sphere"

    where: str = "1=1"
    outFields: str = "*"

    # Canonical record field -> ordered attribute aliases.
    # Example: {"incidentName": ["INCDNT_NM", "Incdnt_Nm", "incdnt_nm"]}
    fields: dict[str, list[str]] = Field(default_factory=dict)

    category: str | None = None
    enabled: bool = True

    @field_validator("identityFieldCandidates")
    @classmethod
    def _no_blank_identity_fields(cls, v: list[str]) -> list[str]:
        if any(not (name or "").strip() for name in v):
            raise ValueError("identityFieldCandidates must not contain blank names")
        return v

    @model_validator(mode="after")
    def _consistent(self) -> "DatasetDescriptor":
        if self.supportsContainment and self.geometryKind != "polygon":
            raise ValueError(
                f"dataset '{self.id}': containment is only meaningful for polygon layers"
            )
        if self.queryAsPoints and self.geometryKind != "polyline":
            raise ValueError(
                f"dataset '{self.id}': queryAsPoints applies to polyline layers only"
            )
        if not self.endpoint.strip():
            raise ValueError(f"dataset '{self.id}': endpoint is required")
        return self

    def query_url(self) -> str:
        base = self.endpoint.rstrip("/")
        if self.layerId is not None and str(self.layerId).strip() != "":
            base = f"{base}/{self.layerId}"
        return f"{base}/query"
