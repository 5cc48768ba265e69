"""Request / response models shared across API route modules."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field

from emotion_fusion.models import FusionMethod


class RegisterSourceRequest(BaseModel):
    source_id: str = Field(min_length=1)
    initial_weight: float | None = Field(None, ge=0.0, le=1.0)


class ReadingRequest(BaseModel):
    # Range/label checks are left to the engine so rejections carry its reason.
    category: str = Field(validation_alias=AliasChoices("category", "emotion"))
    confidence: float = Field(strict=True)


class IngestRequest(ReadingRequest):
    source_id: str = Field(min_length=1)


class WeightRequest(BaseModel):
    weight: float


class MethodRequest(BaseModel):
    method: FusionMethod


class ResolveRequest(BaseModel):
    preferred_source: str
    note: str = ""
