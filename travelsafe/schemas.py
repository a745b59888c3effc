"""
Pydantic schemas for the report documents and API responses.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from travelsafe.errors import ReportValidationError


class _Block(BaseModel):
    # Unknown keys are dropped; numbers are accepted where text is declared.
    # Non-finite floats are rejected.
    model_config = ConfigDict(
        extra="ignore", coerce_numbers_to_str=True, allow_inf_nan=False
    )


class Location(_Block):
    country: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Covid19Stats(_Block):
    updated: Optional[str] = None
    cases: Optional[int] = None
    todayCases: Optional[int] = None
    deaths: Optional[int] = None
    todayDeaths: Optional[int] = None
    recovered: Optional[int] = None
    active: Optional[int] = None
    critical: Optional[int] = None
    casesPerOneMillion: Optional[float] = None
    deathsPerOneMillion: Optional[float] = None


class Temperature(_Block):
    current: Optional[float] = None
    feels_like: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None


class Weather(_Block):
    temperature: Optional[Temperature] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class ReportMetadata(_Block):
    timestamp: Optional[str] = None
    source_apis: Optional[list[str]] = None


class Report(_Block):
    """One combined location / covid19 / weather snapshot."""

    location: Optional[Location] = None
    covid19: Optional[Covid19Stats] = None
    weather: Optional[Weather] = None
    metadata: Optional[ReportMetadata] = None

    def to_document(self) -> dict:
        """Fields the client actually sent, ready for the datastore."""
        return self.model_dump(exclude_unset=True)


class StoredReport(Report):
    """A report as read back from the datastore, with its generated id."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


def coerce_report(payload: Any) -> Report:
    """
    Validate an incoming payload into a Report.

    Raises ReportValidationError with a readable message on type mismatch.
    """
    if isinstance(payload, Report):
        return payload
    if not isinstance(payload, Mapping):
        raise ReportValidationError(
            f"Report must be a JSON object, got {type(payload).__name__}"
        )
    try:
        return Report.model_validate(dict(payload))
    except ValidationError as exc:
        raise ReportValidationError(
            _format_validation_error(exc), errors=exc.errors(include_url=False)
        ) from exc


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors(include_url=False):
        path = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{path}: {err.get('msg')}")
    return "Report validation failed: " + "; ".join(parts)
