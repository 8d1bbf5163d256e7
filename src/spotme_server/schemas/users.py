"""Request schemas for user and location endpoints.

All bodies reject unknown fields. Field names on the wire are camelCase.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr

# Timestamps arrive as strings or epoch numbers and are normalized server side.
# Strict types keep JSON booleans from being coerced to epoch 1.
TimestampInput = StrictStr | StrictInt | StrictFloat | None


class LocationPayload(BaseModel):
    """A single location observation submitted by a client."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    latitude: float = Field(ge=-90, le=90, description="Degrees north")
    longitude: float = Field(ge=-180, le=180, description="Degrees east")
    accuracy: float | None = Field(default=None, ge=0, description="Accuracy radius in meters")
    location_name: str | None = Field(
        default=None,
        alias="locationName",
        max_length=1000,
        description="Reverse geocoded place name",
    )
    timestamp: TimestampInput = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "recordedAt"),
        description="Client capture time; unparseable values fall back to receipt time",
    )
    sample_id: str | None = Field(
        default=None,
        alias="sampleId",
        min_length=1,
        max_length=64,
        description="Client generated idempotency key",
    )


class LocationUpdateRequest(BaseModel):
    """Body of POST /users/{name}/location."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    location: LocationPayload
    last_updated: TimestampInput = Field(default=None, alias="lastUpdated")


class UserCreateRequest(BaseModel):
    """Body of POST /users."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, str_strip_whitespace=True)

    # Names travel in URL paths, so a slash would make the user unreachable
    name: str = Field(
        min_length=1, max_length=255, pattern=r"^[^/]+$", description="Display name"
    )
    id: str | None = Field(default=None, min_length=1, max_length=64)
    is_active: bool | None = Field(
        default=None,
        alias="isActive",
        description="Accepted for compatibility; registrations are always active",
    )
    last_updated: TimestampInput = Field(default=None, alias="lastUpdated")


class RawSampleRequest(BaseModel):
    """Body of POST /location-samples (log-only path)."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)
    timestamp: TimestampInput = None
    location_name: str | None = Field(default=None, alias="locationName", max_length=1000)
    readings_count: int | None = Field(default=None, alias="readingsCount", ge=0)
    method: str | None = Field(default=None, max_length=100)
