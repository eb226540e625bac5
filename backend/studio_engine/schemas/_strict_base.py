"""Schema baselines shared by engine inputs and results."""

from pydantic import BaseModel, ConfigDict


class StrictRequestModel(BaseModel):
    """Input DTO base that forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class ResultModel(BaseModel):
    """Immutable result DTO; attribute access works on ORM rows."""

    model_config = ConfigDict(frozen=True, from_attributes=True)
