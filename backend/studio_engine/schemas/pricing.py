# backend/studio_engine/schemas/pricing.py
"""Schemas for price resolution."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator

from ..core.constants import DEFAULT_CURRENCY
from ..core.enums import GuestKind, PriceSource
from ._strict_base import ResultModel, StrictRequestModel


class PriceQuote(ResultModel):
    """Entry and trainer fee for one participant, with where they came from."""

    entry_fee: int = Field(ge=0)
    trainer_fee: int = Field(ge=0)
    currency: str = DEFAULT_CURRENCY
    source: PriceSource
    price_code: Optional[str] = None
    pricing_id: Optional[int] = Field(
        default=None, description="Row id of the price code or pricing record used"
    )

    def scaled(self, quantity: int) -> "PriceQuote":
        return self.model_copy(
            update={
                "entry_fee": self.entry_fee * quantity,
                "trainer_fee": self.trainer_fee * quantity,
            }
        )


class GuestAssignment(StrictRequestModel):
    """
    An extra participant on an individual session.

    ``TECHNICAL_GUEST`` stands for an anonymous walk-in and carries no client;
    it is priced with the service type defaults.
    """

    kind: GuestKind = GuestKind.CLIENT
    client_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _client_required(self) -> "GuestAssignment":
        if self.kind == GuestKind.CLIENT and self.client_id is None:
            raise ValueError("client_id is required for a client guest")
        return self

    @classmethod
    def technical(cls, quantity: int = 1) -> "GuestAssignment":
        return cls(kind=GuestKind.TECHNICAL_GUEST, quantity=quantity)
