# backend/studio_engine/services/pass_credit_service.py
"""
Pass credit store for the studio booking engine.

The booking ledger only needs the ``CreditLedger`` interface; this module
provides the database-backed implementation. Methods run inside the caller's
transaction and never commit.
"""

from datetime import datetime
import logging
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.enums import PassStatus
from ..core.exceptions import InsufficientCreditsError, ValidationException
from ..core.timezone_utils import get_studio_now
from ..models.client import Pass
from ..repositories import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class CreditLedger(Protocol):
    """Interface the booking ledger uses to pay with pass credits."""

    def has_available_credits(
        self, client_id: int, credits: int = 1, at: Optional[datetime] = None
    ) -> bool:
        ...

    def deduct_credit(
        self, client_id: int, credits: int = 1, at: Optional[datetime] = None
    ) -> Pass:
        ...

    def refund_credit(
        self, client_id: int, credits: int, pass_id: Optional[int] = None
    ) -> Optional[Pass]:
        ...


class PassCreditService(BaseService):
    """
    Database-backed credit ledger.

    Deducts from the soonest-expiring usable pass, marks a pass depleted when
    it reaches zero and reactivates it when a refund brings credits back.
    """

    def __init__(self, db: Session, config: Optional[Settings] = None):
        super().__init__(db, config)
        self.pass_repository = RepositoryFactory.create_pass_repository(db)

    def _find_pass(self, client_id: int, credits: int, at: datetime, lock: bool) -> Optional[Pass]:
        for candidate in self.pass_repository.get_usable(client_id, at, lock=lock):
            if candidate.credits_left >= credits:
                return candidate
        return None

    def has_available_credits(
        self, client_id: int, credits: int = 1, at: Optional[datetime] = None
    ) -> bool:
        return self._find_pass(client_id, credits, at or get_studio_now(), lock=False) is not None

    @BaseService.measure_operation("deduct_credit")
    def deduct_credit(
        self, client_id: int, credits: int = 1, at: Optional[datetime] = None
    ) -> Pass:
        """
        Take ``credits`` from one usable pass.

        Returns:
            The pass the credits came from

        Raises:
            InsufficientCreditsError: If no single active pass covers the amount
        """
        if credits <= 0:
            raise ValidationException("Credits to deduct must be positive", code="INVALID_CREDITS")

        moment = at or get_studio_now()
        source = self._find_pass(client_id, credits, moment, lock=True)
        if source is None:
            raise InsufficientCreditsError(client_id, reason=f"needs {credits} credit(s)")

        source.credits_left -= credits
        if source.credits_left == 0:
            source.status = PassStatus.DEPLETED.value
        self.pass_repository.flush()

        self.log_operation(
            "deduct_credit",
            client_id=client_id,
            pass_id=source.id,
            credits=credits,
            credits_left=source.credits_left,
        )
        return source

    @BaseService.measure_operation("refund_credit")
    def refund_credit(
        self, client_id: int, credits: int, pass_id: Optional[int] = None
    ) -> Optional[Pass]:
        """
        Return credits to the pass they came from.

        Falls back to the client's latest-expiring pass when the original is
        unknown or belongs to someone else. Credits never exceed the pass total.

        Returns:
            The credited pass, or None when the client has no pass at all
        """
        if credits <= 0:
            return None

        target: Optional[Pass] = None
        if pass_id is not None:
            target = self.pass_repository.get_for_update(pass_id)
            if target is not None and target.client_id != client_id:
                self.logger.warning(
                    f"Pass {pass_id} does not belong to client {client_id}; using latest pass"
                )
                target = None
        if target is None:
            target = self.pass_repository.get_latest_for_client(client_id)
        if target is None:
            self.logger.warning(f"No pass to refund {credits} credit(s) to for client {client_id}")
            return None

        target.credits_left = min(target.credits_left + credits, target.total_credits)
        if target.status == PassStatus.DEPLETED.value and target.credits_left > 0:
            target.status = PassStatus.ACTIVE.value
        self.pass_repository.flush()

        self.log_operation(
            "refund_credit",
            client_id=client_id,
            pass_id=target.id,
            credits=credits,
            credits_left=target.credits_left,
        )
        return target
