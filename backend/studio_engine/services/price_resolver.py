# backend/studio_engine/services/price_resolver.py
"""
Price Resolver Service for the studio booking engine.

Resolves the entry fee (paid by the client) and trainer fee (owed to the
trainer) for one participant by walking a fixed priority chain:

Individual sessions:
    client price code -> service type default

Classes:
    client + occurrence override -> client + template override
    -> template pricing default -> template base price -> MissingPricingError

Resolution is a pure read. For a fixed database state and moment the same
inputs always produce the same quote.
"""

from datetime import datetime
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.enums import GuestKind, PriceSource
from ..core.exceptions import MissingPricingError, NotFoundException
from ..core.timezone_utils import get_studio_now
from ..models.class_schedule import ClassOccurrence
from ..models.service_type import ServiceType
from ..repositories import RepositoryFactory
from ..repositories.pricing_repository import PricingRepository
from ..schemas.pricing import GuestAssignment, PriceQuote
from .base import BaseService

logger = logging.getLogger(__name__)


class PriceResolver(BaseService):
    def __init__(
        self,
        db: Session,
        repository: Optional[PricingRepository] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, config)
        self.repository = repository or RepositoryFactory.create_pricing_repository(db)
        self.occurrence_repository = RepositoryFactory.create_occurrence_repository(db)

    # Individual sessions

    def _require_service_type(self, service_type_id: int) -> ServiceType:
        service_type = self.repository.get_service_type(service_type_id)
        if service_type is None:
            raise MissingPricingError(
                f"Unknown service type {service_type_id}",
                details={"service_type_id": service_type_id},
            )
        return service_type

    def _service_type_default(self, service_type: ServiceType) -> PriceQuote:
        return PriceQuote(
            entry_fee=service_type.default_entry_fee or 0,
            trainer_fee=service_type.default_trainer_fee or 0,
            currency=self.settings.default_currency,
            source=PriceSource.SERVICE_TYPE_DEFAULT,
            price_code=service_type.code,
            pricing_id=service_type.id,
        )

    @BaseService.measure_operation("resolve_for_client")
    def resolve_for_client(
        self, client_id: int, service_type_id: int, at: Optional[datetime] = None
    ) -> PriceQuote:
        """
        Price an individual session participant.

        Args:
            client_id: The participant
            service_type_id: Service being delivered
            at: Moment the price must be valid at, usually the session start

        Raises:
            MissingPricingError: If the service type does not exist
        """
        service_type = self._require_service_type(service_type_id)
        moment = at or get_studio_now()

        code = self.repository.get_client_price_code(client_id, service_type_id, moment)
        if code is not None:
            return PriceQuote(
                entry_fee=code.entry_fee,
                trainer_fee=code.trainer_fee,
                currency=code.currency,
                source=PriceSource.CLIENT_PRICE_CODE,
                price_code=code.price_code,
                pricing_id=code.id,
            )
        return self._service_type_default(service_type)

    @BaseService.measure_operation("resolve_for_staff")
    def resolve_for_staff(
        self, staff_id: int, service_type_id: int, at: Optional[datetime] = None
    ) -> PriceQuote:
        """Same chain as clients, keyed on the staff price code table."""
        service_type = self._require_service_type(service_type_id)
        moment = at or get_studio_now()

        code = self.repository.get_staff_price_code(staff_id, service_type_id, moment)
        if code is not None:
            return PriceQuote(
                entry_fee=code.entry_fee,
                trainer_fee=code.trainer_fee,
                currency=code.currency,
                source=PriceSource.STAFF_PRICE_CODE,
                price_code=code.price_code,
                pricing_id=code.id,
            )
        return self._service_type_default(service_type)

    def resolve_for_technical_guest(self, service_type_id: int) -> PriceQuote:
        return self._service_type_default(self._require_service_type(service_type_id))

    def resolve_for_guest(
        self,
        assignment: GuestAssignment,
        service_type_id: int,
        at: Optional[datetime] = None,
    ) -> PriceQuote:
        """Per-head price for an additional guest."""
        if assignment.kind == GuestKind.TECHNICAL_GUEST:
            return self.resolve_for_technical_guest(service_type_id)
        return self.resolve_for_client(assignment.client_id, service_type_id, at)

    # Classes

    def _load_occurrence(self, occurrence: Union[ClassOccurrence, int]) -> ClassOccurrence:
        if isinstance(occurrence, ClassOccurrence):
            return occurrence
        loaded = self.occurrence_repository.get_by_id(occurrence)
        if loaded is None:
            raise NotFoundException(f"Class occurrence {occurrence} not found")
        return loaded

    @BaseService.measure_operation("resolve_for_class")
    def resolve_for_class(
        self,
        client_id: int,
        occurrence: Union[ClassOccurrence, int],
        at: Optional[datetime] = None,
    ) -> PriceQuote:
        """
        Price one client's participation in a class.

        Args:
            client_id: The participant
            occurrence: The class occurrence or its id
            at: Validity moment; defaults to the occurrence start

        Raises:
            MissingPricingError: If no rung of the chain yields a price
        """
        occ = self._load_occurrence(occurrence)
        moment = at or occ.starts_at

        specific = self.repository.get_client_occurrence_pricing(client_id, occ.id, moment)
        if specific is not None:
            return PriceQuote(
                entry_fee=specific.entry_fee,
                trainer_fee=specific.trainer_fee,
                currency=specific.currency,
                source=PriceSource.CLIENT_OCCURRENCE_SPECIFIC,
                pricing_id=specific.id,
            )

        if occ.template_id is not None:
            template_specific = self.repository.get_client_template_pricing(
                client_id, occ.template_id, moment
            )
            if template_specific is not None:
                return PriceQuote(
                    entry_fee=template_specific.entry_fee,
                    trainer_fee=template_specific.trainer_fee,
                    currency=template_specific.currency,
                    source=PriceSource.CLIENT_TEMPLATE_SPECIFIC,
                    pricing_id=template_specific.id,
                )

            default = self.repository.get_class_pricing_default(occ.template_id, moment)
            if default is not None:
                return PriceQuote(
                    entry_fee=default.entry_fee,
                    trainer_fee=default.trainer_fee,
                    currency=default.currency,
                    source=PriceSource.TEMPLATE_DEFAULT,
                    pricing_id=default.id,
                )

            if occ.base_price_huf is not None:
                return PriceQuote(
                    entry_fee=occ.base_price_huf,
                    trainer_fee=0,
                    currency=self.settings.default_currency,
                    source=PriceSource.TEMPLATE_BASE_PRICE,
                    pricing_id=occ.template_id,
                )

        self.logger.warning(
            f"No pricing for client {client_id} on occurrence {occ.id} at {moment.isoformat()}"
        )
        raise MissingPricingError(
            "No class pricing found for this client and occurrence",
            details={
                "client_id": client_id,
                "occurrence_id": occ.id,
                "template_id": occ.template_id,
                "at": moment.isoformat(),
            },
        )
