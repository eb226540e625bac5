# backend/studio_engine/repositories/factory.py
"""
Repository Factory for the studio booking engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .client_repository import ClientRepository
    from .conflict_repository import ConflictRepository
    from .occurrence_repository import OccurrenceRepository
    from .pass_repository import PassRepository
    from .pricing_repository import PricingRepository
    from .registration_repository import RegistrationRepository
    from .session_repository import SessionRepository
    from .settlement_repository import SettlementRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        """
        Create a generic base repository for any model.

        Args:
            db: Database session
            model: SQLAlchemy model class

        Returns:
            BaseRepository instance
        """
        return BaseRepository(db, model)

    @staticmethod
    def create_conflict_repository(db: Session) -> "ConflictRepository":
        """Create repository for conflict checking queries."""
        from .conflict_repository import ConflictRepository

        return ConflictRepository(db)

    @staticmethod
    def create_session_repository(db: Session) -> "SessionRepository":
        """Create repository for individual sessions and their guests."""
        from .session_repository import SessionRepository

        return SessionRepository(db)

    @staticmethod
    def create_occurrence_repository(db: Session) -> "OccurrenceRepository":
        from .occurrence_repository import OccurrenceRepository

        return OccurrenceRepository(db)

    @staticmethod
    def create_registration_repository(db: Session) -> "RegistrationRepository":
        from .registration_repository import RegistrationRepository

        return RegistrationRepository(db)

    @staticmethod
    def create_client_repository(db: Session) -> "ClientRepository":
        from .client_repository import ClientRepository

        return ClientRepository(db)

    @staticmethod
    def create_pass_repository(db: Session) -> "PassRepository":
        from .pass_repository import PassRepository

        return PassRepository(db)

    @staticmethod
    def create_pricing_repository(db: Session) -> "PricingRepository":
        """Create repository for price code and class pricing lookups."""
        from .pricing_repository import PricingRepository

        return PricingRepository(db)

    @staticmethod
    def create_settlement_repository(db: Session) -> "SettlementRepository":
        from .settlement_repository import SettlementRepository

        return SettlementRepository(db)
