# backend/studio_engine/repositories/__init__.py
"""
Repository Pattern Implementation for the studio booking engine.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- RepositoryFactory: Factory for creating repository instances
- ConflictRepository: Overlapping sessions and occurrences for a room or staff member
- OccurrenceRepository / RegistrationRepository: Class capacity and waitlist queries
- PricingRepository: Price codes and class pricing valid at a moment
- ClientRepository / PassRepository: Balances and credits, with row locks
- SettlementRepository: Settlement headers and items

Usage:
    from studio_engine.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_registration_repository(db)
    seats_taken = repository.count_confirmed(occurrence_id)
"""

from .base_repository import BaseRepository, IRepository
from .client_repository import ClientRepository
from .conflict_repository import ConflictRepository
from .factory import RepositoryFactory
from .occurrence_repository import OccurrenceRepository
from .pass_repository import PassRepository
from .pricing_repository import PricingRepository
from .registration_repository import RegistrationRepository
from .session_repository import SessionRepository
from .settlement_repository import SettlementRepository

__all__ = [
    "BaseRepository",
    "ClientRepository",
    "ConflictRepository",
    "IRepository",
    "OccurrenceRepository",
    "PassRepository",
    "PricingRepository",
    "RegistrationRepository",
    "RepositoryFactory",
    "SessionRepository",
    "SettlementRepository",
]
