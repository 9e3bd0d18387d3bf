"""
Repository layer for data access operations.
One repository per table, built on the generic BaseRepository.
"""

from marketplace.repositories.base import BaseRepository
from marketplace.repositories.property import PropertyRepository, PropertySearchFilters
from marketplace.repositories.token import TokenIssuanceRepository, TokenPurchaseRepository
from marketplace.repositories.user import UserRepository
from marketplace.repositories.verification import VerificationRepository

__all__ = [
    "BaseRepository",
    "PropertyRepository",
    "PropertySearchFilters",
    "TokenIssuanceRepository",
    "TokenPurchaseRepository",
    "UserRepository",
    "VerificationRepository",
]
