"""
Persistence gateway: the abstract contract and its SQLAlchemy adapter.
"""

from peakstreak.gateway.base import PersistenceGateway
from peakstreak.gateway.sqlalchemy_gateway import SQLAlchemyGateway

__all__ = ["PersistenceGateway", "SQLAlchemyGateway"]
