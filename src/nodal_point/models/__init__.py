"""SQLAlchemy models for the Nodal Point system of record.

Importing this package registers every table on Base.metadata, which
init_db() and the Alembic environment rely on.
"""

from src.nodal_point.models.auth import ZohoConnectionModel
from src.nodal_point.models.crm import AccountModel, CallModel, ContactModel, DealStage
from src.nodal_point.models.intelligence import MarketIntelligenceModel

__all__ = [
    "AccountModel",
    "CallModel",
    "ContactModel",
    "DealStage",
    "MarketIntelligenceModel",
    "ZohoConnectionModel",
]
