"""Call records keyed by Twilio Call SID.

Exports:
    CallUpsert, CallRecord: Wire schemas.
    derive_outcome, merge_call: Pure merge rules.
    CallRepository: SQLAlchemy persistence.
    CallService, UpsertResult: The upsert pipeline.
"""

from src.nodal_point.calls.merge import derive_outcome, merge_call
from src.nodal_point.calls.repository import CallRepository
from src.nodal_point.calls.schemas import CallRecord, CallUpsert
from src.nodal_point.calls.service import CallService, UpsertResult

__all__ = [
    "CallRecord",
    "CallRepository",
    "CallService",
    "CallUpsert",
    "UpsertResult",
    "derive_outcome",
    "merge_call",
]
