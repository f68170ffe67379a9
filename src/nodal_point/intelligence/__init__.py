"""Market intelligence signals: storage and the scrape trigger.

Exports:
    MarketIntelligenceRepository: List and link signals.
    ScrapeTrigger: Invoke the scrape edge function.
    SignalRead, LinkSignalRequest: Wire schemas.
"""

from src.nodal_point.intelligence.repository import MarketIntelligenceRepository
from src.nodal_point.intelligence.schemas import LinkSignalRequest, SignalRead
from src.nodal_point.intelligence.scrape_trigger import ScrapeTrigger

__all__ = [
    "LinkSignalRequest",
    "MarketIntelligenceRepository",
    "ScrapeTrigger",
    "SignalRead",
]
