"""
Buyback Relay - token buyback execution/detection with live WebSocket updates.
"""

from buyback.models import BuybackEvent, SeenSet, Stats
from buyback.service import BuybackService

__all__ = ["BuybackEvent", "BuybackService", "SeenSet", "Stats"]
