"""User-friendly APIs for Congress Rebalancer.

Components:
- BotAPI: Portfolio view, manual trade entry and manual triggers
"""

from congress_rebalancer.api.bot_api import BotAPI

__all__ = ["BotAPI"]
