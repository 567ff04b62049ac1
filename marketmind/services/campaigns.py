"""
Campaign Service
================

Campaign suggestions per customer segment and the (simulated) CRM export.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from config import get_config
from marketmind.api.schemas import CampaignSuggestion, CustomerSegment
from .simulation import fallback_campaigns, simulate_generate_campaigns


@dataclass
class ExportResult:
    """Outcome of a CRM export."""

    success: bool
    message: str


class CampaignService:
    """Generate and export marketing campaigns."""

    def __init__(self, config: Optional[dict] = None, rng: Optional[random.Random] = None):
        """
        Initialize CampaignService.

        Args:
            config: Configuration dictionary
            rng: Random source for the simulated CRM
        """
        self.config = config or get_config()
        sim_config = self.config.get("simulation", {})
        self.campaign_delay = sim_config.get("campaign_delay", 2)
        self.export_delay = sim_config.get("export_delay", 1.5)
        self.export_success_rate = sim_config.get("export_success_rate", 0.95)
        self.rng = rng or random.Random()

    async def generate_campaigns(self, segments: Sequence[CustomerSegment]) -> List[CampaignSuggestion]:
        """
        Suggest campaigns for the given segments.

        Args:
            segments: Segments from the latest analysis

        Returns:
            Campaign suggestions
        """
        if self.campaign_delay:
            await asyncio.sleep(self.campaign_delay)
        try:
            return simulate_generate_campaigns(segments)
        except ValueError as e:
            logger.error(f"Error in simulated campaign generation: {e}")
            return fallback_campaigns()

    async def export_campaign_to_crm(self, campaign: CampaignSuggestion) -> ExportResult:
        """
        Export a campaign to the CRM system.

        Args:
            campaign: Campaign to export

        Returns:
            ExportResult with a user-facing message
        """
        if self.export_delay:
            await asyncio.sleep(self.export_delay)

        if self.rng.random() < self.export_success_rate:
            logger.info(f"Exported campaign {campaign.id} to CRM")
            return ExportResult(
                success=True,
                message=f'Campaign "{campaign.title}" successfully exported to CRM system.',
            )

        logger.warning(f"CRM export failed for campaign {campaign.id}")
        return ExportResult(
            success=False,
            message="Failed to export campaign. CRM API connection timed out.",
        )
