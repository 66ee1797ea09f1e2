"""
API-Football data provider.

Usage:
    from talentradar_data.core.http import ApiFootballHttpClient
    from talentradar_data.providers import ApiFootballProvider

    async with ApiFootballHttpClient.from_settings(settings) as http:
        provider = ApiFootballProvider(http, page_delay=settings.page_delay)
        league = await provider.fetch_league(1128)
"""

from .api_football import ApiFootballProvider

__all__ = ["ApiFootballProvider"]
