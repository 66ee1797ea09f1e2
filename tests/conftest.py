"""
Pytest configuration for talentradar-data tests.

API-Football is replaced by ``FakeApiFootball``, an ``httpx.MockTransport``
handler routing requests by path to canned envelopes. Persistence uses the
in-memory repositories unless a test opts into PostgreSQL.
"""

import os
from datetime import date
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from talentradar_data.core.budget import ApiCallBudget
from talentradar_data.core.config import Settings
from talentradar_data.core.http import ApiFootballHttpClient
from talentradar_data.providers.api_football import ApiFootballProvider
from talentradar_data.repositories import get_repositories

TODAY = date(2025, 8, 1)

Handler = Union[dict, httpx.Response, Callable[[dict[str, str]], Any]]


def pytest_configure(config):
    """Configure pytest with database URL if available."""
    env_file = os.path.join(os.path.dirname(__file__), "..", ".env")
    if os.path.exists(env_file):
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")
                    if key not in os.environ:
                        os.environ[key] = value


# =========================================================================
# Fake API-Football
# =========================================================================


def envelope(response: list, total_pages: int = 1, errors: Any = None) -> dict:
    return {
        "errors": errors if errors is not None else [],
        "paging": {"current": 1, "total": total_pages},
        "response": response,
    }


class FakeApiFootball:
    """Routes requests by path; unknown paths answer with an empty envelope."""

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []

    def route(self, path: str, handler: Handler) -> None:
        self.routes[path] = handler

    def calls_to(self, path: str) -> list[dict[str, str]]:
        return [params for p, params in self.calls if p == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.calls.append((request.url.path, params))

        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(200, json=envelope([]))

        result = handler(params) if callable(handler) else handler
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)


# =========================================================================
# Canned payloads
# =========================================================================


def league_row(league_id: int = 1128, name: str = "Primera B", country: str = "Chile") -> dict:
    return {
        "league": {"id": league_id, "name": name, "type": "League", "logo": f"https://media/{league_id}.png"},
        "country": {"name": country, "code": "CL", "flag": "https://media/cl.svg"},
        "seasons": [{"year": 2025, "current": True}],
    }


def team_row(team_id: int, name: str, country: str = "Chile", national: bool = False) -> dict:
    return {
        "team": {
            "id": team_id,
            "name": name,
            "code": name[:3].upper(),
            "country": country,
            "founded": 1920,
            "national": national,
            "logo": f"https://media/teams/{team_id}.png",
        },
        "venue": {"id": team_id * 10, "name": f"{name} Stadium", "city": "Santiago", "capacity": 20000},
    }


def stat_block(
    team_id: int,
    team_name: str,
    league_id: int = 1128,
    league_name: str = "Primera B",
    season: int = 2025,
    appearances: int = 10,
    goals: int = 2,
    position: str = "Midfielder",
    number: Optional[int] = 8,
) -> dict:
    return {
        "team": {"id": team_id, "name": team_name, "logo": None},
        "league": {"id": league_id, "name": league_name, "country": "Chile", "logo": None, "season": season},
        "games": {
            "appearences": appearances,
            "lineups": appearances - 1,
            "minutes": appearances * 80,
            "number": number,
            "position": position,
            "rating": "7.266667",
            "captain": False,
        },
        "substitutes": {"in": 1, "out": 3, "bench": 2},
        "shots": {"total": 12, "on": 5},
        "goals": {"total": goals, "conceded": 0, "assists": 1, "saves": None},
        "passes": {"total": 300, "key": 9, "accuracy": 81},
        "tackles": {"total": 14, "blocks": 1, "interceptions": 6},
        "dribbles": {"attempts": 20, "success": 11, "past": None},
        "fouls": {"drawn": 8, "committed": 7},
        "cards": {"yellow": 2, "yellowred": 1, "red": 0},
        "penalty": {"won": 1, "commited": None, "scored": 1, "missed": 0, "saved": None},
    }


def player_row(
    player_id: int,
    birth_date: Optional[str] = "2006-03-10",
    name: Optional[str] = None,
    statistics: Optional[list] = None,
) -> dict:
    return {
        "player": {
            "id": player_id,
            "name": name or f"Player {player_id}",
            "firstname": "Test",
            "lastname": f"Player{player_id}",
            "age": 19,
            "birth": {"date": birth_date, "place": "Santiago", "country": "Chile"},
            "nationality": "Chile",
            "height": "178 cm",
            "weight": "70 kg",
            "injured": False,
            "photo": f"https://media/players/{player_id}.png",
        },
        "statistics": statistics if statistics is not None else [],
    }


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with no delays, independent of the environment."""
    return Settings(
        _env_file=None,
        api_football_key="test-key",
        database_url=None,
        request_interval=0,
        retry_base_delay=0,
        page_delay=0,
        max_retry_attempts=3,
        current_season=2025,
        max_api_calls=10000,
        population_league_ids=[1128],
        populate_on_startup=False,
    )


@pytest.fixture
def fake_api() -> FakeApiFootball:
    return FakeApiFootball()


@pytest.fixture
def budget() -> ApiCallBudget:
    return ApiCallBudget(max_calls=10000)


@pytest.fixture
async def http(settings, fake_api, budget):
    client = ApiFootballHttpClient.from_settings(
        settings, budget=budget, transport=httpx.MockTransport(fake_api)
    )
    yield client
    await client.close()


@pytest.fixture
def provider(http, settings) -> ApiFootballProvider:
    return ApiFootballProvider(http, page_delay=settings.page_delay)


@pytest.fixture
def repos():
    return get_repositories()


@pytest.fixture
def today() -> date:
    return TODAY
