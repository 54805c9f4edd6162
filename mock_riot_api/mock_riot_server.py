"""Mock Riot API server for local development and testing.

This module provides a mock of the Riot Games API endpoints consumed by
match-tracker (account-v1, lol match-v5, lol league-v4 and tft match-v1). It
is controlled via a REST interface to register players, complete matches, set
ranked standings and inject rate limit or server errors.
"""

import asyncio
import itertools
import time
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
import uuid

from aiohttp import web
import structlog

logger = structlog.get_logger()

GAME_TYPES = ("lol", "tft")


@dataclass
class MockPlayer:
    """Mock player data."""
    puuid: str
    game_name: str
    tag_line: str
    # Newest first, per game type
    match_history: Dict[str, List[str]] = field(default_factory=lambda: {g: [] for g in GAME_TYPES})
    # league-v4 entries keyed by queue type
    leagues: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass
class MockMatch:
    """Mock completed match."""
    match_id: str
    game_type: str
    game_creation: int
    game_duration: int
    participants: List[Dict[str, Any]]
    queue_id: int = 420

    def to_api_response(self) -> Dict[str, Any]:
        """Convert to the Riot API match response format of the game type."""
        if self.game_type == "tft":
            return {
                "metadata": {
                    "match_id": self.match_id,
                    "participants": [p["puuid"] for p in self.participants],
                },
                "info": {
                    "game_datetime": self.game_creation,
                    "game_length": float(self.game_duration),
                    "queue_id": self.queue_id,
                    "tft_game_type": "standard",
                    "participants": self.participants,
                },
            }
        return {
            "metadata": {
                "matchId": self.match_id,
                "participants": [p["puuid"] for p in self.participants],
            },
            "info": {
                "gameCreation": self.game_creation,
                "gameDuration": self.game_duration,
                "gameEndTimestamp": self.game_creation + self.game_duration * 1000,
                "gameMode": "CLASSIC",
                "gameType": "MATCHED_GAME",
                "mapId": 11,
                "platformId": "NA1",
                "queueId": self.queue_id,
                "participants": self.participants,
            },
        }


class MockRiotAPIServer:
    """Mock Riot API server with control endpoints."""

    def __init__(self, port: int = 8080):
        self.port = port
        self.app = web.Application(middlewares=[self.fault_middleware])
        self.players: Dict[str, MockPlayer] = {}
        self.matches: Dict[str, MockMatch] = {}
        self._game_ids = itertools.count(5000000001)
        self.reset_settings()
        self.setup_routes()

    def reset_settings(self):
        self.request_delay: float = 0  # Configurable delay for slow responses
        self.fail_next_429: int = 0  # Number of upcoming API calls answered with 429
        self.retry_after: Optional[int] = 1  # Retry-After header of injected 429s, None omits it
        self.fail_next_500: int = 0  # Number of upcoming API calls answered with 500
        self.required_api_key: Optional[str] = None  # Reject other keys with 403
        self.request_log: List[Dict[str, Any]] = []

    def setup_routes(self):
        """Set up all API routes."""
        # Riot API endpoints
        self.app.router.add_get('/riot/account/v1/accounts/by-riot-id/{game_name}/{tag_line}', self.get_account_by_riot_id)
        self.app.router.add_get('/lol/match/v5/matches/by-puuid/{puuid}/ids', self.get_lol_match_ids)
        self.app.router.add_get('/lol/match/v5/matches/{match_id}', self.get_lol_match)
        self.app.router.add_get('/lol/league/v4/entries/by-puuid/{puuid}', self.get_league_entries)

        # TFT endpoints
        self.app.router.add_get('/tft/match/v1/matches/by-puuid/{puuid}/ids', self.get_tft_match_ids)
        self.app.router.add_get('/tft/match/v1/matches/{match_id}', self.get_tft_match)

        # Control endpoints
        self.app.router.add_post('/control/players', self.create_player)
        self.app.router.add_post('/control/players/{puuid}/matches', self.complete_match)
        self.app.router.add_put('/control/players/{puuid}/league', self.set_league)
        self.app.router.add_get('/control/players', self.list_players)
        self.app.router.add_delete('/control/players/{puuid}', self.delete_player)
        self.app.router.add_put('/control/settings', self.update_settings)
        self.app.router.add_get('/control/requests', self.list_requests)
        self.app.router.add_post('/control/reset', self.reset_server)

    @web.middleware
    async def fault_middleware(self, request: web.Request, handler):
        """Apply delay, auth and injected failures to Riot API routes."""
        if request.path.startswith('/control/'):
            return await handler(request)

        self.request_log.append({"path": request.path, "time": time.monotonic()})

        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

        if self.required_api_key and request.headers.get("X-Riot-Token") != self.required_api_key:
            return web.json_response(
                {"status": {"message": "Forbidden", "status_code": 403}},
                status=403
            )

        if self.fail_next_429 > 0:
            self.fail_next_429 -= 1
            headers = {"X-Rate-Limit-Type": "application"}
            if self.retry_after is not None:
                headers["Retry-After"] = str(self.retry_after)
            logger.info("Injecting rate limit response", path=request.path, retry_after=self.retry_after)
            return web.json_response(
                {"status": {"message": "Rate limit exceeded", "status_code": 429}},
                status=429,
                headers=headers
            )

        if self.fail_next_500 > 0:
            self.fail_next_500 -= 1
            logger.info("Injecting server error", path=request.path)
            return web.json_response(
                {"status": {"message": "Internal server error", "status_code": 500}},
                status=500
            )

        return await handler(request)

    @staticmethod
    def _not_found(message: str) -> web.Response:
        return web.json_response(
            {"status": {"message": message, "status_code": 404}},
            status=404
        )

    # Riot API endpoints
    async def get_account_by_riot_id(self, request: web.Request) -> web.Response:
        """Mock /riot/account/v1/accounts/by-riot-id endpoint."""
        game_name = request.match_info['game_name']
        tag_line = request.match_info['tag_line']

        # Riot IDs are matched case-insensitively
        for player in self.players.values():
            if player.game_name.lower() == game_name.lower() and player.tag_line.lower() == tag_line.lower():
                return web.json_response({
                    "puuid": player.puuid,
                    "gameName": player.game_name,
                    "tagLine": player.tag_line
                })

        return self._not_found("Account not found")

    async def _get_match_ids(self, request: web.Request, game_type: str) -> web.Response:
        puuid = request.match_info['puuid']
        player = self.players.get(puuid)
        if player is None:
            return self._not_found("Player not found")

        start = int(request.query.get("start", 0))
        count = int(request.query.get("count", 20))
        return web.json_response(player.match_history[game_type][start:start + count])

    async def _get_match(self, request: web.Request, game_type: str) -> web.Response:
        match = self.matches.get(request.match_info['match_id'])
        if match is None or match.game_type != game_type:
            return self._not_found("Match not found")
        return web.json_response(match.to_api_response())

    async def get_lol_match_ids(self, request: web.Request) -> web.Response:
        """Mock /lol/match/v5/matches/by-puuid/{puuid}/ids endpoint."""
        return await self._get_match_ids(request, "lol")

    async def get_lol_match(self, request: web.Request) -> web.Response:
        """Mock /lol/match/v5/matches/{match_id} endpoint."""
        return await self._get_match(request, "lol")

    async def get_league_entries(self, request: web.Request) -> web.Response:
        """Mock /lol/league/v4/entries/by-puuid/{puuid} endpoint."""
        player = self.players.get(request.match_info['puuid'])
        if player is None:
            return self._not_found("Player not found")
        return web.json_response([
            dict(entry, queueType=queue_type, puuid=player.puuid)
            for queue_type, entry in player.leagues.items()
        ])

    async def get_tft_match_ids(self, request: web.Request) -> web.Response:
        """Mock /tft/match/v1/matches/by-puuid/{puuid}/ids endpoint."""
        return await self._get_match_ids(request, "tft")

    async def get_tft_match(self, request: web.Request) -> web.Response:
        """Mock /tft/match/v1/matches/{match_id} endpoint."""
        return await self._get_match(request, "tft")

    # Control endpoints
    async def create_player(self, request: web.Request) -> web.Response:
        """Create a new mock player."""
        data = await request.json()

        puuid = data.get("puuid") or str(uuid.uuid4())
        player = MockPlayer(
            puuid=puuid,
            game_name=data["game_name"],
            tag_line=data["tag_line"],
        )
        self.players[puuid] = player

        logger.info("Created mock player", puuid=puuid, game_name=player.game_name, tag_line=player.tag_line)

        return web.json_response({
            "puuid": player.puuid,
            "game_name": player.game_name,
            "tag_line": player.tag_line
        })

    async def complete_match(self, request: web.Request) -> web.Response:
        """Add a completed match to the front of a player's history."""
        puuid = request.match_info['puuid']
        player = self.players.get(puuid)
        if player is None:
            return web.json_response({"error": "Player not found"}, status=404)

        data = await request.json() if request.can_read_body else {}
        game_type = data.get("game_type", "lol")
        if game_type not in GAME_TYPES:
            return web.json_response({"error": f"Unknown game type {game_type}"}, status=400)

        match_id = data.get("match_id") or f"NA1_{next(self._game_ids)}"
        duration = int(data.get("duration_seconds", 1800))
        participant = {
            "puuid": player.puuid,
            "riotIdGameName": player.game_name,
            "riotIdTagline": player.tag_line,
        }
        if game_type == "tft":
            participant["placement"] = int(data.get("placement", 4))
            default_queue = 1100
        else:
            participant.update({
                "win": bool(data.get("won", True)),
                "championName": data.get("champion_name", "Jinx"),
                "kills": data.get("kills", 7),
                "deaths": data.get("deaths", 3),
                "assists": data.get("assists", 9),
            })
            default_queue = 420

        match = MockMatch(
            match_id=match_id,
            game_type=game_type,
            game_creation=int(time.time() * 1000) - duration * 1000,
            game_duration=duration,
            participants=[participant],
            queue_id=int(data.get("queue_id", default_queue)),
        )
        self.matches[match_id] = match
        player.match_history[game_type].insert(0, match_id)

        logger.info("Completed mock match", puuid=puuid, match_id=match_id, game_type=game_type)

        return web.json_response({"match_id": match_id, "game_type": game_type})

    async def set_league(self, request: web.Request) -> web.Response:
        """Set a player's ranked standing in one queue."""
        puuid = request.match_info['puuid']
        player = self.players.get(puuid)
        if player is None:
            return web.json_response({"error": "Player not found"}, status=404)

        data = await request.json()
        queue_type = data.get("queue_type", "RANKED_SOLO_5x5")
        player.leagues[queue_type] = {
            "tier": data.get("tier", "GOLD"),
            "rank": data.get("rank", "IV"),
            "leaguePoints": int(data.get("league_points", 0)),
            "wins": int(data.get("wins", 0)),
            "losses": int(data.get("losses", 0)),
        }

        logger.info("Updated mock league", puuid=puuid, queue_type=queue_type, **player.leagues[queue_type])

        return web.json_response(dict(player.leagues[queue_type], queueType=queue_type))

    async def list_players(self, request: web.Request) -> web.Response:
        """List all mock players."""
        players_data = []
        for player in self.players.values():
            players_data.append({
                "puuid": player.puuid,
                "game_name": player.game_name,
                "tag_line": player.tag_line,
                "match_history": player.match_history,
            })

        return web.json_response({"players": players_data})

    async def delete_player(self, request: web.Request) -> web.Response:
        """Delete a mock player."""
        puuid = request.match_info['puuid']

        if puuid not in self.players:
            return web.json_response({"error": "Player not found"}, status=404)

        del self.players[puuid]

        logger.info("Deleted mock player", puuid=puuid)

        return web.json_response({"status": "deleted"})

    async def update_settings(self, request: web.Request) -> web.Response:
        """Update server settings."""
        data = await request.json()

        if "request_delay" in data:
            self.request_delay = float(data["request_delay"])
        if "fail_next_429" in data:
            self.fail_next_429 = int(data["fail_next_429"])
        if "retry_after" in data:
            self.retry_after = None if data["retry_after"] is None else int(data["retry_after"])
        if "fail_next_500" in data:
            self.fail_next_500 = int(data["fail_next_500"])
        if "required_api_key" in data:
            self.required_api_key = data["required_api_key"]

        settings = {
            "request_delay": self.request_delay,
            "fail_next_429": self.fail_next_429,
            "retry_after": self.retry_after,
            "fail_next_500": self.fail_next_500,
            "required_api_key": self.required_api_key,
        }
        logger.info("Updated server settings", **settings)

        return web.json_response(settings)

    async def list_requests(self, request: web.Request) -> web.Response:
        """List the Riot API requests received, oldest first."""
        return web.json_response({"requests": self.request_log})

    async def reset_server(self, request: web.Request) -> web.Response:
        """Reset server to initial state."""
        self.players.clear()
        self.matches.clear()
        self.reset_settings()

        logger.info("Reset mock server to initial state")

        return web.json_response({"status": "reset"})

    def run(self):
        """Run the mock server."""
        logger.info("Starting mock Riot API server", port=self.port)
        web.run_app(self.app, host='0.0.0.0', port=self.port)


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Mock Riot API Server')
    parser.add_argument('--port', type=int, default=8080, help='Port to run on')
    args = parser.parse_args()

    server = MockRiotAPIServer(port=args.port)
    server.run()


if __name__ == '__main__':
    main()
