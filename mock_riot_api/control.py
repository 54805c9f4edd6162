"""Control client for the mock Riot API server.

This module provides a Python client and CLI for controlling the mock server,
making it easy to complete matches and inject provider failures.
"""

import asyncio
from typing import Optional, Dict, Any, List

import httpx
import structlog
import click

logger = structlog.get_logger()

# Sentinel for settings that were not passed
_UNSET = object()


class MockRiotControlClient:
    """Client for controlling the mock Riot API server."""

    def __init__(self, base_url: str = "http://localhost:8080"):
        self.base_url = base_url
        self.control_url = f"{base_url}/control"

    async def create_player(
        self,
        game_name: str,
        tag_line: str,
        puuid: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a new mock player."""
        async with httpx.AsyncClient() as client:
            data = {"game_name": game_name, "tag_line": tag_line}
            if puuid:
                data["puuid"] = puuid

            response = await client.post(f"{self.control_url}/players", json=data)
            response.raise_for_status()
            return response.json()

    async def complete_match(
        self,
        puuid: str,
        game_type: str = "lol",
        won: bool = True,
        placement: int = 4,
        duration_seconds: int = 1800,
        queue_id: Optional[int] = None,
        match_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Add a completed match to the front of a player's match history."""
        async with httpx.AsyncClient() as client:
            data = {
                "game_type": game_type,
                "won": won,
                "placement": placement,
                "duration_seconds": duration_seconds,
            }
            if queue_id is not None:
                data["queue_id"] = queue_id
            if match_id:
                data["match_id"] = match_id

            response = await client.post(
                f"{self.control_url}/players/{puuid}/matches",
                json=data
            )
            response.raise_for_status()
            return response.json()

    async def set_league(
        self,
        puuid: str,
        tier: str = "GOLD",
        rank: str = "IV",
        league_points: int = 0,
        queue_type: str = "RANKED_SOLO_5x5",
        wins: int = 0,
        losses: int = 0,
    ) -> Dict[str, Any]:
        """Set a player's ranked standing reported by league-v4."""
        async with httpx.AsyncClient() as client:
            data = {
                "queue_type": queue_type,
                "tier": tier,
                "rank": rank,
                "league_points": league_points,
                "wins": wins,
                "losses": losses,
            }
            response = await client.put(f"{self.control_url}/players/{puuid}/league", json=data)
            response.raise_for_status()
            return response.json()

    async def list_players(self) -> Dict[str, Any]:
        """List all mock players."""
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{self.control_url}/players")
            response.raise_for_status()
            return response.json()

    async def delete_player(self, puuid: str) -> Dict[str, Any]:
        """Delete a mock player."""
        async with httpx.AsyncClient() as client:
            response = await client.delete(f"{self.control_url}/players/{puuid}")
            response.raise_for_status()
            return response.json()

    async def update_settings(
        self,
        request_delay: Optional[float] = None,
        fail_next_429: Optional[int] = None,
        retry_after: Any = _UNSET,
        fail_next_500: Optional[int] = None,
        required_api_key: Any = _UNSET,
    ) -> Dict[str, Any]:
        """Update server settings.

        ``retry_after=None`` makes injected 429 responses omit the header.
        """
        async with httpx.AsyncClient() as client:
            data = {}
            if request_delay is not None:
                data["request_delay"] = request_delay
            if fail_next_429 is not None:
                data["fail_next_429"] = fail_next_429
            if retry_after is not _UNSET:
                data["retry_after"] = retry_after
            if fail_next_500 is not None:
                data["fail_next_500"] = fail_next_500
            if required_api_key is not _UNSET:
                data["required_api_key"] = required_api_key

            response = await client.put(f"{self.control_url}/settings", json=data)
            response.raise_for_status()
            return response.json()

    async def list_requests(self) -> List[Dict[str, Any]]:
        """Riot API requests received by the server, oldest first."""
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{self.control_url}/requests")
            response.raise_for_status()
            return response.json()["requests"]

    async def reset_server(self) -> Dict[str, Any]:
        """Reset server to initial state."""
        async with httpx.AsyncClient() as client:
            response = await client.post(f"{self.control_url}/reset")
            response.raise_for_status()
            return response.json()

    async def simulate_matches(
        self,
        puuid: str,
        count: int = 3,
        game_type: str = "lol",
        interval_seconds: float = 5,
    ) -> List[str]:
        """Complete ``count`` matches for a player, one every ``interval_seconds``."""
        match_ids = []
        for i in range(count):
            if i:
                await asyncio.sleep(interval_seconds)
            result = await self.complete_match(puuid, game_type=game_type, won=i % 2 == 0, placement=i % 8 + 1)
            match_ids.append(result["match_id"])
            logger.info("Match completed", match_id=result["match_id"], game_type=game_type)
        return match_ids


# CLI Commands
@click.group()
@click.option('--server-url', default='http://localhost:8080', help='Mock server URL')
@click.pass_context
def cli(ctx, server_url):
    """Mock Riot API Control CLI."""
    ctx.ensure_object(dict)
    ctx.obj['client'] = MockRiotControlClient(server_url)


@cli.command()
@click.argument('game_name')
@click.argument('tag_line')
@click.option('--puuid', help='Specific PUUID to use')
@click.pass_context
def create_player(ctx, game_name, tag_line, puuid):
    """Create a new mock player."""
    client = ctx.obj['client']
    result = asyncio.run(client.create_player(game_name, tag_line, puuid))
    click.echo(f"Created player: {result}")


@cli.command()
@click.pass_context
def list_players(ctx):
    """List all mock players."""
    client = ctx.obj['client']
    result = asyncio.run(client.list_players())

    players = result.get('players', [])
    if not players:
        click.echo("No players found")
        return

    for player in players:
        click.echo(f"\n{player['game_name']}#{player['tag_line']} ({player['puuid']})")
        for game_type, match_ids in player['match_history'].items():
            click.echo(f"  {game_type.upper()} matches: {', '.join(match_ids) or 'none'}")


@cli.command()
@click.argument('puuid')
@click.option('--game-type', type=click.Choice(['lol', 'tft']), default='lol')
@click.option('--won/--lost', default=True)
@click.option('--placement', default=4, type=int, help='TFT placement (1-8)')
@click.option('--duration', default=1800, type=int, help='Duration in seconds')
@click.option('--queue-id', type=int)
@click.pass_context
def complete_match(ctx, puuid, game_type, won, placement, duration, queue_id):
    """Complete a match for a player."""
    client = ctx.obj['client']
    result = asyncio.run(client.complete_match(
        puuid, game_type=game_type, won=won, placement=placement,
        duration_seconds=duration, queue_id=queue_id
    ))
    click.echo(f"Match completed: {result}")


@cli.command()
@click.argument('puuid')
@click.option('--count', default=3, type=int)
@click.option('--game-type', type=click.Choice(['lol', 'tft']), default='lol')
@click.option('--interval', default=5.0, type=float, help='Seconds between matches')
@click.pass_context
def simulate_matches(ctx, puuid, count, game_type, interval):
    """Complete several matches for a player over time."""
    client = ctx.obj['client']
    match_ids = asyncio.run(client.simulate_matches(puuid, count, game_type, interval))
    click.echo(f"Completed matches: {', '.join(match_ids)}")


@cli.command()
@click.argument('puuid')
@click.argument('tier')
@click.argument('rank')
@click.option('--lp', default=0, type=int, help='League points')
@click.option('--queue', type=click.Choice(['RANKED_SOLO_5x5', 'RANKED_FLEX_SR']), default='RANKED_SOLO_5x5')
@click.pass_context
def set_league(ctx, puuid, tier, rank, lp, queue):
    """Set a player's ranked standing."""
    client = ctx.obj['client']
    result = asyncio.run(client.set_league(puuid, tier.upper(), rank.upper(), lp, queue_type=queue))
    click.echo(f"League updated: {result}")


@cli.command()
@click.option('--delay', type=float, help='Request delay in seconds')
@click.option('--fail-429', type=int, help='Answer the next N API calls with 429')
@click.option('--retry-after', type=int, help='Retry-After seconds of injected 429s')
@click.option('--fail-500', type=int, help='Answer the next N API calls with 500')
@click.pass_context
def settings(ctx, delay, fail_429, retry_after, fail_500):
    """Update server settings."""
    client = ctx.obj['client']
    kwargs = {}
    if retry_after is not None:
        kwargs["retry_after"] = retry_after
    result = asyncio.run(client.update_settings(
        request_delay=delay,
        fail_next_429=fail_429,
        fail_next_500=fail_500,
        **kwargs
    ))
    click.echo(f"Settings updated: {result}")


@cli.command()
@click.pass_context
def reset(ctx):
    """Reset server to initial state."""
    client = ctx.obj['client']
    asyncio.run(client.reset_server())
    click.echo("Server reset")


if __name__ == '__main__':
    cli()
