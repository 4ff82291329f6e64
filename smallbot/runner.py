"""
CLI entrypoint for smallbot.
"""
import asyncio
import sys

import httpx
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from smallbot.client.small_bot import SmallBot
from smallbot.shared.config import settings
from smallbot.shared.models import TimelineEvent

app = typer.Typer(help="smallbot: a tiny Matrix bot SDK")
console = Console()

def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())

async def echo_handler(bot: SmallBot, room_id: str, event: TimelineEvent) -> None:
    """Replies to every message that isn't our own with a bold echo."""
    if event.type != "m.room.message" or event.sender == bot.own_user_id:
        return
    body = event.content.body if isinstance(event.content.body, str) else ""
    await bot.send_room_notice(room_id, "You said: <b>" + body + "</b>")

async def _ignore(bot: SmallBot, room_id: str, event: TimelineEvent) -> None:
    pass

def make_bot(handler=_ignore) -> SmallBot:
    if not settings.MATRIX_ACCESS_TOKEN:
        typer.echo("MATRIX_ACCESS_TOKEN is not set.", err=True)
        raise typer.Exit(1)
    return SmallBot.from_settings(handler, settings)

@app.command()
def echo():
    """Run the echo bot until the sync loop stops."""
    configure_logging()
    bot = make_bot(echo_handler)

    async def _run():
        async with bot:
            await bot.start()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass

@app.command()
def whoami():
    """Print the user id the access token belongs to."""
    configure_logging()
    bot = make_bot()

    async def _run():
        async with bot:
            return await bot.who_am_i()

    console.print(asyncio.run(_run()).user_id)

@app.command()
def rooms():
    """List joined rooms with their display names."""
    configure_logging()
    bot = make_bot()

    async def _run():
        async with bot:
            joined = await bot.joined_rooms()
            rows = []
            for room_id in joined.joined_rooms:
                try:
                    name = (await bot.get_room_state_name(room_id)).name
                except httpx.HTTPStatusError as e:
                    # Rooms without an m.room.name state event answer 404.
                    if e.response.status_code != 404:
                        raise
                    name = "-"
                rows.append((room_id, name))
            return rows

    table = Table(title="Joined Rooms", expand=True)
    table.add_column("Room ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    for room_id, name in asyncio.run(_run()):
        table.add_row(room_id, name)
    console.print(table)

@app.command()
def send(
    room_id: str = typer.Argument(..., help="Room to post into, e.g. !abc:matrix.org"),
    message: str = typer.Argument(..., help="HTML body of the message"),
    notice: bool = typer.Option(False, "--notice", help="Send as m.notice instead of m.text"),
):
    """Send an HTML message to a room."""
    configure_logging()
    bot = make_bot()

    async def _run():
        async with bot:
            if notice:
                return await bot.send_room_notice(room_id, message)
            return await bot.send_room_text(room_id, message)

    console.print(f"Sent [bold]{asyncio.run(_run()).event_id}[/]")

@app.command()
def profile(user_id: str = typer.Argument(..., help="e.g. @alice:matrix.org")):
    """Show a user's display name and avatar."""
    configure_logging()
    bot = make_bot()

    async def _run():
        async with bot:
            return await bot.get_user_profile(user_id)

    result = asyncio.run(_run())
    console.print(f"Display name: {result.displayname or '-'}")
    console.print(f"Avatar: {result.avatar_url or '-'}")

if __name__ == "__main__":
    app()
