VERSION = "v1.0.0"

import argparse
import asyncio
import os
import sys
from typing import Optional

import colorama
from colorama import Fore, Style
from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

# Local Imports
from Config import DEFAULT_CONFIG_PATH, RuntimeSettings, build_config_manager
from Connection import ValorantConnection
from Loader import GAME_MODES, Loader
from Logger import Logger, install_global_exception_handlers
from Models import ConnectionState, ConnectionStatus, LiveMatch, PartyState, PlayerProfile
from Presence import DiscordPresence
from utils import Utils, create_session, get_rank_name_from_tier

console = Console()

STATUS_STYLES = {
	ConnectionStatus.DISCONNECTED: "bold red",
	ConnectionStatus.CONNECTING: "bold yellow",
	ConnectionStatus.CONNECTED: "bold green",
}


def clear_console():
	os.system("cls" if os.name == "nt" else "clear")


def color_text(text, color):
	"""Apply color to the text."""
	return f"{color}{text}{Style.RESET_ALL}"


def render_status(state: ConnectionState) -> Panel:
	style = STATUS_STYLES[state.status]
	if state.player_info is None:
		body = "[dim]Waiting for the Riot Client...[/dim]"
	else:
		body = f"{state.player_info.display_name}  |  region {state.region}  |  shard {state.shard}"
	return Panel(body, title=f"Downfall {VERSION} | {state.status.value.title()}", border_style=style)


def render_profile(profile: PlayerProfile) -> Panel:
	lines = [f"[bold]{profile.info.display_name}[/bold]"]
	if profile.account_xp is not None:
		lines.append(f"Level {profile.account_xp.level} ({profile.account_xp.xp} XP)")
	if profile.mmr is not None:
		lines.append(f"Rank: {get_rank_name_from_tier(profile.mmr.rank)} ({profile.mmr.rr} RR)")
		lines.append(f"Peak: {get_rank_name_from_tier(profile.mmr.peak_rank)}")
		lines.append(f"Wins: {profile.mmr.wins} / {profile.mmr.games} games")

	if not profile.comp_updates:
		return Panel("\n".join(lines), title="Profile", border_style="magenta")

	table = Table(show_header=True, header_style="bold magenta", box=box.SIMPLE, expand=True)
	table.add_column("#", justify="center", style="dim", width=3)
	table.add_column("Rank", justify="center")
	table.add_column("RR", justify="center")
	table.add_column("K/D/A", justify="center")
	table.add_column("Score", justify="center")
	table.add_column("Rounds", justify="center")

	for idx, update in enumerate(profile.comp_updates, start=1):
		color = "green" if update.rr_change > 0 else "red" if update.rr_change < 0 else "yellow"
		table.add_row(
			str(idx),
			get_rank_name_from_tier(update.rank_after),
			f"[{color}]{update.rr_change:+d}[/{color}]",
			f"{update.kills}/{update.deaths}/{update.assists}",
			str(update.score),
			f"{update.rounds_won}-{update.rounds_lost}",
		)

	return Panel(Group("\n".join(lines), table), title="Profile", border_style="magenta")


def _team_table(title: str, players, style: str) -> Table:
	table = Table(title=title, show_header=True, header_style=f"bold {style}", box=box.SIMPLE, expand=True)
	table.add_column("Agent", style=style)
	table.add_column("Name")
	table.add_column("Rank", justify="center")
	table.add_column("RR", justify="center")
	table.add_column("Peak", justify="center")
	table.add_column("Level", justify="center")
	for player in players:
		name = player.game_name if not player.incognito or player.is_self else "[dim]Hidden[/dim]"
		if player.is_self:
			name = f"[bold]{name}[/bold]"
		table.add_row(
			player.agent_name,
			name,
			get_rank_name_from_tier(player.rank),
			str(player.rr),
			get_rank_name_from_tier(player.peak_rank),
			str(player.account_level),
		)
	return table


def render_live_match(match: LiveMatch) -> Panel:
	mode = GAME_MODES.get(match.queue_id, match.queue_id or "Custom")
	title = f"{match.map_name} | {mode} | {match.phase.title()}"
	if not match.is_team_mode:
		return Panel(_team_table("Players", match.ally_team, "cyan"), title=title, border_style="cyan")
	tables = [_team_table("Allies", match.ally_team, "cyan")]
	if match.enemy_team:
		tables.append(_team_table("Enemies", match.enemy_team, "red"))
	return Panel(Group(*tables), title=title, border_style="cyan")


def render_party(party: PartyState) -> Panel:
	table = Table(show_header=True, header_style="bold cyan", box=box.SIMPLE, expand=True)
	table.add_column("Member")
	table.add_column("Rank", justify="center")
	table.add_column("Level", justify="center")
	table.add_column("Ready", justify="center")
	table.add_column("Ping", justify="center")
	for member in party.members:
		name = f"{member.game_name}#{member.tag_line}"
		if member.is_owner:
			name = f"[yellow]{name}[/yellow]"
		table.add_row(
			name,
			get_rank_name_from_tier(member.rank),
			str(member.account_level),
			"[green]yes[/green]" if member.is_ready else "[red]no[/red]",
			f"{member.ping} ms",
		)

	rows = [table]
	for invite in party.invites:
		rows.append(f"[magenta]Invite from {invite.from_name}#{invite.from_tag}[/magenta]")

	mode = GAME_MODES.get(party.queue_id, party.queue_id or "Unknown")
	title = f"Party | {mode} | {party.state} | {party.accessibility}"
	return Panel(Group(*rows), title=title, border_style="cyan")


class Dashboard:
	"""Redraws the console whenever the aggregated view changes."""

	def __init__(self, connection: ValorantConnection, loader: Loader, presence: Optional[DiscordPresence],
	             settings: RuntimeSettings, logger):
		self.connection = connection
		self.loader = loader
		self.presence = presence
		self.settings = settings
		self.logger = logger

		self.profile: Optional[PlayerProfile] = None
		self._last_rendered = None

	async def on_tick(self, tick_count: int) -> None:
		# Runs inside the reconnect loop, keep it to the presence.
		if self.presence is not None:
			await self.presence.refresh(self.settings, tick_count)

	async def refresh_forever(self, interval: float) -> None:
		while True:
			try:
				await self.refresh()
			except Exception as e:
				self.logger.error("Dashboard refresh failed", exc_info=e)
			await asyncio.sleep(interval)

	async def refresh(self) -> None:
		state = await self.connection.state()
		live = None
		party = None
		if state.status == ConnectionStatus.CONNECTED:
			if self.profile is None or state.player_info is None or self.profile.info.puuid != state.player_info.puuid:
				self.profile = await self.loader.fetch_profile()
			live = await self.loader.fetch_live_match()
			if live is None:
				party = await self.loader.fetch_party()
		else:
			self.profile = None

		signature = repr((state, live, party, self.profile))
		if signature == self._last_rendered:
			return
		self._last_rendered = signature

		clear_console()
		console.print(render_status(state))
		if self.profile is not None:
			console.print(render_profile(self.profile))
		if live is not None:
			console.print(render_live_match(live))
		elif party is not None:
			console.print(render_party(party))


async def main(settings: RuntimeSettings, logger, use_rpc: bool) -> None:
	install_global_exception_handlers(logger)

	session = create_session()
	api_utils = Utils(logger, session=session, timeout=(5, settings.request_timeout))
	connection = ValorantConnection(logger, utils=api_utils)
	loader = Loader(connection, logger, mmr_fetch_delay=settings.mmr_fetch_delay)
	presence = DiscordPresence(logger) if use_rpc else None

	dashboard = Dashboard(connection, loader, presence, settings, logger)
	refresh_task = asyncio.create_task(dashboard.refresh_forever(settings.tick_interval))
	try:
		await connection.run_forever(interval=settings.tick_interval, on_tick=dashboard.on_tick)
	finally:
		refresh_task.cancel()
		if presence is not None:
			presence.disconnect()
		session.close()


def cli() -> None:
	parser = argparse.ArgumentParser(add_help=True)
	parser.add_argument("--debug", action="store_true", help="Enable debug mode")
	parser.add_argument("--no-rpc", action="store_true", help="Disable Discord Rich Presence")
	parser.add_argument("--version", action="store_true", help="Show version and exit")
	parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to the configuration file")
	args = parser.parse_args()

	if args.version:
		console.print(f"Downfall Version: {VERSION}")
		sys.exit(0)

	colorama.init(autoreset=True)

	config_result = build_config_manager(args.config).load()
	settings = RuntimeSettings.from_config(config_result.config)
	debug = args.debug or settings.debug

	logger = Logger("Downfall", "logs/Downfall", ".log", debug=debug)
	logger.debug(
		"Runtime arguments resolved",
		context={"debug_flag": args.debug, "config_debug_flag": settings.debug, "no_rpc_flag": args.no_rpc},
	)

	if config_result.created:
		console.print(Panel(f"Created default configuration at '{args.config}'.", style="bold green"))
		logger.info("Created default configuration file", context={"path": args.config})

	if config_result.issues:
		logger.warning(
			"Configuration issues detected and adjusted",
			context={"issue_count": len(config_result.issues)},
		)
		console.rule("[bold yellow]Configuration Adjustments[/bold yellow]")
		for issue in config_result.issues:
			key_path = f"{issue.section}.{issue.key}" if issue.key != "*" else issue.section
			console.print(f"[yellow]{key_path}[/yellow]: {issue.message}")
			if issue.reverted_to is not None:
				console.print(f"  Using value: {issue.reverted_to}")
		console.print(Panel("Update the config file to apply your preferred values.", style="bold yellow"))

	try:
		asyncio.run(main(settings, logger, use_rpc=not args.no_rpc))
	except KeyboardInterrupt:
		console.print(color_text("Exiting...", Fore.YELLOW))


if __name__ == "__main__":
	cli()
