# Commands.py

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

import requests

# Local Imports
from Connection import NotConnectedError, SessionContext, ValorantConnection
from Riot import CommandError, RemoteClient


@dataclass
class CommandResult:
	ok: bool
	error: str | None = None
	value: Any = None


class Commands:
	"""User-triggered mutations against the GLZ service. Every call resolves to a CommandResult."""

	def __init__(self, connection: ValorantConnection, logger):
		self.connection = connection
		self.logger = logger

	def _remote(self, ctx: SessionContext) -> RemoteClient:
		return RemoteClient(ctx.tokens, ctx.region, ctx.shard, self.connection.api_request, self.logger)

	async def _run(self, verb: str, action: Callable[[RemoteClient, SessionContext], Any]) -> CommandResult:
		try:
			ctx = await self.connection.session_context()
		except NotConnectedError as e:
			return CommandResult(ok=False, error=str(e))

		remote = self._remote(ctx)
		try:
			value = await asyncio.to_thread(action, remote, ctx)
		except CommandError as e:
			return CommandResult(ok=False, error=str(e))
		except requests.exceptions.RequestException as e:
			self.logger.warning(f"{verb} command raised a transport error", context={"error": repr(e)})
			return CommandResult(ok=False, error=f"{verb} failed: {e}")

		self.logger.info(f"{verb} command succeeded")
		return CommandResult(ok=True, value=value)

	# Pregame

	async def select_agent(self, match_id: str, agent_id: str) -> CommandResult:
		return await self._run("select", lambda remote, ctx: remote.select_agent(match_id, agent_id))

	async def lock_agent(self, match_id: str, agent_id: str) -> CommandResult:
		return await self._run("lock", lambda remote, ctx: remote.lock_agent(match_id, agent_id))

	async def instalock(self, match_id: str, agent_id: str) -> CommandResult:
		"""Selects then locks an agent. A failed select is ignored, the lock result is returned."""
		selected = await self.select_agent(match_id, agent_id)
		if not selected.ok:
			self.logger.debug("Agent select failed before lock", context={"error": selected.error})
		return await self.lock_agent(match_id, agent_id)

	async def dodge(self, match_id: str) -> CommandResult:
		return await self._run("quit", lambda remote, ctx: remote.quit_pregame(match_id))

	# Party

	async def party_invite(self, party_id: str, name: str, tag: str) -> CommandResult:
		return await self._run("invite", lambda remote, ctx: remote.party_invite(party_id, name, tag))

	async def party_kick(self, party_id: str, target_puuid: str) -> CommandResult:
		return await self._run("kick", lambda remote, ctx: remote.party_kick(party_id, target_puuid))

	async def party_promote(self, party_id: str, target_puuid: str) -> CommandResult:
		return await self._run("promote", lambda remote, ctx: remote.party_promote(party_id, target_puuid))

	async def party_accept_invite(self, party_id: str) -> CommandResult:
		return await self._run("accept", lambda remote, ctx: remote.party_accept_invite(party_id, ctx.puuid))

	async def party_decline_invite(self, party_id: str, request_id: str) -> CommandResult:
		return await self._run("decline", lambda remote, ctx: remote.party_decline_invite(party_id, request_id))

	async def party_set_accessibility(self, party_id: str, open_party: bool) -> CommandResult:
		return await self._run(
			"accessibility", lambda remote, ctx: remote.party_set_accessibility(party_id, open_party)
		)

	async def party_set_ready(self, party_id: str, ready: bool) -> CommandResult:
		return await self._run("ready", lambda remote, ctx: remote.party_set_ready(party_id, ctx.puuid, ready))

	async def party_queue(self, party_id: str, start: bool) -> CommandResult:
		if start:
			return await self._run("queue", lambda remote, ctx: remote.party_start_queue(party_id))
		return await self._run("leave queue", lambda remote, ctx: remote.party_leave_queue(party_id))

	async def party_set_queue(self, party_id: str, queue_id: str) -> CommandResult:
		return await self._run("set queue", lambda remote, ctx: remote.party_set_queue(party_id, queue_id))

	async def party_generate_code(self, party_id: str) -> CommandResult:
		return await self._run("generate code", lambda remote, ctx: remote.party_generate_code(party_id))

	async def party_disable_code(self, party_id: str) -> CommandResult:
		return await self._run("disable code", lambda remote, ctx: remote.party_disable_code(party_id))
