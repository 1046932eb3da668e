# Connection.py

import asyncio
from copy import deepcopy
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

# Local Imports
from Models import AuthTokens, ConnectionState, ConnectionStatus, PlayerInfo
from Riot import (LocalClient, LockfileError, RemoteClient, RiotClientError, ValorantAPI, build_local_client,
                  read_lockfile)
from utils import Utils

DEFAULT_TICK_INTERVAL = 3.0


class NotConnectedError(Exception):
	"""Raised when an operation needs a piece of session state that is not available."""


@dataclass(frozen=True)
class SessionContext:
	"""Immutable view of everything a remote call needs, taken in one locked read."""
	player_info: PlayerInfo
	region: str
	shard: str
	tokens: AuthTokens

	@property
	def puuid(self) -> str:
		return self.player_info.puuid


class ValorantConnection:
	"""
	Owns the live session against the local Riot Client.

	State transitions: Disconnected -> Connecting -> Connected on a successful try_connect,
	anything -> Disconnected on a failed try_connect, Connected -> Disconnected when the
	health check fails. The state lock is never held across a network call.
	"""

	def __init__(self, logger, utils: Utils | None = None,
	             credential_source: Callable[[], object] = read_lockfile,
	             public: ValorantAPI | None = None):
		self.logger = logger
		self.utils = utils or Utils(logger)
		self.api_request = self.utils.api_request
		self.credential_source = credential_source
		self.public = public or ValorantAPI(self.api_request, logger)

		self._state = ConnectionState()
		self._local: Optional[LocalClient] = None
		self._tokens: Optional[AuthTokens] = None

		self._lock = asyncio.Lock()
		self._cycle_lock = asyncio.Lock()

	async def _fetch_tokens(self, local: LocalClient) -> Optional[AuthTokens]:
		try:
			return await asyncio.to_thread(local.fetch_auth_tokens, self.public)
		except RiotClientError as e:
			self.logger.warning("Auth token fetch failed", context={"error": str(e)})
			return None

	async def _fetch_card_id(self, tokens: AuthTokens, puuid: str, region: str, shard: str) -> Optional[str]:
		remote = RemoteClient(tokens, region, shard, self.api_request, self.logger)
		card_id = await asyncio.to_thread(remote.fetch_player_card_id, puuid)
		if card_id is None:
			self.logger.debug("Player card lookup returned nothing", context={"puuid": puuid})
		return card_id

	async def try_connect(self) -> bool:
		async with self._lock:
			self._state.status = ConnectionStatus.CONNECTING

		try:
			return await self._connect()
		except Exception as e:
			self.logger.log_exception("Unexpected error while connecting", e)
			await self.disconnect()
			return False

	async def _connect(self) -> bool:
		try:
			lockfile = await asyncio.to_thread(self.credential_source)
		except (LockfileError, OSError) as e:
			self.logger.debug("Riot Client credentials unavailable", context={"error": str(e)})
			await self.disconnect()
			return False

		try:
			local = build_local_client(lockfile, self.api_request, self.logger)
			info = await asyncio.to_thread(local.fetch_player_info)
			region_info = await asyncio.to_thread(local.fetch_region)
		except RiotClientError as e:
			self.logger.warning("Connection attempt failed", context={"error": str(e)})
			await self.disconnect()
			return False

		tokens = await self._fetch_tokens(local)
		if tokens is not None:
			info.player_card_id = await self._fetch_card_id(tokens, info.puuid, region_info.region,
			                                                region_info.shard)

		async with self._lock:
			self._state = ConnectionState(
				status=ConnectionStatus.CONNECTED,
				player_info=info,
				region=region_info.region,
				shard=region_info.shard,
			)
			self._local = local
			self._tokens = tokens

		self.logger.info(
			"Connected to Riot Client",
			context={"player": info.display_name, "region": region_info.region, "shard": region_info.shard,
			         "has_tokens": tokens is not None},
		)
		return True

	async def health_check(self) -> bool:
		async with self._lock:
			local = self._local
		if local is None:
			return False

		try:
			await asyncio.to_thread(local.fetch_player_info)
		except RiotClientError as e:
			self.logger.info("Health check failed", context={"error": str(e)})
			return False

		new_tokens = await self._fetch_tokens(local)

		async with self._lock:
			if new_tokens is not None:
				self._tokens = new_tokens
			tokens = self._tokens
			info = self._state.player_info
			region = self._state.region or "na"
			shard = self._state.shard or "na"

		if tokens is not None and info is not None and info.player_card_id is None:
			card_id = await self._fetch_card_id(tokens, info.puuid, region, shard)
			if card_id:
				async with self._lock:
					current = self._state.player_info
					if current is not None and current.puuid == info.puuid and current.player_card_id is None:
						self._state.player_info = replace(current, player_card_id=card_id)

		return True

	async def disconnect(self) -> None:
		async with self._lock:
			was_connected = self._state.status == ConnectionStatus.CONNECTED
			self._state = ConnectionState(status=ConnectionStatus.DISCONNECTED)
			self._local = None
			self._tokens = None
		if was_connected:
			self.logger.info("Disconnected from Riot Client")

	async def state(self) -> ConnectionState:
		async with self._lock:
			return deepcopy(self._state)

	async def tokens(self) -> Optional[AuthTokens]:
		async with self._lock:
			return self._tokens

	async def local_client(self) -> Optional[LocalClient]:
		async with self._lock:
			return self._local

	async def session_context(self) -> SessionContext:
		async with self._lock:
			info = self._state.player_info
			region = self._state.region
			shard = self._state.shard
			tokens = self._tokens

		if info is None:
			raise NotConnectedError("not connected")
		if region is None:
			raise NotConnectedError("no region")
		if shard is None:
			raise NotConnectedError("no shard")
		if tokens is None:
			raise NotConnectedError("no auth tokens")
		return SessionContext(player_info=deepcopy(info), region=region, shard=shard, tokens=tokens)

	async def tick(self) -> bool:
		"""Runs one connect or health-check cycle. Returns False when a cycle is already in flight."""
		if self._cycle_lock.locked():
			self.logger.debug("Skipping tick, previous cycle still running")
			return False

		async with self._cycle_lock:
			state = await self.state()
			if state.status == ConnectionStatus.CONNECTED:
				if not await self.health_check():
					await self.disconnect()
			else:
				await self.try_connect()
		return True

	async def run_forever(self, interval: float = DEFAULT_TICK_INTERVAL,
	                      on_tick: Callable[[int], Awaitable[None]] | None = None) -> None:
		tick_count = 0
		while True:
			try:
				await self.tick()
				tick_count += 1
				if on_tick is not None:
					await on_tick(tick_count)
			except Exception as e:
				self.logger.error("Unhandled error inside connection loop", context={"tick": tick_count}, exc_info=e)
			await asyncio.sleep(interval)
