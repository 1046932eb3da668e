# Presence.py

from typing import Callable

import nest_asyncio
from pypresence import Presence
from pypresence.exceptions import PyPresenceException

# Local Imports
from Config import RuntimeSettings

CLIENT_ID = "1469360807132528660"  # For discord RPC

BUTTONS = [
	{"label": "View Github", "url": "https://github.com/Zyhloh/Downfall"},
	{"label": "Join Discord", "url": "https://discord.gg/sypg8uaDBX"},
]


class DiscordPresence:
	"""Thin wrapper around pypresence that never lets a Discord failure escape."""

	def __init__(self, logger, client_id: str = CLIENT_ID, factory: Callable[[str], Presence] = Presence):
		self.logger = logger
		self.client_id = client_id
		self.factory = factory
		self.rpc: Presence | None = None

	@property
	def connected(self) -> bool:
		return self.rpc is not None

	def connect(self) -> bool:
		if self.rpc is not None:
			return True
		try:
			# pypresence drives its own event loop, which has to nest inside ours.
			nest_asyncio.apply()
			rpc = self.factory(self.client_id)
			rpc.connection_timeout = 10
			rpc.connect()
		except (PyPresenceException, OSError, RuntimeError) as e:
			self.logger.warning("Error initializing Discord RPC", context={"error": repr(e)})
			return False
		self.rpc = rpc
		self.logger.info("Connected to Discord RPC")
		return True

	def disconnect(self) -> None:
		if self.rpc is None:
			return
		rpc, self.rpc = self.rpc, None
		try:
			rpc.close()
		except (PyPresenceException, OSError, RuntimeError) as e:
			self.logger.debug("Discord RPC close failed", context={"error": repr(e)})
		self.logger.info("Disconnected from Discord RPC")

	def update(self, details: str, state: str) -> bool:
		"""Pushes the activity. Empty strings are left out of the payload."""
		if self.rpc is None:
			return False
		payload = {"large_image": "downfall", "large_text": "Downfall", "buttons": BUTTONS}
		if details:
			payload["details"] = details
		if state:
			payload["state"] = state
		try:
			self.rpc.update(**payload)
		except (PyPresenceException, OSError, RuntimeError) as e:
			self.logger.warning("Discord RPC update failed, dropping connection", context={"error": repr(e)})
			self.rpc = None
			return False
		return True

	async def refresh(self, settings: RuntimeSettings, tick_count: int) -> None:
		"""Background loop hook. Pushes the presence once every `discord_refresh_every` ticks."""
		if not settings.discord_enabled:
			if self.connected:
				self.disconnect()
			return
		if tick_count % settings.discord_refresh_every != 0:
			return
		if not self.connected and not self.connect():
			return
		self.update(settings.discord_details, settings.discord_state)
