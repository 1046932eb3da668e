# tests/test_presence.py

import asyncio

import pytest
from pypresence.exceptions import PyPresenceException

import Presence as presence_module
from Config import RuntimeSettings
from Presence import DiscordPresence


class FakeRPC:
	instances = []

	def __init__(self, client_id):
		self.client_id = client_id
		self.updates = []
		self.closed = False
		FakeRPC.instances.append(self)

	def connect(self):
		pass

	def update(self, **payload):
		self.updates.append(payload)

	def close(self):
		self.closed = True


class BrokenRPC(FakeRPC):
	def connect(self):
		raise PyPresenceException("Discord is not running")


@pytest.fixture(autouse=True)
def no_loop_patching(monkeypatch):
	monkeypatch.setattr(presence_module.nest_asyncio, "apply", lambda *args, **kwargs: None)
	FakeRPC.instances = []


def test_refresh_only_every_n_ticks(logger):
	presence = DiscordPresence(logger, factory=FakeRPC)
	settings = RuntimeSettings(discord_details="In menus", discord_state="", discord_refresh_every=10)

	asyncio.run(presence.refresh(settings, 5))
	assert FakeRPC.instances == []

	asyncio.run(presence.refresh(settings, 10))
	rpc = FakeRPC.instances[0]
	assert rpc.updates[0]["details"] == "In menus"
	assert "state" not in rpc.updates[0]


def test_disabling_disconnects(logger):
	presence = DiscordPresence(logger, factory=FakeRPC)
	asyncio.run(presence.refresh(RuntimeSettings(discord_refresh_every=1), 1))
	assert presence.connected

	asyncio.run(presence.refresh(RuntimeSettings(discord_enabled=False), 2))
	assert not presence.connected
	assert FakeRPC.instances[0].closed is True


def test_connect_failure_is_logged_not_raised(logger):
	presence = DiscordPresence(logger, factory=BrokenRPC)
	asyncio.run(presence.refresh(RuntimeSettings(discord_refresh_every=1), 1))
	assert not presence.connected
	assert FakeRPC.instances[0].updates == []
