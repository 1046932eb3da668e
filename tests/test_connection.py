# tests/test_connection.py

import asyncio
import threading

import pytest

from Connection import NotConnectedError, ValorantConnection
from Models import ConnectionStatus
from Riot import LockfileError
from tests.helpers import SELF_PUUID


def test_unreadable_credentials_stay_disconnected(api, logger):
	def missing():
		raise LockfileError("no lockfile")

	conn = ValorantConnection(logger, utils=api, credential_source=missing)

	async def scenario():
		ok = await conn.try_connect()
		return ok, await conn.state()

	ok, state = asyncio.run(scenario())
	assert ok is False
	assert state.status == ConnectionStatus.DISCONNECTED
	assert state.player_info is None
	assert api.calls == []


def test_identity_failure_forces_disconnect(connection, api):
	async def scenario():
		ok = await connection.try_connect()
		return ok, await connection.state(), await connection.local_client()

	ok, state, local = asyncio.run(scenario())
	assert ok is False
	assert state.status == ConnectionStatus.DISCONNECTED
	assert local is None


def test_successful_connect_publishes_full_state(connection, api):
	api.add_session(region="eu")

	async def scenario():
		ok = await connection.try_connect()
		return ok, await connection.state(), await connection.session_context()

	ok, state, ctx = asyncio.run(scenario())
	assert ok is True
	assert state.status == ConnectionStatus.CONNECTED
	assert state.player_info.puuid == SELF_PUUID
	assert state.player_info.player_card_id == "card-1"
	assert (state.region, state.shard) == ("eu", "eu")
	assert ctx.tokens.access_token == "access"
	assert ctx.tokens.client_version == "release-10.00-shipping-5-1"


def test_token_failure_still_connects(connection, api):
	api.add_session()
	api.remove("GET", "127.0.0.1:55000/entitlements/v1/token")

	async def scenario():
		ok = await connection.try_connect()
		state = await connection.state()
		try:
			await connection.session_context()
		except NotConnectedError as e:
			return ok, state, str(e)
		return ok, state, None

	ok, state, error = asyncio.run(scenario())
	assert ok is True
	assert state.status == ConnectionStatus.CONNECTED
	assert state.player_info.player_card_id is None
	assert error == "no auth tokens"


def test_state_is_a_copy(connection, api):
	api.add_session()

	async def scenario():
		await connection.try_connect()
		snapshot = await connection.state()
		snapshot.player_info.game_name = "Changed"
		return await connection.state()

	assert asyncio.run(scenario()).player_info.game_name == "Me"


def test_health_check_fills_missing_card_only(connection, api):
	api.add_session(card_id=None)

	async def scenario():
		await connection.try_connect()
		before = (await connection.state()).player_info.player_card_id

		api.add("GET", f"/personalization/v2/players/{SELF_PUUID}/playerloadout",
		        {"Identity": {"PlayerCardID": "card-1"}})
		await connection.health_check()
		filled = (await connection.state()).player_info.player_card_id

		api.add("GET", f"/personalization/v2/players/{SELF_PUUID}/playerloadout",
		        {"Identity": {"PlayerCardID": "card-2"}})
		await connection.health_check()
		kept = (await connection.state()).player_info.player_card_id
		return before, filled, kept

	assert asyncio.run(scenario()) == (None, "card-1", "card-1")


def test_health_check_keeps_old_tokens_when_refresh_fails(connection, api):
	api.add_session()

	async def scenario():
		await connection.try_connect()
		api.add("GET", "127.0.0.1:55000/entitlements/v1/token", {"accessToken": "new-access"})
		healthy = await connection.health_check()
		return healthy, await connection.tokens()

	healthy, tokens = asyncio.run(scenario())
	assert healthy is True
	assert tokens.access_token == "access"


def test_failed_health_check_disconnects_on_tick(connection, api):
	api.add_session()

	async def scenario():
		await connection.tick()
		connected = (await connection.state()).status
		api.remove("GET", "127.0.0.1:55000/chat/v1/session")
		await connection.tick()
		return connected, await connection.state(), await connection.tokens()

	connected, state, tokens = asyncio.run(scenario())
	assert connected == ConnectionStatus.CONNECTED
	assert state.status == ConnectionStatus.DISCONNECTED
	assert state.region is None
	assert tokens is None


def test_tick_is_single_flight(api, logger):
	release = threading.Event()
	attempts = []

	def slow_credentials():
		attempts.append(1)
		release.wait(5)
		raise LockfileError("no lockfile")

	conn = ValorantConnection(logger, utils=api, credential_source=slow_credentials)

	async def scenario():
		first = asyncio.create_task(conn.tick())
		await asyncio.sleep(0.05)
		skipped = await conn.tick()
		release.set()
		return skipped, await first

	skipped, ran = asyncio.run(scenario())
	assert skipped is False
	assert ran is True
	assert len(attempts) == 1


def test_disconnect_is_idempotent(connection, api):
	api.add_session()

	async def scenario():
		await connection.try_connect()
		await connection.disconnect()
		await connection.disconnect()
		return await connection.state()

	state = asyncio.run(scenario())
	assert state.status == ConnectionStatus.DISCONNECTED
	assert state.player_info is None


@pytest.mark.parametrize("missing, message", [("region", "no region"), ("shard", "no shard")])
def test_session_context_names_missing_piece(connection, api, missing, message):
	api.add_session()

	async def scenario():
		await connection.try_connect()
		setattr(connection._state, missing, None)
		with pytest.raises(NotConnectedError, match=message):
			await connection.session_context()

	asyncio.run(scenario())


def test_run_forever_survives_callback_errors(connection, api):
	api.add_session()
	ticks = []

	async def on_tick(tick_count):
		ticks.append(tick_count)
		if tick_count == 1:
			raise RuntimeError("render failed")
		if tick_count == 3:
			raise asyncio.CancelledError()

	with pytest.raises(asyncio.CancelledError):
		asyncio.run(connection.run_forever(interval=0, on_tick=on_tick))
	assert ticks == [1, 2, 3]


def test_unexpected_credential_error_still_disconnects(api, logger):
	def corrupt():
		raise ValueError("lockfile port is not a number")

	conn = ValorantConnection(logger, utils=api, credential_source=corrupt)

	async def scenario():
		ok = await conn.try_connect()
		return ok, await conn.state()

	ok, state = asyncio.run(scenario())
	assert ok is False
	assert state.status == ConnectionStatus.DISCONNECTED


def test_malformed_version_payload_falls_back_to_session_version(connection, api):
	api.add_session()
	api.add("GET", "valorant-api.com/v1/version", {"data": "release-x"})

	async def scenario():
		ok = await connection.try_connect()
		return ok, await connection.tokens()

	ok, tokens = asyncio.run(scenario())
	assert ok is True
	assert tokens.client_version == "release-08.00-shipping-1-1"


def test_malformed_launch_configuration_falls_back_to_region_locale(connection, api):
	api.add_session()
	api.add("GET", "127.0.0.1:55000/product-session/v1/external-sessions", {
		"host_app": {"launchConfiguration": ["-ares-deployment=eu"], "version": "release-08.00-shipping-1-1"},
	})
	api.add("GET", "127.0.0.1:55000/riotclient/region-locale", {"region": "AP"})

	async def scenario():
		ok = await connection.try_connect()
		return ok, await connection.state()

	ok, state = asyncio.run(scenario())
	assert ok is True
	assert state.status == ConnectionStatus.CONNECTED
	assert (state.region, state.shard) == ("ap", "ap")
