# tests/test_riot.py

import pytest

from Models import AuthTokens
from Riot import (FALLBACK_CLIENT_VERSION, CommandError, LocalClient, LockfileError, RemoteClient, RiotClientError,
                  ValorantAPI, build_local_client, parse_lockfile, read_lockfile)
from tests.helpers import LOCKFILE

TOKENS = AuthTokens(access_token="access", entitlements="entitlement", client_version="release-10.00")


# --- Lockfile ---

def test_parse_lockfile():
	lockfile = parse_lockfile("Riot Client:1234:55000:secret:https\n")
	assert lockfile.port == 55000
	assert lockfile.pid == 1234
	assert lockfile.password == "secret"
	assert lockfile.protocol == "https"


def test_parse_lockfile_rejects_short_input():
	with pytest.raises(LockfileError):
		parse_lockfile("Riot Client:1234:55000")


def test_parse_lockfile_rejects_non_numeric_port():
	with pytest.raises(LockfileError):
		parse_lockfile("Riot Client:1234:port:secret:https")


def test_read_lockfile_missing_file(tmp_path):
	with pytest.raises(LockfileError):
		read_lockfile(str(tmp_path / "lockfile"))


def test_read_lockfile(tmp_path):
	path = tmp_path / "lockfile"
	path.write_text("Riot Client:1:2:pw:https", encoding="utf-8")
	assert read_lockfile(str(path)).password == "pw"


def test_build_local_client_requires_password(api, logger):
	lockfile = parse_lockfile("Riot Client:1234:55000::https")
	with pytest.raises(RiotClientError):
		build_local_client(lockfile, api.api_request, logger)


# --- Local client ---

def test_local_client_uses_basic_auth_on_loopback(api, logger):
	api.add_session()
	client = LocalClient(LOCKFILE, api.api_request, logger)
	info = client.fetch_player_info()
	assert info.display_name == "Me#NA1"
	assert client.headers["Authorization"] == "Basic cmlvdDpzZWNyZXQ="
	assert api.calls[0][1] == "https://127.0.0.1:55000/chat/v1/session"


def test_fetch_player_info_requires_puuid(api, logger):
	api.add("GET", "/chat/v1/session", {"game_name": "Me"})
	with pytest.raises(RiotClientError):
		LocalClient(LOCKFILE, api.api_request, logger).fetch_player_info()


def test_fetch_region_from_deployment_argument(api, logger):
	api.add_session(region="latam")
	region = LocalClient(LOCKFILE, api.api_request, logger).fetch_region()
	assert (region.region, region.shard) == ("latam", "na")


def test_fetch_region_falls_back_to_region_locale(api, logger):
	api.add("GET", "/product-session/v1/external-sessions", {})
	api.add("GET", "/riotclient/region-locale", {"region": "KR", "locale": "ko_KR"})
	region = LocalClient(LOCKFILE, api.api_request, logger).fetch_region()
	assert (region.region, region.shard) == ("kr", "kr")


def test_client_version_prefers_public_mirror(api, logger):
	api.add_session()
	client = LocalClient(LOCKFILE, api.api_request, logger)
	assert client.fetch_client_version(ValorantAPI(api.api_request, logger)) == "release-10.00-shipping-5-1"


def test_client_version_falls_back_to_external_sessions(api, logger):
	api.add_session()
	api.remove("GET", "valorant-api.com/v1/version")
	client = LocalClient(LOCKFILE, api.api_request, logger)
	assert client.fetch_client_version(ValorantAPI(api.api_request, logger)) == "release-08.00-shipping-1-1"


def test_client_version_hardcoded_fallback(api, logger):
	client = LocalClient(LOCKFILE, api.api_request, logger)
	assert client.fetch_client_version(ValorantAPI(api.api_request, logger)) == FALLBACK_CLIENT_VERSION


def test_auth_tokens_require_both_tokens(api, logger):
	api.add("GET", "/entitlements/v1/token", {"accessToken": "access"})
	client = LocalClient(LOCKFILE, api.api_request, logger)
	with pytest.raises(RiotClientError, match="missing token"):
		client.fetch_auth_tokens(ValorantAPI(api.api_request, logger))


# --- Remote client ---

def test_remote_hosts_follow_region_and_shard(api, logger):
	remote = RemoteClient(TOKENS, "latam", "na", api.api_request, logger)
	assert remote.pd_url("/x") == "https://pd.na.a.pvp.net/x"
	assert remote.glz_url("/x") == "https://glz-latam-1.na.a.pvp.net/x"
	assert remote.headers["Authorization"] == "Bearer access"
	assert remote.headers["X-Riot-ClientVersion"] == "release-10.00"


def test_command_failure_carries_verb_and_status(api, logger):
	api.add("POST", "/pregame/v1/matches/m1/lock/agent", {}, status=409)
	remote = RemoteClient(TOKENS, "eu", "eu", api.api_request, logger)
	with pytest.raises(CommandError, match="lock failed: 409"):
		remote.lock_agent("m1", "agent")


def test_resolve_names_batches_one_call(api, logger):
	api.add("PUT", "/name-service/v2/players", [
		{"Subject": "a", "GameName": "Alpha", "TagLine": "1"},
		{"Subject": "b", "GameName": "Bravo", "TagLine": "2"},
		"junk",
	])
	remote = RemoteClient(TOKENS, "eu", "eu", api.api_request, logger)
	assert remote.resolve_names(["a", "b"]) == {"a": ("Alpha", "1"), "b": ("Bravo", "2")}
	assert remote.resolve_names([]) == {}
	assert api.count("PUT", "/name-service/v2/players") == 1


def test_owned_agents_are_lowercased(api, logger):
	api.add("GET", "/store/v1/entitlements/self/", {"Entitlements": [{"ItemID": "ABC-DEF"}, {"ItemID": 3}]})
	remote = RemoteClient(TOKENS, "eu", "eu", api.api_request, logger)
	assert remote.fetch_owned_agent_ids("self") == {"abc-def"}
