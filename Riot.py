# Riot.py

import os
from base64 import b64encode
from dataclasses import dataclass
from typing import Any, Callable

# Local Imports
from Models import AuthTokens, PlayerInfo, RegionInfo
from utils import shard_for_region

VALORANT_API = "https://valorant-api.com/v1"
CLIENT_PLATFORM = "ew0KCSJwbGF0Zm9ybVR5cGUiOiAiUEMiLA0KCSJwbGF0Zm9ybU9TIjogIldpbmRvd3MiLA0KCSJwbGF0Zm9ybU9TVmVyc2lvbiI6ICIxMC4wLjE5MDQyLjEuMjU2LjY0Yml0IiwNCgkicGxhdGZvcm1DaGlwc2V0IjogIlVua25vd24iDQp9"
FALLBACK_CLIENT_VERSION = "release-09.06-shipping-17-2621129"
AGENT_ENTITLEMENT_TYPE = "01bb38e1-da47-4e6a-9b3d-945fe4655707"

ApiRequest = Callable[..., Any]


class LockfileError(Exception):
	"""Raised when the Riot Client lockfile is missing or malformed."""


class RiotClientError(Exception):
	"""Raised when the local Riot Client API cannot answer a required request."""


class CommandError(Exception):
	"""Raised by a mutating call that the remote service rejected."""


@dataclass(frozen=True)
class Lockfile:
	name: str
	pid: int
	port: int
	password: str
	protocol: str


def default_lockfile_path() -> str:
	local_app_data = os.getenv("LOCALAPPDATA")
	if not local_app_data:
		raise LockfileError("LOCALAPPDATA is not set")
	return os.path.join(local_app_data, "Riot Games", "Riot Client", "Config", "lockfile")


def parse_lockfile(raw: str) -> Lockfile:
	parts = raw.strip().split(":")
	if len(parts) < 5:
		raise LockfileError("invalid lockfile format")
	try:
		return Lockfile(name=parts[0], pid=int(parts[1]), port=int(parts[2]), password=parts[3], protocol=parts[4])
	except ValueError as e:
		raise LockfileError(f"invalid lockfile field: {e}") from e


def read_lockfile(path: str | None = None) -> Lockfile:
	lockfile_path = path or default_lockfile_path()
	try:
		with open(lockfile_path, "r", encoding="utf-8") as f:
			return parse_lockfile(f.read())
	except OSError as e:
		raise LockfileError(f"Failed to read lockfile at {lockfile_path}") from e


def json_or_none(response, logger=None, what: str = "") -> Any:
	"""Returns the decoded body of a successful response, otherwise None."""
	if not 200 <= response.status_code < 300:
		if logger is not None and response.status_code != 404:
			logger.debug(f"{what or 'request'} returned {response.status_code}")
		return None
	try:
		return response.json()
	except ValueError:
		if logger is not None:
			logger.warning(f"{what or 'request'} returned an undecodable body")
		return None


class ValorantAPI:
	"""Unauthenticated public metadata mirror."""

	def __init__(self, api_request: ApiRequest, logger):
		self.api_request = api_request
		self.logger = logger

	def fetch_client_version(self) -> str | None:
		data = json_or_none(self.api_request("GET", f"{VALORANT_API}/version"), self.logger, "version lookup")
		if not isinstance(data, dict):
			return None
		payload = data.get("data")
		version = payload.get("riotClientVersion") if isinstance(payload, dict) else None
		return version if isinstance(version, str) and version else None

	def fetch_agents(self) -> list[dict]:
		data = json_or_none(
			self.api_request("GET", f"{VALORANT_API}/agents", params={"isPlayableCharacter": "true"}),
			self.logger, "agent catalogue",
		)
		if not isinstance(data, dict) or not isinstance(data.get("data"), list):
			return []
		return [agent for agent in data["data"] if isinstance(agent, dict)]


class LocalClient:
	"""Basic-auth client for the Riot Client API served on loopback."""

	def __init__(self, lockfile: Lockfile, api_request: ApiRequest, logger):
		self.lockfile = lockfile
		self.api_request = api_request
		self.logger = logger

		self.encoded_pass = b64encode(f"riot:{lockfile.password}".encode("ASCII")).decode()
		self.headers = {
			"Authorization": f"Basic {self.encoded_pass}",
			"Accept": "*/*",
		}

	@property
	def base_url(self) -> str:
		return f"https://127.0.0.1:{self.lockfile.port}"

	def get(self, path: str) -> Any:
		"""GETs a local endpoint, raising RiotClientError when no usable JSON comes back."""
		response = self.api_request("GET", f"{self.base_url}{path}", headers=self.headers, verify=False)
		if not 200 <= response.status_code < 300:
			raise RiotClientError(f"GET {path} returned {response.status_code}")
		try:
			return response.json()
		except ValueError as e:
			raise RiotClientError(f"GET {path} returned an undecodable body") from e

	def fetch_player_info(self) -> PlayerInfo:
		info = PlayerInfo.from_session(self.get("/chat/v1/session"))
		if not info.puuid:
			raise RiotClientError("chat session has no puuid")
		return info

	def fetch_external_sessions(self) -> dict:
		data = self.get("/product-session/v1/external-sessions")
		return data if isinstance(data, dict) else {}

	def fetch_region(self) -> RegionInfo:
		region = ""
		for session in self.fetch_external_sessions().values():
			if not isinstance(session, dict):
				continue
			launch = session.get("launchConfiguration")
			arguments = launch.get("arguments") if isinstance(launch, dict) else None
			if not isinstance(arguments, list):
				continue
			for arg in arguments:
				if isinstance(arg, str) and arg.startswith("-ares-deployment="):
					region = arg[len("-ares-deployment="):]

		if not region:
			locale = self.get("/riotclient/region-locale")
			locale = locale if isinstance(locale, dict) else {}
			region = str(locale.get("region") or "na").lower()

		return RegionInfo(region=region, shard=shard_for_region(region))

	def _version_from_external_sessions(self) -> str | None:
		try:
			sessions = self.fetch_external_sessions()
		except RiotClientError:
			return None
		for session in sessions.values():
			if isinstance(session, dict):
				version = session.get("version")
				if isinstance(version, str) and version:
					return version
		return None

	def fetch_client_version(self, public: ValorantAPI) -> str:
		version = public.fetch_client_version()
		if not version:
			self.logger.debug("Public version lookup failed, using external sessions")
			version = self._version_from_external_sessions()
		return version or FALLBACK_CLIENT_VERSION

	def fetch_auth_tokens(self, public: ValorantAPI) -> AuthTokens:
		data = self.get("/entitlements/v1/token")
		access_token = data.get("accessToken") if isinstance(data, dict) else None
		entitlements = data.get("token") if isinstance(data, dict) else None
		if not access_token:
			raise RiotClientError("missing accessToken")
		if not entitlements:
			raise RiotClientError("missing token")
		return AuthTokens(
			access_token=access_token,
			entitlements=entitlements,
			client_version=self.fetch_client_version(public),
		)

	def fetch_friends(self) -> list[dict]:
		data = self.get("/chat/v4/friends")
		friends = data.get("friends") if isinstance(data, dict) else None
		return [f for f in friends if isinstance(f, dict)] if isinstance(friends, list) else []

	def fetch_presences(self) -> list[dict]:
		data = self.get("/chat/v4/presences")
		presences = data.get("presences") if isinstance(data, dict) else None
		return [p for p in presences if isinstance(p, dict)] if isinstance(presences, list) else []


def build_local_client(lockfile: Lockfile, api_request: ApiRequest, logger) -> LocalClient:
	if not lockfile.password:
		raise RiotClientError("lockfile has an empty password")
	return LocalClient(lockfile, api_request, logger)


class RemoteClient:
	"""Bearer-authenticated client for the regional PD and GLZ services."""

	def __init__(self, tokens: AuthTokens, region: str, shard: str, api_request: ApiRequest, logger):
		self.tokens = tokens
		self.region = region
		self.shard = shard
		self.api_request = api_request
		self.logger = logger

		self.headers = {
			"X-Riot-Entitlements-JWT": tokens.entitlements,
			"Authorization": f"Bearer {tokens.access_token}",
			"X-Riot-ClientPlatform": CLIENT_PLATFORM,
			"X-Riot-ClientVersion": tokens.client_version,
			"Content-Type": "application/json"
		}

	def pd_url(self, path: str) -> str:
		return f"https://pd.{self.shard}.a.pvp.net{path}"

	def glz_url(self, path: str) -> str:
		return f"https://glz-{self.region}-1.{self.shard}.a.pvp.net{path}"

	def _pd_get(self, path: str, what: str) -> Any:
		return json_or_none(self.api_request("GET", self.pd_url(path), headers=self.headers), self.logger, what)

	def _glz_get(self, path: str, what: str) -> Any:
		return json_or_none(self.api_request("GET", self.glz_url(path), headers=self.headers), self.logger, what)

	def _command(self, method: str, path: str, verb: str, data: Any = None):
		response = self.api_request(method, self.glz_url(path), headers=self.headers, json=data)
		if not 200 <= response.status_code < 300:
			self.logger.warning(f"{verb} command rejected", context={"path": path, "status": response.status_code})
			raise CommandError(f"{verb} failed: {response.status_code}")
		return response

	# PD

	def fetch_account_xp(self, puuid: str) -> Any:
		return self._pd_get(f"/account-xp/v1/players/{puuid}", "account xp")

	def fetch_mmr(self, puuid: str) -> Any:
		return self._pd_get(f"/mmr/v1/players/{puuid}", "mmr")

	def fetch_competitive_updates(self, puuid: str, start: int = 0, end: int = 15) -> Any:
		return self._pd_get(
			f"/mmr/v1/players/{puuid}/competitiveupdates?startIndex={start}&endIndex={end}", "competitive updates"
		)

	def fetch_match_details(self, match_id: str) -> Any:
		return self._pd_get(f"/match-details/v1/matches/{match_id}", "match details")

	def fetch_owned_agent_ids(self, puuid: str) -> set[str]:
		data = self._pd_get(f"/store/v1/entitlements/{puuid}/{AGENT_ENTITLEMENT_TYPE}", "agent entitlements")
		entitlements = data.get("Entitlements") if isinstance(data, dict) else None
		if not isinstance(entitlements, list):
			return set()
		return {
			str(e["ItemID"]).lower() for e in entitlements
			if isinstance(e, dict) and isinstance(e.get("ItemID"), str)
		}

	def fetch_player_card_id(self, puuid: str) -> str | None:
		data = self._pd_get(f"/personalization/v2/players/{puuid}/playerloadout", "player loadout")
		identity = data.get("Identity") if isinstance(data, dict) else None
		card_id = identity.get("PlayerCardID") if isinstance(identity, dict) else None
		return card_id if isinstance(card_id, str) and card_id else None

	def resolve_names(self, puuids: list[str]) -> dict[str, tuple[str, str]]:
		"""Batch resolves puuids to (game name, tag line) with one name-service call."""
		if not puuids:
			return {}
		response = self.api_request("PUT", self.pd_url("/name-service/v2/players"), headers=self.headers,
		                            json=list(puuids))
		data = json_or_none(response, self.logger, "name service")
		if not isinstance(data, list):
			return {}
		names = {}
		for entry in data:
			if isinstance(entry, dict) and isinstance(entry.get("Subject"), str):
				names[entry["Subject"]] = (str(entry.get("GameName") or ""), str(entry.get("TagLine") or ""))
		return names

	# GLZ

	def fetch_pregame_player(self, puuid: str) -> Any:
		return self._glz_get(f"/pregame/v1/players/{puuid}", "pregame player")

	def fetch_pregame_match(self, match_id: str) -> Any:
		return self._glz_get(f"/pregame/v1/matches/{match_id}", "pregame match")

	def fetch_coregame_player(self, puuid: str) -> Any:
		return self._glz_get(f"/core-game/v1/players/{puuid}", "core-game player")

	def fetch_coregame_match(self, match_id: str) -> Any:
		return self._glz_get(f"/core-game/v1/matches/{match_id}", "core-game match")

	def fetch_party_player(self, puuid: str) -> Any:
		return self._glz_get(f"/parties/v1/players/{puuid}", "party player")

	def fetch_party(self, party_id: str) -> Any:
		return self._glz_get(f"/parties/v1/parties/{party_id}", "party")

	# Commands

	def select_agent(self, match_id: str, agent_id: str) -> None:
		self._command("POST", f"/pregame/v1/matches/{match_id}/select/{agent_id}", "select")

	def lock_agent(self, match_id: str, agent_id: str) -> None:
		self._command("POST", f"/pregame/v1/matches/{match_id}/lock/{agent_id}", "lock")

	def quit_pregame(self, match_id: str) -> None:
		self._command("POST", f"/pregame/v1/matches/{match_id}/quit", "quit")

	def party_invite(self, party_id: str, name: str, tag: str) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/invites/name/{name}/tag/{tag}", "invite")

	def party_kick(self, party_id: str, target_puuid: str) -> None:
		self._command("DELETE", f"/parties/v1/parties/{party_id}/members/{target_puuid}", "kick")

	def party_promote(self, party_id: str, target_puuid: str) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/members/{target_puuid}/owner", "promote")

	def party_accept_invite(self, party_id: str, puuid: str) -> None:
		self._command("POST", f"/parties/v1/players/{puuid}/joinparty/{party_id}", "accept")

	def party_decline_invite(self, party_id: str, request_id: str) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/request/{request_id}/decline", "decline")

	def party_set_accessibility(self, party_id: str, open_party: bool) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/accessibility", "accessibility",
		              {"accessibility": "OPEN" if open_party else "CLOSED"})

	def party_set_ready(self, party_id: str, puuid: str, ready: bool) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/members/{puuid}/setReady", "ready", {"ready": ready})

	def party_start_queue(self, party_id: str) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/matchmaking/join", "queue")

	def party_leave_queue(self, party_id: str) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/matchmaking/leave", "leave queue")

	def party_set_queue(self, party_id: str, queue_id: str) -> None:
		self._command("POST", f"/parties/v1/parties/{party_id}/queue", "set queue", {"queueID": queue_id})

	def party_generate_code(self, party_id: str) -> str:
		response = self._command("POST", f"/parties/v1/parties/{party_id}/invitecode", "generate code")
		try:
			body = response.json()
		except ValueError:
			return ""
		code = body.get("InviteCode") if isinstance(body, dict) else None
		return code if isinstance(code, str) else ""

	def party_disable_code(self, party_id: str) -> None:
		self._command("DELETE", f"/parties/v1/parties/{party_id}/invitecode", "disable code")
