# Loader.py
import asyncio
from typing import Any, Callable, Optional

import requests

# Local Imports
from Connection import NotConnectedError, SessionContext, ValorantConnection
from Models import (AccountXP, AgentInfo, CompUpdate, CurrentMatch, Friend, LiveMatch, LiveMatchPlayer, MatchKDA,
                    PartyInvite, PartyMember, PartyState, PlayerMMR, PlayerProfile, PregameState, RankSnapshot,
                    RosterEntry)
from Riot import RemoteClient, RiotClientError
from utils import decode_presence, resolve_map_name

GAME_MODES = {
	"unrated": "Unrated",
	"competitive": "Competitive",
	"swiftplay": "Swiftplay",
	"spikerush": "Spikerush",
	"deathmatch": "Deathmatch",
	"ggteam": "Escalation",
	"hurm": "Team Deathmatch"
}

# Queues without teams; their roster is returned as a single list.
FFA_QUEUES = {"deathmatch"}

COMP_HISTORY_SIZE = 10
DEFAULT_MMR_FETCH_DELAY = 0.3


def resolve_match_phase(pregame: Any, coregame: Any) -> tuple[str, str] | None:
	"""Picks (match id, phase) from the two player lookups, pregame first."""
	for payload, phase in ((pregame, "pregame"), (coregame, "ingame")):
		if isinstance(payload, dict):
			match_id = payload.get("MatchID")
			if isinstance(match_id, str) and match_id:
				return match_id, phase
	return None


def sort_friends(friends: list[Friend]) -> list[Friend]:
	return sorted(friends, key=lambda f: (not f.is_online, f.game_name.lower()))


class MatchRankCache:
	"""
	Single-slot cache of rank snapshots for the players of one match.

	The slot is only valid for the match id it was built for; storing a new match replaces the
	whole mapping instead of merging into it.
	"""

	def __init__(self):
		self.match_id: Optional[str] = None
		self._ranks: dict[str, RankSnapshot] = {}

	def get(self, match_id: str) -> Optional[dict[str, RankSnapshot]]:
		if self.match_id is not None and self.match_id == match_id:
			return dict(self._ranks)
		return None

	def replace(self, match_id: str, ranks: dict[str, RankSnapshot]) -> None:
		self.match_id = match_id
		self._ranks = dict(ranks)


class Loader:
	def __init__(self, connection: ValorantConnection, logger, mmr_fetch_delay: float = DEFAULT_MMR_FETCH_DELAY):
		self.connection = connection
		self.logger = logger
		self.api_request = connection.api_request
		self.public = connection.public
		self.mmr_fetch_delay = mmr_fetch_delay

		self.rank_cache = MatchRankCache()
		self._rank_lock = asyncio.Lock()

	async def _context(self) -> Optional[SessionContext]:
		try:
			return await self.connection.session_context()
		except NotConnectedError as e:
			self.logger.debug("Session not ready for aggregation", context={"reason": str(e)})
			return None

	def _remote(self, ctx: SessionContext) -> RemoteClient:
		return RemoteClient(ctx.tokens, ctx.region, ctx.shard, self.api_request, self.logger)

	async def _call(self, fn: Callable, *args, default: Any = None) -> Any:
		"""Runs one blocking fetch in a worker thread. Any failure yields the default."""
		try:
			result = await asyncio.to_thread(fn, *args)
		except (requests.exceptions.RequestException, RiotClientError, ValueError) as e:
			self.logger.warning(
				"Sub-fetch failed",
				context={"call": getattr(fn, "__name__", repr(fn)), "error": repr(e)},
			)
			return default
		return default if result is None else result

	# Profile

	async def _fetch_match_kda(self, remote: RemoteClient, match_id: str, puuid: str) -> MatchKDA:
		details = await self._call(remote.fetch_match_details, match_id)
		if not isinstance(details, dict):
			return MatchKDA()
		return MatchKDA.from_match_details(details, puuid)

	async def fetch_comp_updates(self, remote: RemoteClient, puuid: str) -> list[CompUpdate]:
		data = await self._call(remote.fetch_competitive_updates, puuid)
		matches = data.get("Matches") if isinstance(data, dict) else None
		if not isinstance(matches, list):
			return []

		entries = [
			m for m in matches
			if isinstance(m, dict) and isinstance(m.get("MatchID"), str) and m["MatchID"]
		][:COMP_HISTORY_SIZE]

		kdas = await asyncio.gather(*(self._fetch_match_kda(remote, m["MatchID"], puuid) for m in entries))

		return [CompUpdate.from_json(m, kda) for m, kda in zip(entries, kdas)]

	async def fetch_profile(self) -> Optional[PlayerProfile]:
		ctx = await self._context()
		if ctx is None:
			return None
		remote = self._remote(ctx)

		xp_data, mmr_data, updates = await asyncio.gather(
			self._call(remote.fetch_account_xp, ctx.puuid),
			self._call(remote.fetch_mmr, ctx.puuid),
			self.fetch_comp_updates(remote, ctx.puuid),
		)

		return PlayerProfile(
			info=ctx.player_info,
			account_xp=AccountXP.from_json(xp_data) if isinstance(xp_data, dict) else None,
			mmr=PlayerMMR.from_json(mmr_data) if isinstance(mmr_data, dict) else None,
			comp_updates=updates,
		)

	# Agents

	async def _agent_map(self) -> dict[str, tuple[str, str]]:
		catalogue = await self._call(self.public.fetch_agents, default=[])
		agent_map = {}
		for agent in catalogue:
			uuid = str(agent.get("uuid") or "").lower()
			if uuid:
				agent_map[uuid] = (str(agent.get("displayName") or ""), str(agent.get("displayIcon") or ""))
		return agent_map

	async def fetch_agents(self) -> list[AgentInfo]:
		ctx = await self._context()
		if ctx is None:
			return []
		remote = self._remote(ctx)

		owned, catalogue = await asyncio.gather(
			self._call(remote.fetch_owned_agent_ids, ctx.puuid, default=set()),
			self._call(self.public.fetch_agents, default=[]),
		)

		agents = []
		for agent in catalogue:
			uuid, name, icon = agent.get("uuid"), agent.get("displayName"), agent.get("displayIcon")
			if not all(isinstance(v, str) for v in (uuid, name, icon)):
				continue
			role = agent.get("role") if isinstance(agent.get("role"), dict) else {}
			is_free = agent.get("isBaseContent") is True
			agents.append(AgentInfo(
				uuid=uuid,
				name=name,
				icon=icon,
				role=str(role.get("displayName") or "Unknown"),
				role_icon=str(role.get("displayIcon") or ""),
				unlocked=is_free or uuid.lower() in owned,
			))

		agents.sort(key=lambda a: a.name)
		return agents

	# Pregame

	async def fetch_pregame(self) -> Optional[PregameState]:
		ctx = await self._context()
		if ctx is None:
			return None
		remote = self._remote(ctx)

		player = await self._call(remote.fetch_pregame_player, ctx.puuid)
		resolved = resolve_match_phase(player, None)
		if resolved is None:
			return None
		match_id = resolved[0]

		match = await self._call(remote.fetch_pregame_match, match_id)
		if not isinstance(match, dict):
			return None

		map_id = str(match.get("MapID") or "")
		locked = False
		locked_agent = None
		ally_team = match.get("AllyTeam") if isinstance(match.get("AllyTeam"), dict) else {}
		for p in ally_team.get("Players") or []:
			if isinstance(p, dict) and p.get("Subject") == ctx.puuid:
				character_id = str(p.get("CharacterID") or "")
				if p.get("CharacterSelectionState") == "locked" and character_id:
					locked = True
					locked_agent = character_id
				break

		return PregameState(match_id=match_id, map_id=map_id, map_name=resolve_map_name(map_id), locked=locked,
		                    locked_agent=locked_agent)

	# Live match

	async def _fetch_rank(self, remote: RemoteClient, puuid: str) -> Optional[RankSnapshot]:
		data = await self._call(remote.fetch_mmr, puuid)
		if not isinstance(data, dict):
			return None
		mmr = PlayerMMR.from_json(data)
		return RankSnapshot(tier=mmr.rank, rr=mmr.rr, peak_tier=mmr.peak_rank)

	async def match_ranks(self, remote: RemoteClient, match_id: str, self_puuid: str,
	                      puuids: list[str]) -> dict[str, RankSnapshot]:
		"""Ranks for every player of a match, rebuilt one player at a time when the match changes."""
		async with self._rank_lock:
			cached = self.rank_cache.get(match_id)
			if cached is not None:
				return cached

			self.logger.debug("Rebuilding match rank cache",
			                  context={"match_id": match_id, "players": len(puuids)})
			ranks: dict[str, RankSnapshot] = {}
			snapshot = await self._fetch_rank(remote, self_puuid)
			if snapshot is not None:
				ranks[self_puuid] = snapshot

			for puuid in puuids:
				if puuid == self_puuid:
					continue
				await asyncio.sleep(self.mmr_fetch_delay)
				snapshot = await self._fetch_rank(remote, puuid)
				if snapshot is not None:
					ranks[puuid] = snapshot

			self.rank_cache.replace(match_id, ranks)
			return dict(ranks)

	async def _match_roster(self, remote: RemoteClient, match_id: str, phase: str,
	                        self_puuid: str) -> Optional[tuple[str, str, str, list[RosterEntry]]]:
		if phase == "pregame":
			match = await self._call(remote.fetch_pregame_match, match_id)
			if not isinstance(match, dict):
				return None
			ally_team = match.get("AllyTeam") if isinstance(match.get("AllyTeam"), dict) else {}
			my_team = str(ally_team.get("TeamID") or "Blue")
			roster = [
				RosterEntry.from_json(p, team_id=my_team)
				for p in ally_team.get("Players") or [] if isinstance(p, dict)
			]
			queue_id = str(match.get("QueueID") or "")
		else:
			match = await self._call(remote.fetch_coregame_match, match_id)
			if not isinstance(match, dict):
				return None
			roster = [RosterEntry.from_json(p) for p in match.get("Players") or [] if isinstance(p, dict)]
			my_team = next((entry.team_id for entry in roster if entry.puuid == self_puuid), "Blue")
			matchmaking = match.get("MatchmakingData") if isinstance(match.get("MatchmakingData"), dict) else {}
			queue_id = str(matchmaking.get("QueueID") or "")

		return str(match.get("MapID") or ""), queue_id, my_team, roster

	async def fetch_live_match(self) -> Optional[LiveMatch]:
		ctx = await self._context()
		if ctx is None:
			return None
		remote = self._remote(ctx)

		pregame, coregame = await asyncio.gather(
			self._call(remote.fetch_pregame_player, ctx.puuid),
			self._call(remote.fetch_coregame_player, ctx.puuid),
		)
		resolved = resolve_match_phase(pregame, coregame)
		if resolved is None:
			return None
		match_id, phase = resolved

		roster_data = await self._match_roster(remote, match_id, phase, ctx.puuid)
		if roster_data is None:
			return None
		map_id, queue_id, my_team, roster = roster_data
		puuids = [entry.puuid for entry in roster]

		names, agents = await asyncio.gather(
			self._call(remote.resolve_names, puuids, default={}),
			self._agent_map(),
		)
		ranks = await self.match_ranks(remote, match_id, ctx.puuid, puuids)

		ally_team: list[LiveMatchPlayer] = []
		enemy_team: list[LiveMatchPlayer] = []
		for entry in roster:
			game_name, tag_line = names.get(entry.puuid, ("", ""))
			agent_name, agent_icon = agents.get(entry.character_id.lower(), ("Unknown", ""))
			rank = ranks.get(entry.puuid, RankSnapshot(0, 0, 0))
			player = LiveMatchPlayer(
				puuid=entry.puuid,
				game_name=game_name,
				tag_line=tag_line,
				team_id=entry.team_id,
				agent_id=entry.character_id,
				agent_name=agent_name,
				agent_icon=agent_icon,
				rank=rank.tier,
				rr=rank.rr,
				peak_rank=rank.peak_tier,
				account_level=entry.account_level,
				incognito=entry.incognito,
				is_self=entry.puuid == ctx.puuid,
			)
			(ally_team if entry.team_id == my_team else enemy_team).append(player)

		is_team_mode = queue_id not in FFA_QUEUES
		if not is_team_mode:
			ally_team.extend(enemy_team)
			enemy_team = []

		ally_team.sort(key=lambda p: p.rank, reverse=True)
		enemy_team.sort(key=lambda p: p.rank, reverse=True)

		return LiveMatch(
			match_id=match_id,
			map_id=map_id,
			map_name=resolve_map_name(map_id),
			queue_id=queue_id,
			phase=phase,
			is_team_mode=is_team_mode,
			ally_team=ally_team,
			enemy_team=enemy_team,
		)

	# Party

	async def fetch_party(self) -> Optional[PartyState]:
		ctx = await self._context()
		if ctx is None:
			return None
		remote = self._remote(ctx)

		player = await self._call(remote.fetch_party_player, ctx.puuid)
		party_id = player.get("CurrentPartyID") if isinstance(player, dict) else None
		if not isinstance(party_id, str) or not party_id:
			return None

		party = await self._call(remote.fetch_party, party_id)
		if not isinstance(party, dict) or not isinstance(party.get("Members"), list):
			return None

		raw_members = [m for m in party["Members"] if isinstance(m, dict)]
		member_ids = [m["Subject"] for m in raw_members if isinstance(m.get("Subject"), str)]
		requests_raw = [r for r in player.get("Requests") or [] if isinstance(r, dict)]
		sender_ids = [r["RequestedBySubject"] for r in requests_raw if isinstance(r.get("RequestedBySubject"), str)]

		async def _no_names() -> dict:
			return {}

		names, sender_names = await asyncio.gather(
			self._call(remote.resolve_names, member_ids, default={}),
			self._call(remote.resolve_names, sender_ids, default={}) if sender_ids else _no_names(),
		)

		members = [PartyMember.from_json(m, names) for m in raw_members]
		is_owner = any(m.is_owner and m.puuid == ctx.puuid for m in members)

		invites = []
		for r in requests_raw:
			from_puuid = str(r.get("RequestedBySubject") or "")
			from_name, from_tag = sender_names.get(from_puuid, ("", ""))
			invites.append(PartyInvite(
				request_id=str(r.get("ID") or ""),
				party_id=str(r.get("PartyID") or ""),
				from_puuid=from_puuid,
				from_name=from_name,
				from_tag=from_tag,
			))

		eligible = party.get("EligibleQueues")
		matchmaking = party.get("MatchmakingData") if isinstance(party.get("MatchmakingData"), dict) else {}
		return PartyState(
			party_id=party_id,
			members=members,
			state=str(party.get("State") or "DEFAULT"),
			accessibility=str(party.get("Accessibility") or "CLOSED"),
			queue_id=str(matchmaking.get("QueueID") or ""),
			invite_code=str(party.get("InviteCode") or ""),
			is_owner=is_owner,
			eligible_queues=[q for q in eligible if isinstance(q, str)] if isinstance(eligible, list) else [],
			invites=invites,
		)

	# Friends / presence

	async def fetch_friends(self) -> list[Friend]:
		local = await self.connection.local_client()
		if local is None:
			return []

		friends_raw, presences = await asyncio.gather(
			self._call(local.fetch_friends, default=None),
			self._call(local.fetch_presences, default=[]),
		)
		if friends_raw is None:
			return []

		online: set[str] = set()
		presence_map: dict[str, tuple[str, str]] = {}
		for p in presences:
			puuid = p.get("puuid")
			if not isinstance(puuid, str):
				continue
			state = p.get("state") if isinstance(p.get("state"), str) else "offline"
			if p.get("state") != "offline":
				online.add(puuid)
			private = decode_presence(p.get("private")) or {}
			card_id = private.get("playerCardId")
			presence_map[puuid] = (state, card_id if isinstance(card_id, str) else "")

		friends = []
		for f in friends_raw:
			game_name = str(f.get("game_name") or "")
			if not game_name:
				continue
			puuid = str(f.get("puuid") or "")
			status, card_id = presence_map.get(puuid, ("offline", ""))
			friends.append(Friend(
				puuid=puuid,
				game_name=game_name,
				tag_line=str(f.get("game_tag") or ""),
				is_online=puuid in online,
				status=status,
				player_card_id=card_id,
			))

		return sort_friends(friends)

	async def fetch_current_match(self) -> Optional[CurrentMatch]:
		local = await self.connection.local_client()
		if local is None:
			return None

		try:
			info = await asyncio.to_thread(local.fetch_player_info)
			presences = await asyncio.to_thread(local.fetch_presences)
		except RiotClientError as e:
			self.logger.warning("Current match lookup failed", context={"error": str(e)})
			return None

		own = next((p for p in presences if p.get("puuid") == info.puuid), None)
		private = decode_presence(own.get("private")) if own is not None else None
		if private is None:
			return None

		match_map = private.get("matchMap")
		if not isinstance(match_map, str) or not match_map:
			return None

		tier = private.get("competitiveTier")
		return CurrentMatch(
			match_id=match_map,
			map_id=match_map,
			queue_id=str(private.get("queueId") or ""),
			is_ranked=isinstance(tier, int) and tier > 0,
		)

