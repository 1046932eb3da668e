# Models.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

# Local Imports
from utils import compute_rr_change


def _as_dict(value: Any) -> dict:
	return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
	return value if isinstance(value, list) else []


def _as_str(value: Any, default: str = "") -> str:
	return value if isinstance(value, str) else default


def _as_int(value: Any, default: int = 0) -> int:
	if isinstance(value, bool):
		return default
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return int(value)
	return default


def _as_bool(value: Any, default: bool = False) -> bool:
	return value if isinstance(value, bool) else default


class ConnectionStatus(str, Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	CONNECTED = "connected"


@dataclass
class PlayerInfo:
	puuid: str
	game_name: str
	tag_line: str
	player_card_id: Optional[str] = None

	@property
	def display_name(self) -> str:
		return f"{self.game_name}#{self.tag_line}"

	@classmethod
	def from_session(cls, data: Mapping[str, Any]) -> "PlayerInfo":
		data = _as_dict(data)
		return cls(
			puuid=_as_str(data.get("puuid")),
			game_name=_as_str(data.get("game_name")),
			tag_line=_as_str(data.get("game_tag")),
		)


@dataclass
class ConnectionState:
	status: ConnectionStatus = ConnectionStatus.DISCONNECTED
	player_info: Optional[PlayerInfo] = None
	region: Optional[str] = None
	shard: Optional[str] = None


@dataclass(frozen=True)
class RegionInfo:
	region: str
	shard: str


@dataclass(frozen=True)
class AuthTokens:
	access_token: str
	entitlements: str
	client_version: str


@dataclass
class AccountXP:
	level: int
	xp: int

	@classmethod
	def from_json(cls, data: Mapping[str, Any]) -> Optional["AccountXP"]:
		progress = _as_dict(_as_dict(data).get("Progress"))
		level = progress.get("Level")
		if not isinstance(level, int) or isinstance(level, bool):
			return None
		return cls(level=level, xp=_as_int(progress.get("XP")))


@dataclass
class PlayerMMR:
	rank: int
	rr: int
	leaderboard_rank: int
	peak_rank: int
	peak_rank_act: str
	wins: int
	games: int

	@classmethod
	def from_json(cls, data: Mapping[str, Any]) -> "PlayerMMR":
		data = _as_dict(data)
		latest = _as_dict(data.get("LatestCompetitiveUpdate"))

		peak_rank = 0
		peak_act = ""
		wins = 0
		games = 0
		seasons = _as_dict(
			_as_dict(_as_dict(data.get("QueueSkills")).get("competitive")).get("SeasonalInfoBySeasonID")
		)
		for season_id, season in seasons.items():
			season = _as_dict(season)
			tier = _as_int(season.get("CompetitiveTier"))
			if tier > peak_rank:
				peak_rank = tier
				peak_act = season_id
			wins += _as_int(season.get("NumberOfWins"))
			games += _as_int(season.get("NumberOfGames"))

		return cls(
			rank=_as_int(latest.get("TierAfterUpdate")),
			rr=_as_int(latest.get("RankedRatingAfterUpdate")),
			leaderboard_rank=_as_int(latest.get("LeaderboardRank")),
			peak_rank=peak_rank,
			peak_rank_act=peak_act,
			wins=wins,
			games=games,
		)


@dataclass(frozen=True)
class RankSnapshot:
	tier: int
	rr: int
	peak_tier: int


@dataclass
class MatchKDA:
	kills: int = 0
	deaths: int = 0
	assists: int = 0
	score: int = 0
	rounds_won: int = 0
	rounds_lost: int = 0

	@classmethod
	def from_match_details(cls, data: Mapping[str, Any], puuid: str) -> "MatchKDA":
		data = _as_dict(data)
		player = next(
			(p for p in _as_list(data.get("players")) if _as_dict(p).get("subject") == puuid),
			None,
		)
		if player is None:
			return cls()

		stats = _as_dict(player.get("stats"))
		team_id = _as_str(player.get("teamId"))
		rounds_won = 0
		rounds_lost = 0
		for team in _as_list(data.get("teams")):
			team = _as_dict(team)
			won = _as_int(team.get("roundsWon"))
			if team.get("teamId") == team_id:
				rounds_won = won
			else:
				rounds_lost = won

		return cls(
			kills=_as_int(stats.get("kills")),
			deaths=_as_int(stats.get("deaths")),
			assists=_as_int(stats.get("assists")),
			score=_as_int(stats.get("score")),
			rounds_won=rounds_won,
			rounds_lost=rounds_lost,
		)


@dataclass
class CompUpdate:
	match_id: str
	map_id: str
	rank_before: int
	rank_after: int
	rr_before: int
	rr_after: int
	rr_change: int
	timestamp: int
	kills: int = 0
	deaths: int = 0
	assists: int = 0
	score: int = 0
	rounds_won: int = 0
	rounds_lost: int = 0

	@classmethod
	def from_json(cls, data: Mapping[str, Any], kda: MatchKDA) -> "CompUpdate":
		data = _as_dict(data)
		rank_before = _as_int(data.get("TierBeforeUpdate"))
		rank_after = _as_int(data.get("TierAfterUpdate"))
		rr_before = _as_int(data.get("RankedRatingBeforeUpdate"))
		rr_after = _as_int(data.get("RankedRatingAfterUpdate"))
		return cls(
			match_id=_as_str(data.get("MatchID")),
			map_id=_as_str(data.get("MapID")),
			rank_before=rank_before,
			rank_after=rank_after,
			rr_before=rr_before,
			rr_after=rr_after,
			rr_change=compute_rr_change(rank_before, rank_after, rr_before, rr_after),
			timestamp=_as_int(data.get("MatchStartTime")),
			kills=kda.kills,
			deaths=kda.deaths,
			assists=kda.assists,
			score=kda.score,
			rounds_won=kda.rounds_won,
			rounds_lost=kda.rounds_lost,
		)


@dataclass
class PlayerProfile:
	info: PlayerInfo
	account_xp: Optional[AccountXP]
	mmr: Optional[PlayerMMR]
	comp_updates: list[CompUpdate] = field(default_factory=list)


@dataclass
class AgentInfo:
	uuid: str
	name: str
	icon: str
	role: str
	role_icon: str
	unlocked: bool


@dataclass
class PregameState:
	match_id: str
	map_id: str
	map_name: str
	locked: bool
	locked_agent: Optional[str]


@dataclass
class CurrentMatch:
	match_id: str
	map_id: str
	queue_id: str
	is_ranked: bool


@dataclass
class RosterEntry:
	"""Raw roster row taken from a pregame or core-game match payload."""
	puuid: str
	character_id: str
	team_id: str
	incognito: bool
	account_level: int

	@classmethod
	def from_json(cls, data: Mapping[str, Any], team_id: Optional[str] = None) -> "RosterEntry":
		data = _as_dict(data)
		identity = _as_dict(data.get("PlayerIdentity"))
		return cls(
			puuid=_as_str(data.get("Subject")),
			character_id=_as_str(data.get("CharacterID")),
			team_id=team_id if team_id is not None else _as_str(data.get("TeamID")),
			incognito=_as_bool(identity.get("Incognito")),
			account_level=_as_int(identity.get("AccountLevel")),
		)


@dataclass
class LiveMatchPlayer:
	puuid: str
	game_name: str
	tag_line: str
	team_id: str
	agent_id: str
	agent_name: str
	agent_icon: str
	rank: int
	rr: int
	peak_rank: int
	account_level: int
	incognito: bool
	is_self: bool


@dataclass
class LiveMatch:
	match_id: str
	map_id: str
	map_name: str
	queue_id: str
	phase: str
	is_team_mode: bool
	ally_team: list[LiveMatchPlayer] = field(default_factory=list)
	enemy_team: list[LiveMatchPlayer] = field(default_factory=list)


@dataclass
class PartyMember:
	puuid: str
	game_name: str
	tag_line: str
	rank: int
	account_level: int
	player_card_id: str
	is_owner: bool
	is_ready: bool
	is_moderator: bool
	ping: int

	@classmethod
	def from_json(cls, data: Mapping[str, Any], names: Mapping[str, tuple[str, str]]) -> "PartyMember":
		data = _as_dict(data)
		puuid = _as_str(data.get("Subject"))
		game_name, tag_line = names.get(puuid, ("", ""))
		identity = _as_dict(data.get("PlayerIdentity"))
		pings = _as_list(data.get("Pings"))
		ping = _as_int(_as_dict(pings[0]).get("Ping")) if pings else 0
		return cls(
			puuid=puuid,
			game_name=game_name,
			tag_line=tag_line,
			rank=_as_int(data.get("CompetitiveTier")),
			account_level=_as_int(identity.get("AccountLevel")),
			player_card_id=_as_str(identity.get("PlayerCardID")),
			is_owner=_as_bool(data.get("IsOwner")),
			is_ready=_as_bool(data.get("IsReady")),
			is_moderator=_as_bool(data.get("IsModerator")),
			ping=ping,
		)


@dataclass
class PartyInvite:
	request_id: str
	party_id: str
	from_puuid: str
	from_name: str
	from_tag: str


@dataclass
class PartyState:
	party_id: str
	members: list[PartyMember]
	state: str
	accessibility: str
	queue_id: str
	invite_code: str
	is_owner: bool
	eligible_queues: list[str]
	invites: list[PartyInvite] = field(default_factory=list)


@dataclass
class Friend:
	puuid: str
	game_name: str
	tag_line: str
	is_online: bool
	status: str
	player_card_id: str
