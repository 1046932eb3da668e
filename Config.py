# Config.py

import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

DEFAULT_CONFIG_PATH = "config.ini"


class ConfigValidationError(ValueError):
	"""Raised when a configuration value cannot be parsed or validated."""


@dataclass(frozen=True)
class ConfigValidationIssue:
	section: str
	key: str
	message: str
	reverted_to: str | None = None


@dataclass(frozen=True)
class ConfigOption:
	key: str
	default: Any
	description: Sequence[str]
	value_type: str = "str"
	min_value: int | None = None
	max_value: int | None = None

	def render_default(self) -> str:
		return self._render_value(self.default)

	def normalize(self, raw_value: str) -> str:
		value = raw_value.strip()
		if not value and self.value_type != "str":
			raise ConfigValidationError("Value cannot be empty.")
		if self.value_type == "bool":
			return self._normalize_bool(value)
		if self.value_type == "int":
			return self._normalize_int(value)
		return value

	def _normalize_bool(self, value: str) -> str:
		mapping = {"true": True, "1": True, "yes": True, "on": True,
		           "false": False, "0": False, "no": False, "off": False}
		key = value.lower()
		if key not in mapping:
			raise ConfigValidationError("Expected a boolean value (true/false).")
		return self._render_value(mapping[key])

	def _normalize_int(self, value: str) -> str:
		try:
			parsed = int(value)
		except ValueError as exc:
			raise ConfigValidationError("Expected an integer value.") from exc
		if self.min_value is not None and parsed < self.min_value:
			raise ConfigValidationError(f"Value must be greater than or equal to {self.min_value}.")
		if self.max_value is not None and parsed > self.max_value:
			raise ConfigValidationError(f"Value must be less than or equal to {self.max_value}.")
		return self._render_value(parsed)

	def _render_value(self, value: Any) -> str:
		if self.value_type == "bool":
			return "true" if bool(value) else "false"
		if self.value_type == "int":
			return str(int(value))
		return str(value)


@dataclass(frozen=True)
class ConfigSection:
	name: str
	options: Sequence[ConfigOption]
	description: Sequence[str] = ()


@dataclass(frozen=True)
class ConfigLoadResult:
	config: configparser.ConfigParser
	issues: Sequence[ConfigValidationIssue]
	created: bool


class ConfigManager:
	"""Loads an INI file, repairs invalid or missing entries and rewrites it with comments."""

	def __init__(self, path: Path | str, sections: Sequence[ConfigSection]):
		self.path = Path(path)
		self.sections = tuple(sections)

	def load(self) -> ConfigLoadResult:
		created = False
		if not self.path.exists():
			self._write_with_comments(self._build_defaults_parser())
			created = True

		parser = self._read()
		issues: list[ConfigValidationIssue] = []
		dirty = created

		for section in self.sections:
			if not parser.has_section(section.name):
				parser.add_section(section.name)
				issues.append(ConfigValidationIssue(
					section=section.name, key="*", message="Section missing in file; populated with defaults.",
				))
				dirty = True

			for option in section.options:
				existing = parser.get(section.name, option.key, raw=True, fallback=None)
				if existing is None:
					new_value = option.render_default()
					parser.set(section.name, option.key, new_value)
					issues.append(ConfigValidationIssue(
						section=section.name, key=option.key, message="Missing entry; default applied.",
						reverted_to=new_value,
					))
					dirty = True
					continue

				try:
					normalized = option.normalize(existing)
				except ConfigValidationError as exc:
					normalized = option.render_default()
					parser.set(section.name, option.key, normalized)
					issues.append(ConfigValidationIssue(
						section=section.name, key=option.key, message=str(exc), reverted_to=normalized,
					))
					dirty = True
				else:
					if normalized != existing.strip():
						parser.set(section.name, option.key, normalized)
						dirty = True

		if dirty:
			self._write_with_comments(parser)

		return ConfigLoadResult(config=parser, issues=issues, created=created)

	def _build_defaults_parser(self) -> configparser.ConfigParser:
		parser = configparser.ConfigParser()
		for section in self.sections:
			parser.add_section(section.name)
			for option in section.options:
				parser.set(section.name, option.key, option.render_default())
		return parser

	def _read(self) -> configparser.ConfigParser:
		parser = configparser.ConfigParser()
		parser.read(self.path, encoding="utf-8")
		return parser

	def _write_with_comments(self, parser: configparser.ConfigParser) -> None:
		lines: list[str] = []

		for index, section in enumerate(self.sections):
			if index:
				lines.append("\n")
			for line in section.description:
				lines.append(f"; {line}\n")
			lines.append(f"[{section.name}]\n")

			for option in section.options:
				for line in option.description:
					lines.append(f"; {line}\n")
				value = parser.get(section.name, option.key, raw=True, fallback=option.render_default())
				lines.append(f"{option.key} = {value}\n\n")

		self.path.parent.mkdir(parents=True, exist_ok=True)
		self.path.write_text("".join(lines).rstrip() + "\n", encoding="utf-8")


def build_config_manager(path: Path | str = DEFAULT_CONFIG_PATH) -> ConfigManager:
	sections: Sequence[ConfigSection] = (
		ConfigSection(
			name="Main",
			description=("Primary configuration for Downfall. Edit values to customize behaviour.",),
			options=(
				ConfigOption(
					key="tick_interval_seconds",
					default=3,
					value_type="int",
					min_value=1,
					max_value=60,
					description=(
						"Seconds between two connection checks against the Riot Client.",
						"Allowed range: 1-60. Default = 3.",
					),
				),
				ConfigOption(
					key="mmr_fetch_delay_ms",
					default=300,
					value_type="int",
					min_value=0,
					max_value=5000,
					description=(
						"Pause between rank lookups when loading the players of a new match.",
						"Allowed range: 0-5000. Default = 300.",
					),
				),
				ConfigOption(
					key="request_timeout_seconds",
					default=15,
					value_type="int",
					min_value=1,
					max_value=60,
					description=(
						"Read timeout for every HTTP request.",
						"Allowed range: 1-60. Default = 15.",
					),
				),
				ConfigOption(
					key="debug",
					default=False,
					value_type="bool",
					description=(
						"Echo every log line to the console.",
						"Default = false.",
					),
				),
			),
		),
		ConfigSection(
			name="Discord",
			description=("Discord Rich Presence integration.",),
			options=(
				ConfigOption(
					key="enabled",
					default=True,
					value_type="bool",
					description=(
						"Publish session details to your Discord profile.",
						"Default = true.",
					),
				),
				ConfigOption(
					key="details",
					default="Playing Valorant with Downfall",
					description=("First line shown on the Discord profile.",),
				),
				ConfigOption(
					key="state",
					default="",
					description=("Second line shown on the Discord profile. Leave empty to hide it.",),
				),
				ConfigOption(
					key="refresh_every_ticks",
					default=10,
					value_type="int",
					min_value=1,
					max_value=100,
					description=(
						"Push the presence once every N connection checks.",
						"Allowed range: 1-100. Default = 10.",
					),
				),
			),
		),
	)

	return ConfigManager(path, sections)


@dataclass(frozen=True)
class RuntimeSettings:
	tick_interval: float = 3.0
	mmr_fetch_delay: float = 0.3
	request_timeout: int = 15
	debug: bool = False
	discord_enabled: bool = True
	discord_details: str = "Playing Valorant with Downfall"
	discord_state: str = ""
	discord_refresh_every: int = 10

	@classmethod
	def from_config(cls, parser: configparser.ConfigParser) -> "RuntimeSettings":
		"""Reads a parser already repaired by ConfigManager.load."""
		return cls(
			tick_interval=float(parser.getint("Main", "tick_interval_seconds", fallback=3)),
			mmr_fetch_delay=parser.getint("Main", "mmr_fetch_delay_ms", fallback=300) / 1000,
			request_timeout=parser.getint("Main", "request_timeout_seconds", fallback=15),
			debug=parser.getboolean("Main", "debug", fallback=False),
			discord_enabled=parser.getboolean("Discord", "enabled", fallback=True),
			discord_details=parser.get("Discord", "details", raw=True, fallback="Playing Valorant with Downfall"),
			discord_state=parser.get("Discord", "state", raw=True, fallback=""),
			discord_refresh_every=parser.getint("Discord", "refresh_every_ticks", fallback=10),
		)
