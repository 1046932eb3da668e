# tests/test_config.py

from Config import RuntimeSettings, build_config_manager


def test_missing_file_is_created_with_defaults(tmp_path):
	path = tmp_path / "config.ini"
	result = build_config_manager(path).load()

	assert result.created is True
	assert result.issues == []
	assert path.exists()
	assert "; Allowed range: 1-60. Default = 3." in path.read_text(encoding="utf-8")

	settings = RuntimeSettings.from_config(result.config)
	assert settings.tick_interval == 3.0
	assert settings.mmr_fetch_delay == 0.3
	assert settings.discord_enabled is True
	assert settings.discord_refresh_every == 10
	assert settings.discord_state == ""


def test_invalid_values_are_reverted(tmp_path):
	path = tmp_path / "config.ini"
	path.write_text(
		"[Main]\n"
		"tick_interval_seconds = 0\n"
		"mmr_fetch_delay_ms = 150\n"
		"request_timeout_seconds = soon\n"
		"debug = YES\n",
		encoding="utf-8",
	)

	result = build_config_manager(path).load()
	issues = {(issue.section, issue.key): issue for issue in result.issues}

	assert result.created is False
	assert issues[("Main", "tick_interval_seconds")].reverted_to == "3"
	assert issues[("Main", "request_timeout_seconds")].message == "Expected an integer value."
	assert ("Main", "debug") not in issues
	assert ("Discord", "*") in issues

	settings = RuntimeSettings.from_config(result.config)
	assert settings.mmr_fetch_delay == 0.15
	assert settings.debug is True
	assert "debug = true" in path.read_text(encoding="utf-8")


def test_invalid_discord_toggle_reverts_to_enabled(tmp_path):
	path = tmp_path / "config.ini"
	path.write_text("[Discord]\nenabled = maybe\nrefresh_every_ticks = 5\n", encoding="utf-8")

	result = build_config_manager(path).load()
	issues = {(issue.section, issue.key): issue for issue in result.issues}

	assert issues[("Discord", "enabled")].reverted_to == "true"
	assert ("Discord", "refresh_every_ticks") not in issues

	settings = RuntimeSettings.from_config(result.config)
	assert settings.discord_enabled is True
	assert settings.discord_refresh_every == 5
	assert "enabled = true" in path.read_text(encoding="utf-8")
