# tests/test_logger.py

from base64 import b64decode
from pathlib import Path

from Crypto.Cipher import AES, PKCS1_OAEP
from Crypto.PublicKey import RSA
from Crypto.Util.Padding import unpad

from Logger import Logger


def _log_file(tmp_path) -> Path:
	files = list((tmp_path / "logs").glob("Downfall_*.log"))
	assert len(files) == 1
	return files[0]


def test_plain_log_line_has_level_and_context(logger, tmp_path):
	assert logger.info("Connected to Riot Client", context={"region": "eu"}) == 1

	text = _log_file(tmp_path).read_text(encoding="utf-8")
	assert "Application Name:    Downfall" in text
	assert "Info: Connected to Riot Client" in text
	assert 'context={"region": "eu"}' in text


def test_exception_details_are_written(logger, tmp_path):
	try:
		raise ValueError("bad payload")
	except ValueError as e:
		logger.log_exception("Parse failed", e)

	text = _log_file(tmp_path).read_text(encoding="utf-8")
	assert "Error: Parse failed" in text
	assert "ValueError: bad payload" in text


def test_invalid_level_is_rejected(logger):
	assert logger.log(9, "nope") == -1


def test_lines_are_encrypted_with_loaded_key(tmp_path):
	private_key = RSA.generate(2048)
	logger = Logger("Downfall", str(tmp_path / "logs" / "Downfall"), ".log")
	logger.load_public_key(private_key.publickey().export_key().decode())

	logger.warning("Rate limited", context={"retry_in_seconds": 2})

	lines = [line for line in _log_file(tmp_path).read_text(encoding="utf-8").splitlines() if line]
	assert "Rate limited" not in "\n".join(lines)

	raw = b64decode(lines[-1])
	key_size = private_key.size_in_bytes()
	aes_key = PKCS1_OAEP.new(private_key).decrypt(raw[:key_size])
	iv = raw[key_size:key_size + 16]
	cipher = AES.new(aes_key, AES.MODE_CBC, iv=iv)
	message = unpad(cipher.decrypt(raw[key_size + 16:]), AES.block_size).decode("utf-8")
	assert "Warning: Rate limited" in message
