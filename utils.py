# utils.py

import time
from base64 import b64decode
from binascii import Error as BinasciiError
from json import dumps, loads, JSONDecodeError
from typing import Any

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3 import disable_warnings
from urllib3.exceptions import InsecureRequestWarning
from urllib3.util.retry import Retry  # noqa | Ignore, should work fine

REQUEST_TIMEOUT = (5, 15)  # (connect timeout, read timeout)

# Shard routing used to build the regional hostnames.
REGION_SHARDS = {
	"latam": "na",
	"br": "na",
	"eu": "eu",
	"ap": "ap",
	"kr": "kr",
}

RANK_MAPPING = {
	3: "Iron 1",
	4: "Iron 2",
	5: "Iron 3",
	6: "Bronze 1",
	7: "Bronze 2",
	8: "Bronze 3",
	9: "Silver 1",
	10: "Silver 2",
	11: "Silver 3",
	12: "Gold 1",
	13: "Gold 2",
	14: "Gold 3",
	15: "Platinum 1",
	16: "Platinum 2",
	17: "Platinum 3",
	18: "Diamond 1",
	19: "Diamond 2",
	20: "Diamond 3",
	21: "Ascendant 1",
	22: "Ascendant 2",
	23: "Ascendant 3",
	24: "Immortal 1",
	25: "Immortal 2",
	26: "Immortal 3",
	27: "Radiant"
}

MAP_CODENAMES = {
	"ascent": "Ascent",
	"duality": "Bind",
	"bonsai": "Split",
	"triad": "Haven",
	"port": "Icebox",
	"foxtrot": "Breeze",
	"canyon": "Fracture",
	"pitt": "Pearl",
	"jam": "Lotus",
	"juliett": "Sunset",
	"infinity": "Abyss",
	"rook": "Corrode",
	"delta": "Drift",
}


class FakeResponse:
	"""Mimics a requests.Response object for offline paths and failed connections."""

	def __init__(self, json_data, status_code=200, headers=None):
		self._json_data = json_data
		self.status_code = status_code
		self.headers = headers or {}
		self.url = ""

	@property
	def ok(self) -> bool:
		return 200 <= self.status_code < 300

	@property
	def text(self) -> str:
		return dumps(self._json_data, indent=4)

	def json(self):
		if self._json_data is None:
			raise JSONDecodeError("No JSON payload", "", 0)
		return self._json_data

	def __enter__(self):
		"""Allows use in 'with' statements."""
		return self

	def __exit__(self, exc_type, exc_value, traceback):
		pass


def create_session() -> Session:
	session = Session()
	retry = Retry(
		total=2,  # Total number of retries
		read=3,  # Number of retries on read errors
		connect=2,  # Number of retries on connection errors
		backoff_factor=1,  # Backoff factor to apply between attempts
		status_forcelist=[500, 502, 503, 504],  # Retry on these status codes
		allowed_methods=["GET", "PUT"],
	)
	adapter = HTTPAdapter(max_retries=retry)
	session.mount("https://", adapter)
	return session


class Utils:
	def __init__(self, logger, session: Session | None = None, timeout=REQUEST_TIMEOUT):
		self.logger = logger
		self.session = session or create_session()
		self.timeout = timeout

		# The local client signs its own certificate.
		disable_warnings(InsecureRequestWarning)

	@staticmethod
	def get_rate_limit_wait_time(response):
		"""Extracts wait time from rate limit headers if available."""
		reset_time = response.headers.get("Retry-After")
		if reset_time:
			try:
				return int(reset_time)
			except ValueError:
				return None
		return None  # No rate limit header found

	def handle_rate_limit(self, response, url, method="GET", headers=None, params=None, data=None, verify=None):
		"""Retries once after the server supplied Retry-After delay."""
		wait_time = self.get_rate_limit_wait_time(response)
		if wait_time:
			self.logger.debug(
				"Rate limited while contacting Riot API",
				context={"retry_in_seconds": wait_time, "url": url, "method": method},
			)
			time.sleep(wait_time)
			return self._send(method, url, params=params, data=data, headers=headers, verify=verify)

		return response  # No rate limit header

	def _send(self, method, url, params=None, data=None, headers=None, verify=None):
		try:
			return self.session.request(method, url, params=params, json=data, headers=headers, verify=verify,
			                            timeout=self.timeout)
		except requests.exceptions.RequestException as e:
			self.logger.warning(
				"Connection error while contacting API",
				context={"url": url, "method": method, "error": repr(e)},
			)
			return FakeResponse({"message": "Failed to connect."}, 503)

	def api_request(self, method, url, params=None, data=None, headers=None, json=None, verify=None):
		"""Sends a request through the shared session. Never raises for transport errors."""
		if data is None and json is not None:
			data = json

		response = self._send(method, url, params=params, data=data, headers=headers, verify=verify)

		if response.status_code == 429:
			return self.handle_rate_limit(response, url, method, headers, params, data, verify)

		if not 200 <= response.status_code < 300 and response.status_code not in (404, 503):
			error_context = {
				"status_code": response.status_code,
				"url": url,
				"method": method,
				"params": repr(params),
			}
			try:
				error_context["response_preview"] = response.text[:400]
			except (AttributeError, TypeError):
				error_context["response_preview"] = "<unavailable>"
			self.logger.warning("API request returned non-success status", context=error_context)
		return response


def shard_for_region(region: str) -> str:
	return REGION_SHARDS.get(region, region)


def compute_rr_change(rank_before: int, rank_after: int, rr_before: int, rr_after: int) -> int:
	"""Ranked rating gained or lost by one match, on a fixed 100 RR per tier scale."""
	if rank_after > rank_before:
		return 100 - rr_before + rr_after
	elif rank_after < rank_before:
		return -(rr_before + (100 - rr_after))
	return rr_after - rr_before


def get_rank_name_from_tier(tier: int, basic=False) -> str:
	"""Returns the rank name based on the tier."""
	if tier == 0:
		return "Unranked"
	rank = RANK_MAPPING.get(int(tier), "Unknown Rank")
	if basic:
		rank = rank.split(" ")[0]
	return rank


def resolve_map_name(map_url: str) -> str:
	parts = [part for part in map_url.split("/") if part]
	codename = parts[-1] if parts else "Unknown"
	return MAP_CODENAMES.get(codename.lower(), codename)


def decode_presence(encoded: Any) -> dict | None:
	"""Decodes the base64 JSON blob carried in a presence's 'private' field."""
	if not isinstance(encoded, str) or not encoded:
		return None
	try:
		decoded = loads(b64decode(encoded))
	except (BinasciiError, ValueError, UnicodeDecodeError):
		return None
	return decoded if isinstance(decoded, dict) else None
