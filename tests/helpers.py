# tests/helpers.py

import time

from Riot import Lockfile
from utils import FakeResponse

SELF_PUUID = "self"
LOCKFILE = Lockfile(name="Riot Client", pid=1234, port=55000, password="secret", protocol="https")


class FakeApi:
	"""
	Stands in for Utils.api_request. Routes are matched on method plus URL fragment; the longest
	matching fragment wins. A route body may be a callable taking (url, json) for dynamic replies.
	"""

	def __init__(self):
		self.routes = {}
		self.calls = []
		self.timings = []

	def add(self, method, fragment, body, status=200):
		self.routes[(method, fragment)] = (body, status)

	def remove(self, method, fragment):
		self.routes.pop((method, fragment), None)

	def api_request(self, method, url, params=None, data=None, headers=None, json=None, verify=None):
		payload = json if json is not None else data
		self.calls.append((method, url, payload))
		self.timings.append((time.monotonic(), method, url))
		matches = [
			(fragment, value) for (m, fragment), value in self.routes.items()
			if m == method and fragment in url
		]
		if not matches:
			return FakeResponse(None, 404)
		_, (body, status) = max(matches, key=lambda item: len(item[0]))
		if callable(body):
			body = body(url, payload)
		return FakeResponse(body, status)

	def count(self, method, fragment, exclude=None):
		return sum(
			1 for m, url, _ in self.calls
			if m == method and fragment in url and (exclude is None or exclude not in url)
		)

	def add_session(self, region="eu", card_id="card-1"):
		"""Registers everything a successful connect touches."""
		self.add("GET", "127.0.0.1:55000/chat/v1/session",
		         {"puuid": SELF_PUUID, "game_name": "Me", "game_tag": "NA1"})
		self.add("GET", "127.0.0.1:55000/product-session/v1/external-sessions", {
			"host_app": {
				"launchConfiguration": {"arguments": ["-launch", f"-ares-deployment={region}"]},
				"version": "release-08.00-shipping-1-1",
			},
		})
		self.add("GET", "127.0.0.1:55000/entitlements/v1/token", {"accessToken": "access", "token": "entitlement"})
		self.add("GET", "valorant-api.com/v1/version", {"data": {"riotClientVersion": "release-10.00-shipping-5-1"}})
		if card_id is not None:
			self.add("GET", f"/personalization/v2/players/{SELF_PUUID}/playerloadout",
			         {"Identity": {"PlayerCardID": card_id}})


def name_service(names):
	"""Builds a name-service reply covering only the requested puuids."""

	def reply(url, puuids):
		return [
			{"Subject": puuid, "GameName": names[puuid][0], "TagLine": names[puuid][1]}
			for puuid in puuids or [] if puuid in names
		]

	return reply
