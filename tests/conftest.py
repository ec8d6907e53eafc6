"""
Shared fixtures.

FakeTransport stands in for HttpTransport: each (method, path) pair is
answered from a script of responses, and every request is recorded so
tests can inspect targets and envelopes.
"""
import threading

import pytest

from ledgerlink.client import LedgerClient
from ledgerlink.errors import TransportError


class FakeTransport:
    def __init__(self):
        self.requests: list[dict] = []
        self._routes: dict[tuple[str, str], list] = {}
        self._lock = threading.Lock()

    def reply(self, method: str, path: str, *responses):
        """Queue responses for a route. Exceptions are raised, anything else returned.
        The last response repeats once the queue runs dry."""
        self._routes[(method, path)] = list(responses)

    def fail(self, method: str, path: str, status: int = 500, cause="boom"):
        self.reply(method, path, TransportError("request failed", status, cause))

    def request(self, method, target, path, body=None):
        with self._lock:
            self.requests.append({"method": method, "target": target, "path": path, "body": body})
            script = self._routes.get((method, path))
            if not script:
                raise TransportError("no route", 404, f"{method} {path}")
            response = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(response, Exception):
            raise response
        return 200, response

    def calls(self, method: str, path: str) -> list[dict]:
        return [r for r in self.requests if r["method"] == method and r["path"] == path]

    def close(self):
        pass


PEERS = [
    {"id": "vp0_abcdef0123456789", "api_host": "10.0.0.1", "api_port": 5000, "api_port_tls": 7051},
    {"id": "vp1_fedcba9876543210", "api_host": "10.0.0.2", "api_port": 5001, "api_port_tls": 7052},
]


@pytest.fixture
def peer_config() -> list[dict]:
    return [dict(p) for p in PEERS]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(transport, tmp_path, peer_config):
    c = LedgerClient(transport, state_dir=str(tmp_path / "state"),
                     retry_delay=0.0, deploy_delay_ms=0)
    c.network(peer_config)
    yield c
    c.close()


@pytest.fixture
def chaincode(client):
    client.load_chaincode({
        "git_url": "github.com/example/chaincode",
        "deployed_name": "cc01",
        "invoke": ["write", "transfer"],
        "query": ["read"],
    })
    return client
