"""
JSON-RPC envelope posted to a peer's /chaincode endpoint.

  {"jsonrpc": "2.0", "method": "deploy"|"invoke"|"query",
   "params": {"type": 1, "chaincodeID": {...},
              "ctorMsg": {"function": <name>, "args": [...]},
              "secureContext": <enrollId or null>},
   "id": <int>}

The id is only for server-side tracing; responses are matched by the
request/response exchange itself.
"""
import threading
import time
from dataclasses import dataclass, field
from typing import Literal

PROTOCOL_VERSION = "2.0"
CHAINCODE_TYPE_GOLANG = 1

Method = Literal["deploy", "invoke", "query"]


class RequestClock:
    """Millisecond request ids that never repeat and never go backwards."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return self._last


@dataclass
class RPCEnvelope:
    method: Method
    chaincode_id: dict
    function: str
    args: list[str] = field(default_factory=list)
    identity: str | None = None
    request_id: int = 0
    protocol_version: str = PROTOCOL_VERSION

    @classmethod
    def deploy(cls, source_locator: str, function: str, args, identity, request_id):
        return cls("deploy", {"path": source_locator}, function,
                   [str(a) for a in args or []], identity, request_id)

    @classmethod
    def call(cls, method: Method, deployed_name: str, function: str, args, identity, request_id):
        return cls(method, {"name": deployed_name}, function,
                   [str(a) for a in args or []], identity, request_id)

    def to_dict(self) -> dict:
        return {
            "jsonrpc": self.protocol_version,
            "method": self.method,
            "params": {
                "type": CHAINCODE_TYPE_GOLANG,
                "chaincodeID": dict(self.chaincode_id),
                "ctorMsg": {"function": self.function, "args": list(self.args)},
                "secureContext": self.identity,
            },
            "id": self.request_id,
        }
