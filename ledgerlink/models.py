import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Target:
    """Where a single request goes."""
    host: str
    port: int
    tls: bool

    @property
    def base_url(self) -> str:
        scheme = "https" if self.tls else "http"
        return f"{scheme}://{self.host}:{self.port}"


@dataclass
class PeerEndpoint:
    id: str
    api_host: str
    api_port: int | None = None
    api_port_tls: int | None = None
    tls: bool = True
    name: str = ""
    identity: str | None = None   # enrollId remembered after a successful registration

    @classmethod
    def from_dict(cls, d: dict, tls: bool = True) -> "PeerEndpoint":
        peer = cls(
            id=str(d["id"]),
            api_host=str(d["api_host"]),
            api_port=parse_port(d.get("api_port")),
            api_port_tls=parse_port(d.get("api_port_tls")),
            tls=tls,
        )
        peer.name = friendly_name(peer.id, peer.port)
        return peer

    @property
    def port(self) -> int | None:
        return self.api_port_tls if self.tls else self.api_port

    @property
    def target(self) -> Target:
        return Target(host=self.api_host, port=self.port, tls=self.tls)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "api_port_tls": self.api_port_tls,
            "tls": self.tls,
            "identity": self.identity,
        }


def parse_port(value) -> int | None:
    """Positive int port, or None when the value is missing or unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        port = int(value)
    except (TypeError, ValueError):
        return None
    return port if port > 0 else None


def friendly_name(peer_id: str, port) -> str:
    """`vp1_abcdef...` style ids become `abcdef-vp1_abcdef...:<port>` for logs."""
    pos = peer_id.find("_") + 1
    return f"{peer_id[pos:]}-{peer_id[:12]}...:{port}"


@dataclass
class EnrollCredential:
    enroll_id: str
    enroll_secret: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "EnrollCredential":
        return cls(
            enroll_id=str(d.get("enrollId", d.get("enroll_id", ""))),
            enroll_secret=str(d.get("enrollSecret", d.get("enroll_secret", ""))),
        )

    def to_dict(self):
        # the secret stays in memory only
        return {"enrollId": self.enroll_id}


@dataclass
class ChaincodeDescriptor:
    """
    Everything known about the chaincode a client talks to.

    deployed_name is empty until a deploy succeeds or a saved descriptor
    is loaded. invoke_names/query_names keep declaration order and never
    hold duplicates.
    """
    deployed_name: str = ""
    source_locator: str = ""
    version: str = ""
    invoke_names: list[str] = field(default_factory=list)
    query_names: list[str] = field(default_factory=list)
    created_at: float = 0.0
    options: dict[str, Any] = field(default_factory=dict)
    peers: list[dict] = field(default_factory=list)
    users: list[dict] = field(default_factory=list)

    def stamp(self):
        self.created_at = time.time()

    @classmethod
    def from_dict(cls, d: dict) -> "ChaincodeDescriptor":
        if not isinstance(d, dict):
            d = {}
        func = d.get("func") or {}
        return cls(
            deployed_name=str(d.get("deployedName") or ""),
            source_locator=str(d.get("sourceLocator") or ""),
            version=str(d.get("version") or ""),
            invoke_names=list(dict.fromkeys(func.get("invoke") or [])),
            query_names=list(dict.fromkeys(func.get("query") or [])),
            created_at=float(d.get("createdAt") or 0.0),
            options=dict(d.get("options") or {}),
            peers=list(d.get("peers") or []),
            users=list(d.get("users") or []),
        )

    def to_dict(self) -> dict:
        return {
            "deployedName": self.deployed_name,
            "sourceLocator": self.source_locator,
            "version": self.version,
            "func": {"invoke": list(self.invoke_names), "query": list(self.query_names)},
            "createdAt": self.created_at,
            "options": dict(self.options),
            "peers": list(self.peers),
            "users": list(self.users),
        }
