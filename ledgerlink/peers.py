import logging
import threading

from ledgerlink.config import NetworkOptions
from ledgerlink.errors import InputValidationError
from ledgerlink.models import PeerEndpoint, Target, parse_port

log = logging.getLogger("ledgerlink.peers")


def validate_peers(raw_peers, options: NetworkOptions) -> list[str]:
    """Return every problem with a raw peer list; empty means it is usable."""
    if not isinstance(raw_peers, list):
        return ["network input arg should be array of peer objects"]
    errors = []
    port_field = "api_port_tls" if options.tls else "api_port"
    for i, p in enumerate(raw_peers):
        if not isinstance(p, dict):
            errors.append(f"peer {i} is not an object")
            continue
        if not p.get("id"):
            errors.append(f"peer {i} is missing the field id")
        if not p.get("api_host"):
            errors.append(f"peer {i} is missing the field api_host")
        if not p.get(port_field):
            errors.append(f"peer {i} is missing the field {port_field}")
        elif parse_port(p[port_field]) is None:
            errors.append(f"peer {i} field {port_field} is not a valid port: {p[port_field]!r}")
    return errors


class PeerDirectory:
    """
    Ordered list of configured peers plus the selected-peer index.

    Peers are replaced wholesale by configure(); afterwards only the
    selection and each peer's remembered identity change.
    Thread-safety: selection and identities are guarded by _lock.
    """

    def __init__(self):
        self._peers: list[PeerEndpoint] = []
        self._selected = 0
        self._lock = threading.Lock()

    def configure(self, raw_peers, options: NetworkOptions) -> list[PeerEndpoint]:
        errors = validate_peers(raw_peers, options)
        if errors:
            log.error("Input error in network(): %s", errors)
            raise InputValidationError("network() input error", 400, errors)
        peers = [PeerEndpoint.from_dict(p, tls=options.tls) for p in raw_peers]
        for p in peers:
            log.info("Peer: %s", p.name)
        with self._lock:
            self._peers = peers
            self._selected = 0
        return peers

    def __len__(self):
        return len(self._peers)

    @property
    def peers(self) -> list[PeerEndpoint]:
        return list(self._peers)

    @property
    def selected(self) -> int:
        return self._selected

    def get(self, index: int) -> PeerEndpoint:
        if not isinstance(index, int) or not 0 <= index < len(self._peers):
            raise InputValidationError(f"no peer at index {index!r}", 400,
                                       [f"peer index {index!r} out of range"])
        return self._peers[index]

    def select(self, index: int) -> bool:
        with self._lock:
            if not isinstance(index, int) or not 0 <= index < len(self._peers):
                return False
            self._selected = index
        log.info("Switched to peer %s", self._peers[index].name)
        return True

    def target(self, index: int | None = None) -> Target:
        """Target of a peer by index, or of the selected peer."""
        if not self._peers:
            raise InputValidationError("no peers configured", 400,
                                       ["call network() before talking to a peer"])
        with self._lock:
            idx = self._selected if index is None else index
        return self.get(idx).target

    def selected_identity(self) -> str | None:
        with self._lock:
            if not self._peers:
                return None
            return self._peers[self._selected].identity

    def remember_identity(self, index: int, identity: str | None):
        peer = self.get(index)
        with self._lock:
            peer.identity = identity

    def resolve_identity(self, identity: str | None = None) -> str | None:
        """Explicit identity wins, else the selected peer's remembered one, else None."""
        if identity is not None:
            return identity
        return self.selected_identity()
