"""
LedgerClient: one peer network, one chaincode.

A client owns its peer directory, chaincode descriptor, capability registry,
pending-action queue and block-height monitor, so several clients in one
process are independent.

Anything that talks to a peer runs on a daemon worker thread and reports
back twice: through the optional `cb(error, value)` callback and through the
returned Future, whose result is a Result(error, value) pair. Peer and
response-shape failures arrive as `error`; they are never raised at the
caller. Local configuration calls (network, switch_peer, save, load_saved,
load_chaincode, clear) run inline and raise LedgerError subclasses.

Typical startup:

    client = LedgerClient()
    client.load({
        "network": {"peers": [...], "options": {"tls": True}, "users": [...]},
        "chaincode": {"git_url": "...", "invoke": ["write"], "query": ["read"]},
    }).result().error
    client.deploy("init", ["99"]).result()
    client.monitor_blockheight(lambda stats: print(stats["height"]))
    client.registry.invoke["write"](["abc", "1"])
"""
import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, NamedTuple

from ledgerlink import registration, store
from ledgerlink.chaincode import CapabilityRegistry
from ledgerlink.config import (
    DEPLOY_SETTLE_MS,
    REGISTER_RETRY_DELAY,
    STATE_DIR,
    NetworkOptions,
    apply_log_level,
)
from ledgerlink.envelope import RequestClock, RPCEnvelope
from ledgerlink.errors import (
    InputValidationError,
    LedgerError,
    MalformedResponseError,
    TransportError,
)
from ledgerlink.models import ChaincodeDescriptor, EnrollCredential
from ledgerlink.monitor import ActionQueue, BlockHeightMonitor, MonitorHandle
from ledgerlink.peers import PeerDirectory
from ledgerlink.transport import HttpTransport, Transport

log = logging.getLogger("ledgerlink.client")

Callback = Callable[[LedgerError | None, Any], Any]


class Result(NamedTuple):
    error: LedgerError | None
    value: Any


class LedgerClient:
    def __init__(self, transport: Transport | None = None, *,
                 state_dir: str = STATE_DIR,
                 retry_delay: float = REGISTER_RETRY_DELAY,
                 deploy_delay_ms: int = DEPLOY_SETTLE_MS,
                 clock=time.time):
        apply_log_level()
        self.options = NetworkOptions()
        self.directory = PeerDirectory()
        self.descriptor = ChaincodeDescriptor()
        self.registry = CapabilityRegistry(self.descriptor, self.invoke, self.query)
        self.actions = ActionQueue()
        self.state_dir = state_dir
        self.retry_delay = retry_delay
        self.deploy_delay_ms = deploy_delay_ms
        self._clock = clock
        self._ids = RequestClock(clock)
        self._transport = transport
        self._owns_transport = transport is None
        self._closed = threading.Event()
        self._lock = threading.Lock()          # descriptor fields
        self._monitor: BlockHeightMonitor | None = None

    # ── Plumbing ──────────────────────────────────────────────

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            self._transport = HttpTransport(self.options)
        return self._transport

    def _wait(self, seconds: float) -> bool:
        """Sleep that wakes early on close(). True means the client closed."""
        return self._closed.wait(seconds)

    def _submit(self, label: str, fn: Callable[[], Any], cb: Callback | None = None) -> Future:
        fut: Future = Future()

        def _work():
            try:
                result = Result(None, fn())
            except LedgerError as exc:
                result = Result(exc, None)
            except Exception as exc:
                log.exception("%s failed unexpectedly", label)
                err = LedgerError(f"{label}() unexpected error", 500, str(exc), kind="Unexpected")
                err.__cause__ = exc
                result = Result(err, None)
            try:
                if cb is not None:
                    cb(result.error, result.value)
            finally:
                fut.set_result(result)

        threading.Thread(target=_work, daemon=True, name=f"ledgerlink-{label}").start()
        return fut

    @staticmethod
    def _done(error: LedgerError, cb: Callback | None = None) -> Future:
        """Report an error synchronously, for input problems found before any I/O."""
        fut: Future = Future()
        if cb is not None:
            cb(error, None)
        fut.set_result(Result(error, None))
        return fut

    def _post_chaincode(self, envelope: RPCEnvelope, label: str, kind: str):
        target = self.directory.target()
        try:
            _, data = self.transport.request("POST", target, "/chaincode", envelope.to_dict())
        except TransportError as exc:
            log.error("%s - failure: %s %s", label, exc.status_code, exc.cause)
            raise TransportError(f"{label}() error", exc.status_code, exc.cause, kind=kind) from exc
        return data

    def _get(self, path: str, label: str, kind: str):
        try:
            _, data = self.transport.request("GET", self.directory.target(), path)
        except TransportError as exc:
            log.error("%s - failure: %s", label, exc.status_code)
            raise TransportError(f"{label}() error", exc.status_code, exc.cause, kind=kind) from exc
        log.debug("%s - success", label)
        return data

    # ── Network configuration ─────────────────────────────────

    def network(self, peers, options: dict | None = None):
        """Validate and install the peer list; selects peer 0."""
        opts = NetworkOptions.from_dict(options)
        endpoints = self.directory.configure(peers, opts)
        self.options = opts
        with self._lock:
            self.descriptor.options = opts.to_dict()
            self.descriptor.peers = [p.to_dict() for p in endpoints]
        if self._owns_transport:
            old, self._transport = self._transport, None
            if old is not None:
                old.close()
        return endpoints

    def switch_peer(self, index: int) -> bool:
        return self.directory.select(index)

    # ── Startup flow ──────────────────────────────────────────

    def load(self, options: dict, cb: Callback | None = None) -> Future:
        """
        Configure the network, register any users, then load the chaincode.

        Users are registered concurrently, one per peer index; the first
        registration to give up fails the whole load.
        """
        network = (options or {}).get("network") or {}
        if not network.get("peers"):
            errors = ['the option "network.peers" is required']
            log.error("Input error in load(): %s", errors)
            return self._done(InputValidationError("load() input error", 400, errors), cb)
        return self._submit("load", lambda: self._load(options), cb)

    def _load(self, options: dict):
        network = options["network"]
        with self._lock:
            self.descriptor = ChaincodeDescriptor()
            self.registry.reset(self.descriptor)
        self.network(network["peers"], network.get("options"))

        # users[i] registers on peer i; empty slots leave that peer alone
        raw_users = network.get("users") or []
        users = {i: EnrollCredential.from_dict(u) for i, u in enumerate(raw_users) if u}
        with self._lock:
            self.descriptor.users = [u.to_dict() for u in users.values()]
        if users:
            flows = [
                registration.RegistrationFlow(
                    self.transport, self.directory, i, cred,
                    max_retry=self.options.max_retry,
                    retry_delay=self.retry_delay, wait=self._wait)
                for i, cred in users.items() if i < len(self.directory)
            ]
            registration.register_all(flows)
        else:
            log.info("No membership users found, assuming this is a network w/o membership")

        return self.load_chaincode(options.get("chaincode") or {})

    def load_chaincode(self, options: dict) -> CapabilityRegistry:
        """Record chaincode details and bind its declared invoke/query functions."""
        with self._lock:
            deployed_name = options.get("deployed_name") or options.get("deploy_name")
            if deployed_name:
                self.descriptor.deployed_name = str(deployed_name)
            if options.get("git_url"):
                self.descriptor.source_locator = str(options["git_url"])
            if options.get("version"):
                self.descriptor.version = str(options["version"])
        self.registry.bind_all(options.get("invoke"), options.get("query"))
        with self._lock:
            self.descriptor.stamp()
        log.info("load_chaincode() finished")
        return self.registry

    # ── Chaincode calls ───────────────────────────────────────

    def invoke(self, name: str, args=None, identity: str | None = None,
               cb: Callback | None = None) -> Future:
        """State-changing call; success marks one pending action for the monitor."""
        return self._submit(f"invoke-{name}", lambda: self._invoke(name, args, identity), cb)

    def _invoke(self, name, args, identity):
        if not self.registry.has("invoke", name):
            raise InputValidationError("invoke() input error", 400,
                                       [f"no invoke function named {name!r}"])
        env = RPCEnvelope.call("invoke", self.descriptor.deployed_name, name, args,
                               self.directory.resolve_identity(identity), self._ids.next_id())
        data = self._post_chaincode(env, name, "InvokeFailed")
        self.actions.push(self._clock())
        return data

    def query(self, name: str, args=None, identity: str | None = None,
              cb: Callback | None = None) -> Future:
        """Read-only call; the value is the peer's result.message (or OK)."""
        return self._submit(f"query-{name}", lambda: self._query(name, args, identity), cb)

    def _query(self, name, args, identity):
        if not self.registry.has("query", name):
            raise InputValidationError("query() input error", 400,
                                       [f"no query function named {name!r}"])
        env = RPCEnvelope.call("query", self.descriptor.deployed_name, name, args,
                               self.directory.resolve_identity(identity), self._ids.next_id())
        data = self._post_chaincode(env, name, "QueryFailed")
        return _query_value(data)

    def deploy(self, func: str, args=None, *, save_path: str | None = None,
               delay_ms: int | None = None, identity: str | None = None,
               cb: Callback | None = None) -> Future:
        """
        Deploy the chaincode at the descriptor's source locator.

        Not idempotent: each call is a new deployment. On success the new
        deployed name is saved to the state dir (and save_path if given),
        then the call waits delay_ms before completing so the peer can
        finish starting the chaincode.
        """
        return self._submit("deploy", lambda: self._deploy(func, args, save_path, delay_ms, identity), cb)

    def _deploy(self, func, args, save_path, delay_ms, identity):
        log.info("Deploy chaincode - starting, function %s args %s", func, args)
        env = RPCEnvelope.deploy(self.descriptor.source_locator, func, args,
                                 self.directory.resolve_identity(identity), self._ids.next_id())
        data = self._post_chaincode(env, "deploy", "DeployFailed")

        name = _deployed_name(data)
        if not name:
            log.error("Deploy response has no chaincode name: %s", data)
            raise MalformedResponseError("deploy() error no cc name", 502, data,
                                         kind="DeployResponseInvalid")
        with self._lock:
            self.descriptor.deployed_name = name
        self._save_logged(self.state_dir)
        if save_path is not None:
            self._save_logged(save_path)

        wait_ms = self.deploy_delay_ms if delay_ms is None else delay_ms
        log.info("Deploy success %s, waiting another %.1fs", name, wait_ms / 1000)
        self._wait(wait_ms / 1000)
        log.info("Deploy chaincode - complete")
        return data

    def _save_logged(self, directory: str):
        try:
            self.save(directory)
        except LedgerError as exc:
            log.warning("Could not save chaincode details to %s: %s", directory, exc)

    # ── Membership ────────────────────────────────────────────

    def register(self, index: int, enroll_id: str, enroll_secret: str,
                 max_retry: int | None = None, cb: Callback | None = None) -> Future:
        flow = registration.RegistrationFlow(
            self.transport, self.directory, index,
            EnrollCredential(enroll_id, enroll_secret),
            max_retry=self.options.max_retry if max_retry is None else max_retry,
            retry_delay=self.retry_delay, wait=self._wait)
        return self._submit("register", flow.run, cb)

    def unregister(self, index: int, enroll_id: str, cb: Callback | None = None) -> Future:
        return self._submit(
            "unregister",
            lambda: registration.unregister(self.transport, self.directory, index, enroll_id), cb)

    def check_register(self, index: int, enroll_id: str, cb: Callback | None = None) -> Future:
        return self._submit(
            "check-register",
            lambda: registration.check_register(self.transport, self.directory, index, enroll_id), cb)

    # ── Chain reads ───────────────────────────────────────────

    def chain_stats(self, cb: Callback | None = None) -> Future:
        return self._submit("chain-stats", self._chain_stats, cb)

    def _chain_stats(self):
        return self._get("/chain", "chain_stats", "ChainStatsFailed")

    def block_stats(self, block_id, cb: Callback | None = None) -> Future:
        # block ids start at 0, height starts at 1
        return self._submit(
            "block-stats",
            lambda: self._get(f"/chain/blocks/{block_id}", "block_stats", "BlockStatsFailed"), cb)

    def get_transaction(self, tx_id: str, cb: Callback | None = None) -> Future:
        return self._submit(
            "get-transaction",
            lambda: self._get(f"/transactions/{tx_id}", "get_transaction",
                              "TransactionLookupFailed"), cb)

    # ── Monitoring ────────────────────────────────────────────

    def monitor_blockheight(self, cb: Callable[[dict], Any], **intervals) -> MonitorHandle:
        """
        Call cb(stats) whenever the chain height changes.

        Replaces any monitor this client already runs. `intervals` may
        override fast_interval, slow_interval and freshness_window.
        """
        if self._monitor is not None:
            self._monitor.stop()
        self._monitor = BlockHeightMonitor(self._chain_stats, cb, self.actions,
                                           clock=self._clock, **intervals)
        return self._monitor.start()

    # ── Persistence ───────────────────────────────────────────

    def save(self, directory: str) -> str:
        with self._lock:
            snapshot = ChaincodeDescriptor.from_dict(self.descriptor.to_dict())
        return store.save_descriptor(directory, snapshot)

    def load_saved(self, path: str) -> CapabilityRegistry:
        """Restore a descriptor written by save()/deploy() and rebind its functions."""
        saved = store.load_descriptor(path)
        with self._lock:
            self.descriptor.deployed_name = saved.deployed_name
            self.descriptor.source_locator = saved.source_locator or self.descriptor.source_locator
            self.descriptor.version = saved.version or self.descriptor.version
        self.registry.bind_all(saved.invoke_names, saved.query_names)
        log.info("Loaded saved chaincode %s from %s", saved.deployed_name or "(undeployed)", path)
        return self.registry

    def clear(self):
        store.clear_directory(self.state_dir)

    # ── Shutdown ──────────────────────────────────────────────

    def close(self):
        """Stop the monitor, wake any retry/settle waits, release the transport."""
        self._closed.set()
        if self._monitor is not None:
            self._monitor.stop()
        if self._owns_transport and self._transport is not None:
            self._transport.close()


def _query_value(data):
    if isinstance(data, dict):
        result = data.get("result")
        if isinstance(result, dict) and "message" in result:
            return result["message"]
        if "OK" in data:
            return data["OK"]
    log.error("Query response has neither result.message nor OK: %s", data)
    raise MalformedResponseError("query() resp error", 502, data)


def _deployed_name(data) -> str:
    if not isinstance(data, dict):
        return ""
    result = data.get("result")
    if not isinstance(result, dict):
        return ""
    return str(result.get("message") or "")
