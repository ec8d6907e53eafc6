"""
Enrollment against a peer's membership service (/registrar).

register() is a small state machine per (peer, enrollId):

  Attempting(1) ──ok──▶ Success
       │fail, attempt <= max_retry
       ▼  wait retry_delay
  Attempting(n+1) ... ──fail, attempt > max_retry──▶ GaveUp

Peers on a freshly started network often refuse registrations for a while,
hence the long fixed delay between attempts. unregister/check are one-shot.
"""
import logging
import queue
import threading
from enum import Enum
from typing import Callable

from ledgerlink.config import REGISTER_RETRY_DELAY
from ledgerlink.errors import RegistrationExhaustedError, TransportError
from ledgerlink.models import EnrollCredential
from ledgerlink.peers import PeerDirectory
from ledgerlink.transport import Transport

log = logging.getLogger("ledgerlink.registration")

# wait(seconds) -> True when the owner is shutting down
Waiter = Callable[[float], bool]


class RegistrationState(Enum):
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    GAVE_UP = "gave_up"


class RegistrationFlow:
    def __init__(self, transport: Transport, directory: PeerDirectory, index: int,
                 credential: EnrollCredential, max_retry: int = 2,
                 retry_delay: float = REGISTER_RETRY_DELAY, wait: Waiter | None = None):
        self.transport = transport
        self.directory = directory
        self.index = index
        self.credential = credential
        self.max_retry = max_retry
        self.retry_delay = retry_delay
        self._wait = wait or (lambda seconds: threading.Event().wait(seconds))
        self.state = RegistrationState.ATTEMPTING
        self.attempt = 1

    def run(self):
        """Drive the flow to Success (returns the response) or GaveUp (raises)."""
        peer = self.directory.get(self.index)
        enroll_id = self.credential.enroll_id
        body = {"enrollId": enroll_id, "enrollSecret": self.credential.enroll_secret}
        log.info("Registering %s with peer %s", enroll_id, peer.name)

        while True:
            try:
                _, data = self.transport.request("POST", peer.target, "/registrar", body)
            except TransportError as exc:
                log.error("Registration of %s failed (attempt %d): %s",
                          enroll_id, self.attempt, exc.status_code)
                if self.attempt > self.max_retry:
                    raise self._give_up(exc) from exc
                log.info("Retrying registration of %s in %ss", enroll_id, self.retry_delay)
                if self._wait(self.retry_delay):
                    log.info("Registration of %s cancelled", enroll_id)
                    raise self._give_up(exc) from exc
                self.attempt += 1
                continue

            self.directory.remember_identity(self.index, enroll_id)
            self.state = RegistrationState.SUCCESS
            log.info("Registration of %s succeeded (attempt %d)", enroll_id, self.attempt)
            return data

    def _give_up(self, exc: TransportError) -> RegistrationExhaustedError:
        self.state = RegistrationState.GAVE_UP
        return RegistrationExhaustedError("register() error", exc.status_code, exc.cause)


def unregister(transport: Transport, directory: PeerDirectory, index: int, enroll_id: str):
    peer = directory.get(index)
    log.info("Unregistering %s from peer %s", enroll_id, peer.name)
    try:
        _, data = transport.request("DELETE", peer.target, f"/registrar/{enroll_id}")
    except TransportError as exc:
        log.warning("Unregistering %s failed: %s", enroll_id, exc.status_code)
        raise TransportError("unregister() error", exc.status_code, exc.cause,
                             kind="UnregisterFailed") from exc
    directory.remember_identity(index, None)
    return data


def check_register(transport: Transport, directory: PeerDirectory, index: int, enroll_id: str):
    peer = directory.get(index)
    log.info("Checking registration of %s with peer %s", enroll_id, peer.name)
    try:
        _, data = transport.request("GET", peer.target, f"/registrar/{enroll_id}")
    except TransportError as exc:
        log.error("Check registration of %s failed: %s", enroll_id, exc.status_code)
        raise TransportError("check_register() error", exc.status_code, exc.cause,
                             kind="CheckRegisterFailed") from exc
    return data


def register_all(flows: list[RegistrationFlow]) -> list:
    """
    Run flows concurrently, one daemon thread each.

    Returns every response once all flows succeed. The first flow to give up
    aborts the wait and its error is raised; the rest keep running.
    """
    if not flows:
        return []
    results: queue.Queue = queue.Queue()

    def _branch(i, flow):
        try:
            results.put((i, None, flow.run()))
        except Exception as exc:
            results.put((i, exc, None))

    for i, flow in enumerate(flows):
        threading.Thread(target=_branch, args=(i, flow), daemon=True,
                         name=f"ledgerlink-register-{flow.index}").start()

    out = [None] * len(flows)
    for _ in flows:
        i, err, data = results.get()
        if err is not None:
            raise err
        out[i] = data
    return out
