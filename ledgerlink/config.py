"""
Runtime configuration for a ledgerlink client.

NetworkOptions mirrors the `network.options` block callers hand to
LedgerClient.network()/load(). Process-level defaults come from the
environment and are read once at import time.
"""
import logging
import os
from dataclasses import dataclass

# ── Environment ───────────────────────────────────────────────
STATE_DIR: str = os.environ.get("LEDGERLINK_STATE_DIR", "/tmp/ledgerlink")
LOG_LEVEL: str = os.environ.get("LEDGERLINK_LOG_LEVEL", "")

# ── Timing (seconds unless suffixed _MS) ──────────────────────
DEPLOY_SETTLE_MS = 500          # wait after a deploy, peer may still be starting
REGISTER_RETRY_DELAY = 30.0     # fixed backoff between registration attempts
FAST_INTERVAL = 0.5             # monitor tick
SLOW_INTERVAL = 10.0            # poll at least this often regardless of queue
FRESHNESS_WINDOW = 3.0          # pending actions older than this are dropped

DEFAULT_FILENAME = "chaincode.json"


@dataclass
class NetworkOptions:
    """
    Options shared by every request a client makes.

      quiet    : log request/response lines at DEBUG instead of INFO
      timeout  : per-request timeout in milliseconds
      tls      : talk to peers on api_port_tls over https
      max_retry: registration retries after the first attempt
      ca_pem   : optional PEM CA used to verify peer certificates
    """
    quiet: bool = True
    timeout: int = 60000
    tls: bool = True
    max_retry: int = 2
    ca_pem: str = ""

    @classmethod
    def from_dict(cls, d: dict | None) -> "NetworkOptions":
        """Only well-typed values override the defaults; anything else is ignored."""
        opts = cls()
        if not isinstance(d, dict):
            return opts
        if isinstance(d.get("quiet"), bool):
            opts.quiet = d["quiet"]
        if isinstance(d.get("tls"), bool):
            opts.tls = d["tls"]
        timeout = d.get("timeout")
        if timeout is not None and not isinstance(timeout, bool):
            try:
                opts.timeout = int(timeout)
            except (TypeError, ValueError):
                pass
        max_retry = d.get("maxRetry", d.get("max_retry"))
        if max_retry is not None and not isinstance(max_retry, bool):
            try:
                opts.max_retry = max(0, int(max_retry))
            except (TypeError, ValueError):
                pass
        if d.get("ca_pem"):
            opts.ca_pem = str(d["ca_pem"])
        return opts

    def to_dict(self) -> dict:
        return {
            "quiet": self.quiet,
            "timeout": self.timeout,
            "tls": self.tls,
            "maxRetry": self.max_retry,
        }


def apply_log_level(level_name: str = LOG_LEVEL):
    """Set the level of the `ledgerlink` logger tree from a level name."""
    if not level_name:
        return
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.getLogger("ledgerlink").setLevel(level)
