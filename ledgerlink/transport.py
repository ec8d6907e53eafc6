"""
Request/response exchange with a peer's REST endpoint.

The core only needs one primitive: send a method + path + optional JSON
body to a Target and get back (status_code, decoded payload), or a
TransportError carrying the status code and cause. HttpTransport is the
requests-based implementation; tests substitute their own.
"""
import json
import logging

import requests

from ledgerlink import tls
from ledgerlink.config import NetworkOptions
from ledgerlink.errors import TransportError
from ledgerlink.models import Target

log = logging.getLogger("ledgerlink.transport")

_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class Transport:
    """Contract every transport implements."""

    def request(self, method: str, target: Target, path: str,
                body: dict | None = None) -> tuple[int, object]:
        raise NotImplementedError

    def close(self):
        pass


class HttpTransport(Transport):
    """
    Blocking JSON-over-HTTP transport on a shared requests.Session.

    Timeouts surface as status 408, connection failures as 500, non-2xx
    answers as their own status with the decoded body as the cause.
    """

    def __init__(self, options: NetworkOptions | None = None):
        self.options = options or NetworkOptions()
        self._session = requests.Session()
        self._session.headers.update(_HEADERS)
        self._session.verify = tls.verify_setting(self.options.ca_pem)

    def _log(self, msg, *args):
        log.log(logging.DEBUG if self.options.quiet else logging.INFO, msg, *args)

    def request(self, method, target, path, body=None):
        url = f"{target.base_url}{path}"
        self._log("%s %s %s", method, url, json.dumps(_redact(body)) if body is not None else "")
        try:
            resp = self._session.request(
                method, url,
                json=body,
                timeout=self.options.timeout / 1000.0,
            )
        except requests.Timeout as exc:
            raise TransportError("request timed out", 408, str(exc)) from exc
        except requests.RequestException as exc:
            raise TransportError("request failed", 500, str(exc)) from exc

        payload = _decode(resp)
        self._log("%s %s -> %s", method, url, resp.status_code)
        if not resp.ok:
            raise TransportError(f"peer answered {resp.status_code}", resp.status_code, payload)
        return resp.status_code, payload

    def close(self):
        self._session.close()


_SECRET_KEYS = ("enrollSecret",)


def _redact(body):
    if not isinstance(body, dict) or not any(k in body for k in _SECRET_KEYS):
        return body
    return {k: ("***" if k in _SECRET_KEYS else v) for k, v in body.items()}


def _decode(resp: requests.Response):
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text
