"""
Named access to a chaincode's declared functions.

Callers declare the invoke and query function names their chaincode
exports; the registry maps each name to a BoundFunction that forwards to
the client's generic invoke(name, ...) / query(name, ...) dispatchers:

    cc = client.load_chaincode({"invoke": ["write"], "query": ["read"], ...})
    cc.invoke["write"](["key", "value"])
    cc.query["read"](["key"], cb=lambda err, value: ...)
"""
import logging
import threading
from typing import Callable

from ledgerlink.models import ChaincodeDescriptor

log = logging.getLogger("ledgerlink.chaincode")

Dispatcher = Callable[..., object]


class BoundFunction:
    def __init__(self, kind: str, name: str, dispatch: Dispatcher):
        self.kind = kind
        self.name = name
        self._dispatch = dispatch

    def __call__(self, args=None, identity: str | None = None, cb=None):
        return self._dispatch(self.name, args or [], identity=identity, cb=cb)

    def __repr__(self):
        return f"<BoundFunction {self.kind}:{self.name}>"


class CapabilityRegistry:
    """
    invoke/query lookup tables for one client.

    Binding a name twice is a no-op that returns the existing callable.
    Declared names are mirrored into the descriptor so they persist.
    """

    def __init__(self, descriptor: ChaincodeDescriptor,
                 invoke_dispatch: Dispatcher, query_dispatch: Dispatcher):
        self.descriptor = descriptor
        self.invoke: dict[str, BoundFunction] = {}
        self.query: dict[str, BoundFunction] = {}
        self._dispatch = {"invoke": invoke_dispatch, "query": query_dispatch}
        self._lock = threading.Lock()

    def _bind(self, kind: str, name: str) -> BoundFunction:
        table = self.invoke if kind == "invoke" else self.query
        names = self.descriptor.invoke_names if kind == "invoke" else self.descriptor.query_names
        with self._lock:
            existing = table.get(name)
            if existing is not None:
                log.info("Skip, %s function %s already exists", kind, name)
                return existing
            fn = BoundFunction(kind, name, self._dispatch[kind])
            table[name] = fn
            if name not in names:
                names.append(name)
        log.info("Found cc %s function: %s", kind, name)
        return fn

    def bind_invoke(self, name: str) -> BoundFunction:
        return self._bind("invoke", name)

    def bind_query(self, name: str) -> BoundFunction:
        return self._bind("query", name)

    def bind_all(self, invoke_names=(), query_names=()):
        for name in invoke_names or ():
            self.bind_invoke(str(name))
        for name in query_names or ():
            self.bind_query(str(name))

    def has(self, kind: str, name: str) -> bool:
        table = self.invoke if kind == "invoke" else self.query
        return name in table

    def reset(self, descriptor: ChaincodeDescriptor):
        with self._lock:
            self.descriptor = descriptor
            self.invoke.clear()
            self.query.clear()
