"""Capability registry plus the invoke/query dispatchers."""
from ledgerlink.errors import InputValidationError, MalformedResponseError, TransportError


def test_binding_same_name_twice_keeps_one_callable(chaincode):
    reg = chaincode.registry
    first = reg.invoke["write"]

    again = reg.bind_invoke("write")
    reg.bind_all(["write"], ["read", "read"])

    assert again is first
    assert list(reg.invoke) == ["write", "transfer"]
    assert list(reg.query) == ["read"]
    assert chaincode.descriptor.invoke_names == ["write", "transfer"]
    assert chaincode.descriptor.query_names == ["read"]


def test_same_name_may_be_both_invoke_and_query(chaincode):
    chaincode.registry.bind_query("write")
    assert "write" in chaincode.registry.invoke
    assert "write" in chaincode.registry.query


def test_invoke_posts_envelope_to_selected_peer(chaincode, transport):
    transport.reply("POST", "/chaincode", {"result": {"status": "OK", "message": "tx-1"}})

    res = chaincode.registry.invoke["write"](["abc", 7]).result(timeout=5)

    assert res.error is None
    assert res.value == {"result": {"status": "OK", "message": "tx-1"}}
    (req,) = transport.calls("POST", "/chaincode")
    body = req["body"]
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "invoke"
    assert body["params"]["type"] == 1
    assert body["params"]["chaincodeID"] == {"name": "cc01"}
    assert body["params"]["ctorMsg"] == {"function": "write", "args": ["abc", "7"]}
    assert body["params"]["secureContext"] is None
    assert isinstance(body["id"], int)
    assert req["target"].host == "10.0.0.1"
    assert req["target"].port == 7051


def test_invoke_success_queues_one_pending_action(chaincode, transport):
    transport.reply("POST", "/chaincode", {"result": {"message": "ok"}})

    chaincode.invoke("write", ["a"]).result(timeout=5)
    chaincode.invoke("transfer", ["a", "b"]).result(timeout=5)

    assert len(chaincode.actions) == 2


def test_invoke_failure_reports_error_and_queues_nothing(chaincode, transport):
    transport.fail("POST", "/chaincode", status=503, cause="peer busy")
    seen = []

    res = chaincode.registry.invoke["write"](["a"], cb=lambda e, v: seen.append((e, v))).result(timeout=5)

    assert isinstance(res.error, TransportError)
    assert res.error.kind == "InvokeFailed"
    assert res.error.status_code == 503
    assert res.error.cause == "peer busy"
    assert res.value is None
    assert seen == [(res.error, None)]
    assert len(chaincode.actions) == 0
    assert len(transport.calls("POST", "/chaincode")) == 1


def test_identity_falls_back_to_selected_peer(chaincode, transport):
    transport.reply("POST", "/chaincode", {"result": {"message": "ok"}})
    chaincode.directory.remember_identity(0, "user_type1_0")
    chaincode.directory.remember_identity(1, "user_type1_1")

    chaincode.invoke("write", ["a"]).result(timeout=5)
    chaincode.invoke("write", ["a"], identity="explicit").result(timeout=5)
    chaincode.switch_peer(1)
    chaincode.invoke("write", ["a"]).result(timeout=5)

    contexts = [r["body"]["params"]["secureContext"] for r in transport.calls("POST", "/chaincode")]
    assert contexts == ["user_type1_0", "explicit", "user_type1_1"]


def test_query_surfaces_result_message(chaincode, transport):
    transport.reply("POST", "/chaincode", {"result": {"status": "OK", "message": "42"}})

    res = chaincode.registry.query["read"](["abc"]).result(timeout=5)

    assert res == (None, "42")
    assert transport.requests[0]["body"]["method"] == "query"


def test_query_falls_back_to_ok_field(chaincode, transport):
    transport.reply("POST", "/chaincode", {"OK": "legacy-value"})

    assert chaincode.query("read", ["abc"]).result(timeout=5).value == "legacy-value"


def test_query_with_unknown_shape_is_malformed(chaincode, transport):
    for payload in ({"something": "else"}, {"result": {"status": "OK"}}, None, "text"):
        transport.reply("POST", "/chaincode", payload)

        res = chaincode.query("read", ["abc"]).result(timeout=5)

        assert isinstance(res.error, MalformedResponseError)
        assert res.error.status_code == 502
        assert res.error.kind == "MalformedResponse"


def test_query_never_queues_pending_action(chaincode, transport):
    transport.reply("POST", "/chaincode", {"result": {"message": "1"}})
    chaincode.query("read", ["abc"]).result(timeout=5)
    assert len(chaincode.actions) == 0


def test_query_transport_failure(chaincode, transport):
    transport.fail("POST", "/chaincode", status=500)
    res = chaincode.query("read", ["x"]).result(timeout=5)
    assert res.error.kind == "QueryFailed"
    assert res.error.status_code == 500


def test_undeclared_function_is_rejected_without_io(chaincode, transport):
    res = chaincode.invoke("delete", ["a"]).result(timeout=5)

    assert isinstance(res.error, InputValidationError)
    assert res.error.status_code == 400
    assert transport.requests == []
