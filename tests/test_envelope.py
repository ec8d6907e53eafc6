from ledgerlink.envelope import RequestClock, RPCEnvelope
from ledgerlink.errors import InputValidationError, LedgerError, MalformedResponseError


def test_request_ids_are_unique_with_a_frozen_clock():
    clock = RequestClock(lambda: 1700000000.0)
    ids = [clock.next_id() for _ in range(5)]
    assert ids == [1700000000000 + i for i in range(5)]


def test_request_ids_never_go_backwards():
    times = iter([10.0, 9.0, 12.0])
    clock = RequestClock(lambda: next(times))
    assert [clock.next_id() for _ in range(3)] == [10000, 10001, 12000]


def test_deploy_envelope():
    env = RPCEnvelope.deploy("github.com/x/cc", "init", ["a", 1], None, 42)
    assert env.to_dict() == {
        "jsonrpc": "2.0",
        "method": "deploy",
        "params": {
            "type": 1,
            "chaincodeID": {"path": "github.com/x/cc"},
            "ctorMsg": {"function": "init", "args": ["a", "1"]},
            "secureContext": None,
        },
        "id": 42,
    }


def test_call_envelope_names_deployed_chaincode():
    body = RPCEnvelope.call("query", "abc123", "read", None, "bob", 7).to_dict()
    assert body["params"]["chaincodeID"] == {"name": "abc123"}
    assert body["params"]["ctorMsg"]["args"] == []
    assert body["params"]["secureContext"] == "bob"


def test_error_to_dict():
    err = MalformedResponseError("query() resp error", cause={"weird": True})
    assert err.to_dict() == {"name": "query() resp error", "kind": "MalformedResponse",
                             "code": 502, "details": {"weird": True}}
    assert InputValidationError("bad").status_code == 400
    assert LedgerError("x", cause=ValueError("v")).to_dict()["details"] == "v"
