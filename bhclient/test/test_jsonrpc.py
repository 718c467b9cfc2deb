#! /usr/bin/env python
'''Tests of the JSON-RPC envelope and the wallet-scoped transport.'''

import base64
import json
from decimal import Decimal

import pytest
from twisted.internet import defer, error, reactor
from twisted.internet.protocol import Factory, Protocol
from twisted.trial import unittest

import bhbitcoin as btc
from bhclient import (JsonRpc, JsonRpcError, JsonRpcConnectionError,
                      JsonRpcResponseError, route, build_request,
                      parse_response)
from commontest import (FakeAgent, StalledResponse, TruncatedResponse,
                        rpc_fault, rpc_result)

BASE = "http://127.0.0.1:18443"


@pytest.mark.parametrize('wallet_name, expected', [
    (None, BASE),
    ("alice", BASE + "/wallet/alice"),
    ("", BASE + "/wallet/"),
    ("my wallet", BASE + "/wallet/my%20wallet"),
    ("a/b", BASE + "/wallet/a%2Fb"),
])
def test_route(wallet_name, expected):
    assert route(BASE, wallet_name) == expected
    assert route(BASE + "/", wallet_name) == expected


def test_route_rejects_non_string_wallet():
    with pytest.raises(btc.EncodingError):
        route(BASE, 5)


def test_build_request_keeps_null_positions():
    req = build_request("getbalance", ["*", None, True, None], 7)
    assert req == {"jsonrpc": "1.0", "id": 7, "method": "getbalance",
                   "params": ["*", None, True, None]}
    assert json.loads(json.dumps(req))["params"] == ["*", None, True, None]
    assert build_request("getblockcount", None, 1)["params"] == []


@pytest.mark.parametrize('method', ["", None, 5])
def test_build_request_bad_method(method):
    with pytest.raises(btc.EncodingError):
        build_request(method, [], 1)


def test_parse_response():
    assert parse_response(rpc_result(5, 1), 1) == 5
    assert parse_response(rpc_result(None, 1), 1) is None
    amount = parse_response(b'{"result": 0.1, "error": null, "id": 3}', 3)
    assert isinstance(amount, Decimal)
    assert amount == Decimal("0.1")


def test_parse_response_fault():
    with pytest.raises(JsonRpcError) as e:
        parse_response(rpc_fault(-18, "Requested wallet does not exist", 2),
                       2)
    assert e.value.code == -18
    assert e.value.message == "Requested wallet does not exist"


@pytest.mark.parametrize('body', [
    b"not json",
    b"[1, 2]",
    b'{"result": 1}',
    b'{"error": null}',
    b'{"result": null, "error": {"code": "x", "message": "m"}, "id": 1}',
    b'{"result": null, "error": {"code": true, "message": "m"}, "id": 1}',
    b'{"result": null, "error": "bad", "id": 1}',
    b'{"result": 1, "error": null, "id": 2}',
])
def test_parse_response_malformed(body):
    with pytest.raises(JsonRpcResponseError):
        parse_response(body, 1)


class TrialTestJsonRpc(unittest.TestCase):

    def setUp(self):
        self.agent = FakeAgent()
        self.rpc = JsonRpc(BASE, "user", "pass", agent=self.agent)

    @defer.inlineCallbacks
    def test_node_and_wallet_endpoints(self):
        yield self.rpc.call("getblockcount", [])
        yield self.rpc.call("getbalance", ["*", None], wallet_name="alice")
        yield self.rpc.call("getbalance", ["*", None], wallet_name="bob")
        urls = [r[1] for r in self.agent.requests]
        self.assertEqual(urls, [BASE, BASE + "/wallet/alice",
                                BASE + "/wallet/bob"])
        methods = [r[0] for r in self.agent.requests]
        self.assertEqual(methods, [b"POST"] * 3)

    @defer.inlineCallbacks
    def test_envelope_and_auth(self):
        res = yield self.rpc.call("getnewaddress", [None, "bech32"],
                                  wallet_name="w")
        # the echo responder returns the params as sent
        self.assertEqual(res, [None, "bech32"])
        _, _, headers, request = self.agent.requests[0]
        self.assertEqual(request["jsonrpc"], "1.0")
        self.assertEqual(request["method"], "getnewaddress")
        self.assertEqual(request["params"], [None, "bech32"])
        auth = headers.getRawHeaders(b"Authorization")[0]
        self.assertEqual(auth, b"Basic " + base64.b64encode(b"user:pass"))

    @defer.inlineCallbacks
    def test_request_ids_are_distinct(self):
        yield defer.gatherResults([self.rpc.call("getblockcount", [])
                                   for _ in range(5)])
        ids = [r[3]["id"] for r in self.agent.requests]
        self.assertEqual(len(set(ids)), 5)

    @defer.inlineCallbacks
    def test_fault_carries_context(self):
        self.agent.responder = lambda url, req: (
            404, rpc_fault(-18, "Requested wallet does not exist or is not "
                           "loaded", req["id"]))
        with self.assertRaises(JsonRpcError) as cm:
            yield self.rpc.call("getwalletinfo", [], wallet_name="nope")
        self.assertEqual(cm.exception.code, -18)
        self.assertEqual(cm.exception.method, "getwalletinfo")
        self.assertEqual(cm.exception.wallet_name, "nope")
        self.assertIn("wallet: nope", str(cm.exception))

    @defer.inlineCallbacks
    def test_server_error_status_with_fault(self):
        self.agent.responder = lambda url, req: (
            500, rpc_fault(-4, "Insufficient funds", req["id"]))
        with self.assertRaises(JsonRpcError) as cm:
            yield self.rpc.call("walletcreatefundedpsbt", [[], {}],
                                wallet_name="w")
        self.assertEqual(cm.exception.message, "Insufficient funds")

    @defer.inlineCallbacks
    def test_auth_failure(self):
        self.agent.responder = lambda url, req: (401, b"")
        with self.assertRaises(JsonRpcConnectionError):
            yield self.rpc.call("getblockcount", [])

    @defer.inlineCallbacks
    def test_unexpected_status(self):
        self.agent.responder = lambda url, req: (503, b"busy")
        with self.assertRaises(JsonRpcConnectionError) as cm:
            yield self.rpc.call("getblockcount", [])
        self.assertEqual(cm.exception.method, "getblockcount")

    @defer.inlineCallbacks
    def test_malformed_body(self):
        self.agent.responder = lambda url, req: (200, b"<html>")
        with self.assertRaises(JsonRpcResponseError):
            yield self.rpc.call("getblockcount", [])

    @defer.inlineCallbacks
    def test_transport_failure(self):
        def refuse(url, req):
            raise error.ConnectionRefusedError()
        self.agent.responder = refuse
        with self.assertRaises(JsonRpcConnectionError):
            yield self.rpc.call("getblockcount", [])

    @defer.inlineCallbacks
    def test_truncated_body(self):
        self.agent.response_class = TruncatedResponse
        self.agent.responder = lambda url, req: (
            200, rpc_result(5, req["id"])[:10])
        with self.assertRaises(JsonRpcConnectionError) as cm:
            yield self.rpc.call("getblockcount", [], wallet_name="w")
        self.assertEqual(cm.exception.method, "getblockcount")
        self.assertEqual(cm.exception.wallet_name, "w")

    @defer.inlineCallbacks
    def test_timeout_while_reading_body(self):
        self.agent.response_class = StalledResponse
        rpc = JsonRpc(BASE, "user", "pass", timeout=0.1, agent=self.agent)
        with self.assertRaises(JsonRpcConnectionError) as cm:
            yield rpc.call("getblockcount", [])
        self.assertIn("timed out", str(cm.exception))
        self.assertEqual(cm.exception.method, "getblockcount")

    @defer.inlineCallbacks
    def test_unencodable_params_fail_before_sending(self):
        for params in ([float("nan")], [object()], [Decimal("1.0")]):
            with self.assertRaises(btc.EncodingError):
                yield self.rpc.call("sendtoaddress", params,
                                    wallet_name="w")
        self.assertEqual(self.agent.requests, [])


class TrialTestJsonRpcConnection(unittest.TestCase):

    @defer.inlineCallbacks
    def test_connection_refused(self):
        # find a port with nothing listening on it
        port = reactor.listenTCP(0, Factory.forProtocol(Protocol),
                                 interface="127.0.0.1")
        portnum = port.getHost().port
        yield port.stopListening()
        rpc = JsonRpc("http://127.0.0.1:{}".format(portnum), "u", "p",
                      timeout=10)
        with self.assertRaises(JsonRpcConnectionError) as cm:
            yield rpc.call("getblockcount", [])
        self.assertEqual(cm.exception.method, "getblockcount")
