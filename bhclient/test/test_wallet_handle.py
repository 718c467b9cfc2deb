#! /usr/bin/env python
'''Tests of opening (and creating if needed) wallets, and of the calls
bound to a wallet handle.'''

from twisted.internet import defer
from twisted.trial import unittest

from bhclient import (BitcoindRpc, JsonRpcConnectionError,
                      JsonRpcResponseError, Wallet, open_wallet)
from commontest import FakeBitcoind


class TrialTestOpenWallet(unittest.TestCase):

    def setUp(self):
        self.daemon = FakeBitcoind()
        self.rpc = BitcoindRpc(self.daemon)

    @defer.inlineCallbacks
    def test_creates_missing_wallet_once(self):
        w = yield open_wallet(self.rpc, "alice")
        self.assertIsInstance(w, Wallet)
        self.assertEqual(w.name, "alice")
        self.assertEqual(len(self.daemon.calls_to("createwallet")), 1)
        w2 = yield open_wallet(self.rpc, "alice")
        self.assertEqual(w2.name, "alice")
        # the second open finds the wallet and does not create it again
        self.assertEqual(len(self.daemon.calls_to("createwallet")), 1)
        self.assertEqual(len(self.daemon.calls_to("getwalletinfo")), 2)
        info = yield w2.info()
        self.assertEqual(info.wallet_name, "alice")

    @defer.inlineCallbacks
    def test_create_arguments_are_passed(self):
        yield open_wallet(self.rpc, "watcher", disable_private_keys=True)
        self.assertEqual(self.daemon.calls_to("createwallet")[0][1],
                         ["watcher", True, None, None, None])

    @defer.inlineCallbacks
    def test_connection_failure_propagates(self):
        def down(method, params, wallet_name=None):
            return defer.fail(JsonRpcConnectionError("connection refused"))
        self.daemon.call = down
        with self.assertRaises(JsonRpcConnectionError):
            yield open_wallet(self.rpc, "alice")

    @defer.inlineCallbacks
    def test_decode_failure_propagates(self):
        self.daemon.wallets["alice"] = {"txcount": 0}
        self.daemon.rpc_getwalletinfo = lambda params, wallet_name: {}
        with self.assertRaises(JsonRpcResponseError):
            yield open_wallet(self.rpc, "alice")
        self.assertEqual(self.daemon.calls_to("createwallet"), [])


class TrialTestWalletCalls(unittest.TestCase):

    @defer.inlineCallbacks
    def setUp(self):
        self.daemon = FakeBitcoind()
        self.rpc = BitcoindRpc(self.daemon)
        self.alice = yield open_wallet(self.rpc, "alice")
        self.bob = yield open_wallet(self.rpc, "bob")

    @defer.inlineCallbacks
    def test_calls_use_their_own_wallet_endpoint(self):
        self.daemon.calls = []
        yield defer.gatherResults([self.alice.new_address(),
                                   self.bob.new_address(),
                                   self.alice.info(),
                                   self.bob.info()])
        self.assertEqual(sorted((c[0], c[2]) for c in self.daemon.calls), [
            ("getnewaddress", "alice"), ("getnewaddress", "bob"),
            ("getwalletinfo", "alice"), ("getwalletinfo", "bob")])

    @defer.inlineCallbacks
    def test_psbt_calls_are_bound(self):
        addr = yield self.bob.new_address()
        funded = yield self.alice.fund_psbt([], {addr: 1000})
        processed = yield self.alice.process_psbt(funded.psbt)
        self.assertTrue(processed.complete)
        finalized = yield self.alice.finalize_psbt(processed.psbt)
        self.assertTrue(finalized.complete)
        txid = yield self.alice.send_raw_transaction(finalized.hex)
        self.assertEqual(len(txid), 64)
        wallets = [c[2] for c in self.daemon.calls
                   if c[0] in ("walletcreatefundedpsbt", "walletprocesspsbt",
                               "finalizepsbt", "sendrawtransaction")]
        self.assertEqual(wallets, ["alice"] * 4)
