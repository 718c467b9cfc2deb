""" The typed call surface over bitcoind's JSON-RPC API: one method per
remote command. Each method shapes its positional arguments (absent
optional arguments are always passed, as null, so that the daemon applies
its own defaults), converts amounts between int satoshis and the decimal
coin strings used on the wire, and decodes the result into a record from
`bhclient.rpc_types`. Every method returns a Deferred.

Arguments that cannot be represented on the wire fail with EncodingError
before anything is sent.
"""

from twisted.internet import defer

import bhbitcoin as btc
from bhbase import bintohex, get_log, is_hex_string
from bhclient.rpc_types import (
    decode_address_info, decode_amount, decode_block,
    decode_blockchain_info, decode_create_wallet, decode_descriptor_info,
    decode_dump_wallet, decode_finalized_psbt, decode_funded_psbt,
    decode_hex, decode_int, decode_list, decode_processed_psbt,
    decode_raw_transaction_verbose, decode_str, decode_txid, decode_unspent,
    decode_wallet_info, decode_wallet_transaction, Unspent)

log = get_log()

# read-only and polling calls, too noisy for the debug log
QUIET_METHODS = ('getblockcount', 'getblock', 'getrawtransaction',
                 'gettransaction', 'getwalletinfo', 'getblockchaininfo',
                 'generatetoaddress', 'listunspent')


def _check_txid(txid):
    if not is_hex_string(txid, 64):
        raise btc.EncodingError("Invalid txid: " + repr(txid))
    return txid


def _check_optional(value, kind, name):
    if value is None:
        return None
    if (kind is int and isinstance(value, bool)) or \
            not isinstance(value, kind):
        raise btc.EncodingError("Invalid value for {}: {}".format(
            name, repr(value)))
    return value


def _serialize_inputs(inputs):
    """ Candidate inputs as given to walletcreatefundedpsbt: Unspent
    records, or (txid, vout) pairs.
    """
    serialized = []
    for inp in inputs or []:
        if isinstance(inp, Unspent):
            txid, vout = inp.txid, inp.vout
        else:
            try:
                txid, vout = inp
            except (TypeError, ValueError):
                raise btc.EncodingError("Invalid input: " + repr(inp))
        _check_txid(txid)
        if isinstance(vout, bool) or not isinstance(vout, int) or vout < 0:
            raise btc.EncodingError("Invalid output index: " + repr(vout))
        serialized.append({"txid": txid, "vout": vout})
    return serialized


def _serialize_outputs(outputs):
    """ {address: sats} -> {address: "<coins>"}
    """
    if not isinstance(outputs, dict) or not outputs:
        raise btc.EncodingError("Outputs must be a non-empty "
                                "{address: amount} dict")
    serialized = {}
    for address, amount in outputs.items():
        if not isinstance(address, str) or not address:
            raise btc.EncodingError("Invalid output address: " +
                                    repr(address))
        serialized[address] = btc.sat_to_btc_str(amount)
    return serialized


def _serialize_transaction(tx):
    if isinstance(tx, str):
        if not is_hex_string(tx):
            raise btc.EncodingError("Transaction is not valid hex")
        return tx
    if isinstance(tx, bytes):
        return bintohex(tx)
    if isinstance(tx, (btc.CTransaction, btc.CMutableTransaction)):
        return bintohex(tx.serialize())
    raise btc.EncodingError("Cannot serialize transaction of type " +
                            type(tx).__name__)


class BitcoindRpc(object):
    """ Wallet-scoped calls take the wallet name as their first argument;
    it only selects the endpoint of that one call.
    """

    def __init__(self, jsonRpc):
        self.jsonRpc = jsonRpc

    def _rpc(self, method, args, wallet_name=None):
        """ Returns a Deferred firing with the undecoded result of an
        rpc call. Faults are passed up unchanged.
        """
        if method not in QUIET_METHODS:
            log.debug("rpc: {} {}{}".format(method, args,
                " (wallet: {})".format(wallet_name) if wallet_name else ""))
        return self.jsonRpc.call(method, args, wallet_name=wallet_name)

    # node-global calls

    @defer.inlineCallbacks
    def create_wallet(self, name, disable_private_keys=None, blank=None,
                      passphrase=None, avoid_reuse=None):
        if not isinstance(name, str):
            raise btc.EncodingError("Wallet name must be a string")
        res = yield self._rpc("createwallet", [
            name,
            _check_optional(disable_private_keys, bool,
                            "disable_private_keys"),
            _check_optional(blank, bool, "blank"),
            _check_optional(passphrase, str, "passphrase"),
            _check_optional(avoid_reuse, bool, "avoid_reuse")])
        return decode_create_wallet(res)

    @defer.inlineCallbacks
    def list_wallets(self):
        res = yield self._rpc("listwallets", [])
        return decode_list(res, decode_str, "wallet names")

    @defer.inlineCallbacks
    def get_blockchain_info(self):
        res = yield self._rpc("getblockchaininfo", [])
        return decode_blockchain_info(res)

    @defer.inlineCallbacks
    def network(self):
        """ Chain name as reported by the daemon: main, test,
        signet or regtest.
        """
        info = yield self.get_blockchain_info()
        return info.chain

    @defer.inlineCallbacks
    def median_time(self):
        info = yield self.get_blockchain_info()
        return info.median_time

    @defer.inlineCallbacks
    def get_block_count(self):
        res = yield self._rpc("getblockcount", [])
        return decode_int(res, "block count")

    @defer.inlineCallbacks
    def get_block(self, block_hash):
        if not is_hex_string(block_hash, 64):
            raise btc.EncodingError("Invalid block hash: " + repr(block_hash))
        res = yield self._rpc("getblock", [block_hash])
        return decode_block(res)

    @defer.inlineCallbacks
    def generate_to_address(self, nblocks, address, max_tries=None):
        if isinstance(nblocks, bool) or not isinstance(nblocks, int) or \
                nblocks < 0:
            raise btc.EncodingError("Invalid number of blocks: " +
                                    repr(nblocks))
        res = yield self._rpc("generatetoaddress", [
            nblocks, address, _check_optional(max_tries, int, "max_tries")])
        return decode_list(res, lambda h: decode_hex(h, "block hash", 64),
                           "block hashes")

    @defer.inlineCallbacks
    def derive_addresses(self, descriptor, range_=None):
        if range_ is not None:
            range_ = list(range_)
            if len(range_) != 2:
                raise btc.EncodingError("Range must be [begin, end]")
        res = yield self._rpc("deriveaddresses", [descriptor, range_])
        return decode_list(res, decode_str, "addresses")

    @defer.inlineCallbacks
    def get_descriptor_info(self, descriptor):
        res = yield self._rpc("getdescriptorinfo", [descriptor])
        return decode_descriptor_info(res)

    @defer.inlineCallbacks
    def get_raw_transaction(self, txid):
        res = yield self._rpc("getrawtransaction", [_check_txid(txid),
                                                    False])
        return btc.transaction_from_hex(decode_hex(res, "transaction"))

    @defer.inlineCallbacks
    def get_raw_transaction_verbose(self, txid):
        res = yield self._rpc("getrawtransaction", [_check_txid(txid), True])
        return decode_raw_transaction_verbose(res)

    @defer.inlineCallbacks
    def get_transaction_block_height(self, txid):
        """ Height of the block containing txid, or None if it is
        not yet confirmed. This is a read only, repeatable check.
        """
        info = yield self.get_raw_transaction_verbose(txid)
        if info.block_hash is None:
            return None
        block = yield self.get_block(info.block_hash)
        return block.height

    @defer.inlineCallbacks
    def join_psbts(self, psbts, wallet_name=None):
        if not psbts or not all(isinstance(p, str) for p in psbts):
            raise btc.EncodingError("join_psbts needs a list of base64 "
                                    "PSBT strings")
        res = yield self._rpc("joinpsbts", [list(psbts)],
                              wallet_name=wallet_name)
        return decode_str(res, "joined psbt")

    @defer.inlineCallbacks
    def finalize_psbt(self, psbt, extract=None, wallet_name=None):
        res = yield self._rpc("finalizepsbt", [
            psbt, _check_optional(extract, bool, "extract")],
            wallet_name=wallet_name)
        return decode_finalized_psbt(res)

    @defer.inlineCallbacks
    def send_raw_transaction(self, tx, wallet_name=None):
        res = yield self._rpc("sendrawtransaction",
                              [_serialize_transaction(tx)],
                              wallet_name=wallet_name)
        return decode_txid(res)

    # wallet calls

    @defer.inlineCallbacks
    def get_wallet_info(self, wallet_name):
        res = yield self._rpc("getwalletinfo", [], wallet_name=wallet_name)
        return decode_wallet_info(res)

    @defer.inlineCallbacks
    def get_new_address(self, wallet_name, label=None, address_type=None):
        res = yield self._rpc("getnewaddress", [
            _check_optional(label, str, "label"),
            _check_optional(address_type, str, "address_type")],
            wallet_name=wallet_name)
        return decode_str(res, "address")

    @defer.inlineCallbacks
    def get_address_info(self, wallet_name, address):
        res = yield self._rpc("getaddressinfo", [address],
                              wallet_name=wallet_name)
        return decode_address_info(res)

    @defer.inlineCallbacks
    def get_balance(self, wallet_name, min_conf=None,
                    include_watch_only=None, avoid_reuse=None):
        # the first argument is the long deprecated account, which
        # must be "*" if anything follows it
        res = yield self._rpc("getbalance", [
            "*", _check_optional(min_conf, int, "min_conf"),
            _check_optional(include_watch_only, bool, "include_watch_only"),
            _check_optional(avoid_reuse, bool, "avoid_reuse")],
            wallet_name=wallet_name)
        return decode_amount(res, "balance")

    @defer.inlineCallbacks
    def set_hd_seed(self, wallet_name, new_keypool=None,
                    wif_private_key=None):
        yield self._rpc("sethdseed", [
            _check_optional(new_keypool, bool, "new_keypool"),
            _check_optional(wif_private_key, str, "wif_private_key")],
            wallet_name=wallet_name)

    @defer.inlineCallbacks
    def send_to_address(self, wallet_name, address, amount):
        """ amount is in sats; it is sent as a decimal coin string.
        """
        res = yield self._rpc("sendtoaddress", [
            address, btc.sat_to_btc_str(amount)], wallet_name=wallet_name)
        return decode_txid(res)

    @defer.inlineCallbacks
    def get_transaction(self, wallet_name, txid):
        res = yield self._rpc("gettransaction", [_check_txid(txid)],
                              wallet_name=wallet_name)
        return decode_wallet_transaction(res)

    @defer.inlineCallbacks
    def dump_wallet(self, wallet_name, filename):
        res = yield self._rpc("dumpwallet", [str(filename)],
                              wallet_name=wallet_name)
        return decode_dump_wallet(res)

    @defer.inlineCallbacks
    def list_unspent(self, wallet_name, min_conf=None, max_conf=None,
                     addresses=None, include_unsafe=None):
        """ Returns the wallet's unspent outputs, in the order the
        daemon returned them.
        """
        if addresses is not None:
            addresses = list(addresses)
        res = yield self._rpc("listunspent", [
            _check_optional(min_conf, int, "min_conf"),
            _check_optional(max_conf, int, "max_conf"),
            addresses,
            _check_optional(include_unsafe, bool, "include_unsafe")],
            wallet_name=wallet_name)
        return decode_list(res, decode_unspent, "unspent outputs")

    @defer.inlineCallbacks
    def fund_psbt(self, wallet_name, inputs, outputs, locktime=None,
                  options=None, bip32derivs=None):
        """ Creates a PSBT paying `outputs` ({address: sats}) and lets
        the wallet add inputs (on top of `inputs`, which may be empty)
        and, if needed, one change output. The position of the change
        output is reported as `change_position` (-1 if none was added)
        and must not be assumed stable across calls.
        """
        res = yield self._rpc("walletcreatefundedpsbt", [
            _serialize_inputs(inputs), _serialize_outputs(outputs),
            _check_optional(locktime, int, "locktime"),
            _check_optional(options, dict, "options"),
            _check_optional(bip32derivs, bool, "bip32derivs")],
            wallet_name=wallet_name)
        return decode_funded_psbt(res)

    @defer.inlineCallbacks
    def wallet_process_psbt(self, wallet_name, psbt, sign=None,
                            sighash_type=None, bip32derivs=None):
        res = yield self._rpc("walletprocesspsbt", [
            psbt, _check_optional(sign, bool, "sign"),
            _check_optional(sighash_type, str, "sighash_type"),
            _check_optional(bip32derivs, bool, "bip32derivs")],
            wallet_name=wallet_name)
        return decode_processed_psbt(res)
