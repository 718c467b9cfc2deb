""" Typed records for bitcoind RPC results, and the strict decoders that
build them from the generic JSON payload. A missing required field, or a
field of the wrong JSON type, is a JsonRpcResponseError: it means the
daemon speaks a different protocol version than we expect, and is never
silently defaulted.

Amounts are converted to int satoshis as they are decoded.
"""

from collections import namedtuple
from decimal import Decimal

import bhbitcoin as btc
from bhbase import is_hex_string
from bhclient.jsonrpc import JsonRpcResponseError

_MISSING = object()


def _get(obj, key, kind, optional=False, default=None):
    if not isinstance(obj, dict):
        raise JsonRpcResponseError("Expected a JSON object, got: " +
                                   type(obj).__name__)
    value = obj.get(key, _MISSING)
    if value is _MISSING or value is None:
        if optional:
            return default
        raise JsonRpcResponseError("Missing field in response: " + key)
    if kind is int and isinstance(value, bool):
        raise JsonRpcResponseError("Field {} is not an integer".format(key))
    if not isinstance(value, kind):
        raise JsonRpcResponseError("Field {} has unexpected type {}".format(
            key, type(value).__name__))
    return value


def decode_amount(value, name="amount"):
    """ Numeric (or string) coin amount from the wire -> int sats.
    """
    if isinstance(value, bool) or \
            not isinstance(value, (int, Decimal, str)):
        raise JsonRpcResponseError("Field {} is not an amount: {}".format(
            name, repr(value)))
    try:
        return btc.btc_to_sat(value)
    except btc.EncodingError as e:
        raise JsonRpcResponseError("Field {} is not an amount: {}".format(
            name, e))


def _get_amount(obj, key, optional=False):
    value = _get(obj, key, (int, Decimal, str), optional=optional)
    if value is None:
        return None
    return decode_amount(value, key)


def decode_hex(value, name, length=None):
    if not is_hex_string(value, length):
        raise JsonRpcResponseError("Field {} is not valid hex: {}".format(
            name, repr(value)))
    return value


def decode_txid(value, name="txid"):
    return decode_hex(value, name, length=64)


def decode_str(value, name="result"):
    if not isinstance(value, str):
        raise JsonRpcResponseError("{} is not a string: {}".format(
            name, repr(value)))
    return value


def decode_int(value, name="result"):
    if isinstance(value, bool) or not isinstance(value, int):
        raise JsonRpcResponseError("{} is not an integer: {}".format(
            name, repr(value)))
    return value


def decode_list(value, item_decoder, name="result"):
    if not isinstance(value, list):
        raise JsonRpcResponseError("{} is not a list".format(name))
    return [item_decoder(v) for v in value]


CreateWalletResult = namedtuple('CreateWalletResult', ['name', 'warning'])


def decode_create_wallet(obj):
    return CreateWalletResult(name=_get(obj, "name", str),
                              warning=_get(obj, "warning", str,
                                           optional=True, default=""))


# The `scanning` field of getwalletinfo is either `false` or a progress
# record; it is mapped to one of these two types.
class ScanIdle(namedtuple('ScanIdle', [])):
    is_scanning = False


class ScanInProgress(namedtuple('ScanInProgress', ['duration', 'progress'])):
    is_scanning = True


def decode_scanning(value):
    if isinstance(value, bool):
        if value:
            # older daemons never send `true`; a scan without a
            # progress record is not a shape we understand.
            raise JsonRpcResponseError("Unexpected scanning value: true")
        return ScanIdle()
    if isinstance(value, dict):
        progress = _get(value, "progress", (int, Decimal))
        return ScanInProgress(duration=_get(value, "duration", int),
                              progress=Decimal(progress))
    raise JsonRpcResponseError("Unexpected scanning value: " + repr(value))


WalletInfo = namedtuple('WalletInfo', [
    'wallet_name', 'wallet_version', 'tx_count', 'keypool_oldest',
    'keypool_size_hd_internal', 'unlocked_until', 'pay_tx_fee',
    'hd_seed_id', 'private_keys_enabled', 'avoid_reuse', 'scanning'])


def decode_wallet_info(obj):
    return WalletInfo(
        wallet_name=_get(obj, "walletname", str),
        wallet_version=_get(obj, "walletversion", int),
        tx_count=_get(obj, "txcount", int),
        # absent on descriptor wallets
        keypool_oldest=_get(obj, "keypoololdest", int, optional=True),
        keypool_size_hd_internal=_get(obj, "keypoolsize_hd_internal", int,
                                      optional=True),
        unlocked_until=_get(obj, "unlocked_until", int, optional=True),
        pay_tx_fee=_get_amount(obj, "paytxfee"),
        hd_seed_id=_get(obj, "hdseedid", str, optional=True),
        private_keys_enabled=_get(obj, "private_keys_enabled", bool),
        avoid_reuse=_get(obj, "avoid_reuse", bool),
        scanning=decode_scanning(_get(obj, "scanning", (bool, dict))))


Unspent = namedtuple('Unspent', [
    'txid', 'vout', 'address', 'label', 'script_pub_key', 'amount',
    'confirmations', 'redeem_script', 'witness_script', 'spendable',
    'solvable', 'reused', 'desc', 'safe'])


def decode_unspent(obj):
    return Unspent(
        txid=decode_txid(_get(obj, "txid", str)),
        vout=_get(obj, "vout", int),
        address=_get(obj, "address", str, optional=True),
        label=_get(obj, "label", str, optional=True, default=""),
        script_pub_key=decode_hex(_get(obj, "scriptPubKey", str),
                                  "scriptPubKey"),
        amount=_get_amount(obj, "amount"),
        confirmations=_get(obj, "confirmations", int),
        redeem_script=_get(obj, "redeemScript", str, optional=True),
        witness_script=_get(obj, "witnessScript", str, optional=True),
        spendable=_get(obj, "spendable", bool),
        solvable=_get(obj, "solvable", bool),
        reused=_get(obj, "reused", bool, optional=True),
        desc=_get(obj, "desc", str, optional=True),
        safe=_get(obj, "safe", bool))


AddressInfo = namedtuple('AddressInfo', [
    'address', 'script_pub_key', 'is_mine', 'solvable', 'desc',
    'is_watch_only', 'is_script', 'is_witness', 'witness_version',
    'witness_program', 'pubkey', 'is_change', 'timestamp', 'hd_key_path',
    'hd_seed_id', 'hd_master_fingerprint', 'labels'])


def decode_address_info(obj):
    return AddressInfo(
        address=_get(obj, "address", str),
        script_pub_key=decode_hex(_get(obj, "scriptPubKey", str),
                                  "scriptPubKey"),
        is_mine=_get(obj, "ismine", bool),
        solvable=_get(obj, "solvable", bool, optional=True),
        desc=_get(obj, "desc", str, optional=True),
        is_watch_only=_get(obj, "iswatchonly", bool),
        is_script=_get(obj, "isscript", bool),
        is_witness=_get(obj, "iswitness", bool),
        witness_version=_get(obj, "witness_version", int, optional=True),
        witness_program=_get(obj, "witness_program", str, optional=True),
        pubkey=_get(obj, "pubkey", str, optional=True),
        is_change=_get(obj, "ischange", bool),
        timestamp=_get(obj, "timestamp", int, optional=True),
        hd_key_path=_get(obj, "hdkeypath", str, optional=True),
        hd_seed_id=_get(obj, "hdseedid", str, optional=True),
        hd_master_fingerprint=_get(obj, "hdmasterfingerprint", str,
                                   optional=True),
        labels=_get(obj, "labels", list, optional=True, default=[]))


BlockchainInfo = namedtuple('BlockchainInfo', ['chain', 'blocks',
                                               'median_time'])


def decode_blockchain_info(obj):
    return BlockchainInfo(chain=_get(obj, "chain", str),
                          blocks=_get(obj, "blocks", int),
                          median_time=_get(obj, "mediantime", int))


BlockInfo = namedtuple('BlockInfo', ['hash', 'height'])


def decode_block(obj):
    return BlockInfo(hash=decode_hex(_get(obj, "hash", str), "hash", 64),
                     height=_get(obj, "height", int))


RawTransactionInfo = namedtuple('RawTransactionInfo', [
    'txid', 'hex', 'block_hash', 'confirmations'])


def decode_raw_transaction_verbose(obj):
    block_hash = _get(obj, "blockhash", str, optional=True)
    if block_hash is not None:
        decode_hex(block_hash, "blockhash", 64)
    return RawTransactionInfo(
        txid=decode_txid(_get(obj, "txid", str)),
        hex=decode_hex(_get(obj, "hex", str), "hex"),
        block_hash=block_hash,
        confirmations=_get(obj, "confirmations", int, optional=True,
                           default=0))


WalletTransaction = namedtuple('WalletTransaction', [
    'txid', 'amount', 'fee', 'confirmations', 'block_hash', 'hex'])


def decode_wallet_transaction(obj):
    return WalletTransaction(
        txid=decode_txid(_get(obj, "txid", str)),
        amount=_get_amount(obj, "amount"),
        # only present for transactions sent by this wallet
        fee=_get_amount(obj, "fee", optional=True),
        confirmations=_get(obj, "confirmations", int),
        block_hash=_get(obj, "blockhash", str, optional=True),
        hex=decode_hex(_get(obj, "hex", str), "hex"))


DescriptorInfo = namedtuple('DescriptorInfo', [
    'descriptor', 'checksum', 'is_range', 'is_solvable',
    'has_private_keys'])


def decode_descriptor_info(obj):
    return DescriptorInfo(
        descriptor=_get(obj, "descriptor", str),
        checksum=_get(obj, "checksum", str),
        is_range=_get(obj, "isrange", bool),
        is_solvable=_get(obj, "issolvable", bool),
        has_private_keys=_get(obj, "hasprivatekeys", bool))


DumpWalletResult = namedtuple('DumpWalletResult', ['filename'])


def decode_dump_wallet(obj):
    return DumpWalletResult(filename=_get(obj, "filename", str))


FundedPsbt = namedtuple('FundedPsbt', ['psbt', 'fee', 'change_position'])


def decode_funded_psbt(obj):
    return FundedPsbt(psbt=_get(obj, "psbt", str),
                      fee=_get_amount(obj, "fee"),
                      change_position=_get(obj, "changepos", int))


ProcessedPsbt = namedtuple('ProcessedPsbt', ['psbt', 'complete'])


def decode_processed_psbt(obj):
    return ProcessedPsbt(psbt=_get(obj, "psbt", str),
                         complete=_get(obj, "complete", bool))


class FinalizedPsbt(namedtuple('FinalizedPsbt', ['psbt', 'hex',
                                                 'complete'])):
    """ Result of finalizepsbt: `hex` is only set once the transaction
    is complete (and extraction was requested), `psbt` only while it
    is not.
    """

    def transaction(self):
        if self.hex is None:
            raise JsonRpcResponseError("finalizepsbt returned no transaction")
        return btc.transaction_from_hex(self.hex)


def decode_finalized_psbt(obj):
    complete = _get(obj, "complete", bool)
    txhex = _get(obj, "hex", str, optional=True)
    if txhex is not None:
        decode_hex(txhex, "hex")
    psbt = _get(obj, "psbt", str, optional=True)
    if txhex is None and psbt is None:
        raise JsonRpcResponseError("finalizepsbt returned neither hex "
                                   "nor psbt")
    return FinalizedPsbt(psbt=psbt, hex=txhex, complete=complete)
