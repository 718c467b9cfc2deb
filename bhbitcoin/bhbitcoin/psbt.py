""" Decoding and rebuilding of PSBTs produced by independent funding
calls. The client treats PSBTs as opaque base64 blobs everywhere except
here, where a joined PSBT is decoded, its output list is corrected and a
fresh unsigned PSBT is encoded from the corrected transaction.
Note that this is a thin layer over bitcointx.core.psbt; the BIP174
vectors themselves are tested there, not here.
"""

import json
from typing import List, Optional

from bhbase import bintohex, bintolehex, hextobin
from bitcointx.core import (CMutableTransaction, CMutableOutPoint,
                            CMutableTxIn, CMutableTxOut, CTransaction)
from bitcointx.core.psbt import PartiallySignedTransaction
from bitcointx.core.script import CScript
from bitcointx.wallet import CCoinAddress, CCoinAddressError

from .amount import EncodingError, sat_to_btc_str


class PSBTReconstructionError(Exception):
    """ A joined PSBT does not have the structure the collaborative
    flow requires (e.g. the shared output does not appear exactly
    once per funding party).
    """


def psbt_from_base64(psbt_b64: str) -> PartiallySignedTransaction:
    if not isinstance(psbt_b64, str):
        raise EncodingError("PSBT must be a base64 string")
    try:
        return PartiallySignedTransaction.from_base64(psbt_b64)
    except Exception as e:
        # bitcointx raises several distinct types for malformed input
        raise PSBTReconstructionError("Could not decode PSBT: " + repr(e))


def address_to_script(address: str) -> CScript:
    """ The scriptPubKey for an address string of the currently
    selected chain (see `select_chain_params`).
    """
    try:
        return CCoinAddress(address).to_scriptPubKey()
    except CCoinAddressError as e:
        raise EncodingError("Invalid address " + repr(address) + ": " +
                            str(e))


def transaction_from_hex(txhex: str) -> CTransaction:
    try:
        return CTransaction.deserialize(hextobin(txhex))
    except Exception as e:
        raise EncodingError("Could not deserialize transaction: " + repr(e))


def deduplicate_shared_output(vout, shared_script: CScript,
                              agreed_total: int,
                              expected_copies: Optional[int] = None
                              ) -> List[CMutableTxOut]:
    """ Given the outputs of a joined transaction, which contain one copy
    of the shared output per funding call, returns a new output list in
    which every other output is kept unchanged and in order, and the copies
    are replaced by a single output paying `agreed_total` sats to
    `shared_script`, at the position of the first copy.

    The copies are indistinguishable once joined, so the amount is never
    inferred from them; the caller passes the total the parties agreed on.

    If `expected_copies` is given (normally the number of funding parties),
    a different number of outputs paying `shared_script` is an error; this
    is how a party's change output colliding with the shared address shows
    up.
    """
    if isinstance(agreed_total, bool) or not isinstance(agreed_total, int):
        raise EncodingError("Shared output total must be int sats")
    if agreed_total <= 0:
        raise EncodingError("Shared output total must be positive")
    # validate range
    sat_to_btc_str(agreed_total)

    new_vout = []
    copies = 0
    for out in vout:
        if out.scriptPubKey == shared_script:
            copies += 1
            if copies == 1:
                new_vout.append(CMutableTxOut(agreed_total, shared_script))
            continue
        new_vout.append(CMutableTxOut(out.nValue, out.scriptPubKey))

    if copies == 0:
        raise PSBTReconstructionError(
            "Shared output not found in joined transaction")
    if expected_copies is not None and copies != expected_copies:
        raise PSBTReconstructionError(
            "Found {} outputs paying the shared script, expected {}; a change "
            "address may coincide with the shared address".format(
                copies, expected_copies))
    return new_vout


def reconstruct_shared_output(psbt: PartiallySignedTransaction,
                              shared_script: CScript, agreed_total: int,
                              expected_copies: Optional[int] = None
                              ) -> PartiallySignedTransaction:
    """ Returns a new, unsigned PSBT built from the unsigned transaction
    of `psbt` with its shared output deduplicated. Inputs, version and
    locktime are carried over; per-input metadata is not, the wallets fill
    it back in when they process the PSBT.
    """
    utx = psbt.unsigned_tx
    vin = [CMutableTxIn(prevout=CMutableOutPoint(inp.prevout.hash,
                                                 inp.prevout.n),
                        nSequence=inp.nSequence) for inp in utx.vin]
    vout = deduplicate_shared_output(utx.vout, shared_script, agreed_total,
                                     expected_copies=expected_copies)
    tx = CMutableTransaction(vin, vout, nLockTime=utx.nLockTime,
                             nVersion=utx.nVersion)
    return PartiallySignedTransaction(unsigned_tx=tx)


def reconstruct_psbt_base64(psbt_b64: str, shared_address: str,
                            agreed_total: int,
                            expected_copies: Optional[int] = None) -> str:
    new_psbt = reconstruct_shared_output(
        psbt_from_base64(psbt_b64), address_to_script(shared_address),
        agreed_total, expected_copies=expected_copies)
    return new_psbt.to_base64()


def human_readable_transaction(tx, jsonified=True):
    """ Given a transaction object, output a human
    readable json-formatted string (suitable for terminal
    or log output) containing its inputs and outputs.
    If `jsonified` is False, the dict is returned, instead
    of the json string.
    """
    outdict = {}
    outdict["txid"] = bintolehex(tx.GetTxid())
    outdict["nLockTime"] = tx.nLockTime
    outdict["nVersion"] = tx.nVersion
    outdict["inputs"] = [human_readable_input(inp) for inp in tx.vin]
    outdict["outputs"] = [human_readable_output(out) for out in tx.vout]
    if not jsonified:
        return outdict
    return json.dumps(outdict, indent=4)


def human_readable_input(txinput):
    return {"outpoint": bintolehex(txinput.prevout.hash) + ":" +
            str(txinput.prevout.n),
            "nSequence": txinput.nSequence}


def human_readable_output(txoutput):
    outdict = {}
    outdict["value_sats"] = txoutput.nValue
    outdict["scriptPubKey"] = bintohex(txoutput.scriptPubKey)
    try:
        addr = CCoinAddress.from_scriptPubKey(txoutput.scriptPubKey)
        outdict["address"] = str(addr)
    except CCoinAddressError:
        pass # non standard script
    return outdict


def human_readable_psbt(psbt_b64: str) -> str:
    return human_readable_transaction(psbt_from_base64(psbt_b64).unsigned_tx)
