""" A named wallet on the daemon, bound to a shared BitcoindRpc.
The handle holds no state beyond the name: every operation is a call
to the daemon's wallet endpoint.
"""

from twisted.internet import defer

from bhbase import get_log
from bhclient.jsonrpc import JsonRpcError

log = get_log()


class Wallet(object):

    def __init__(self, name, rpc):
        self.name = name
        self.rpc = rpc

    def __repr__(self):
        return "Wallet({!r})".format(self.name)

    def info(self):
        return self.rpc.get_wallet_info(self.name)

    def new_address(self, label=None, address_type=None):
        return self.rpc.get_new_address(self.name, label=label,
                                        address_type=address_type)

    def address_info(self, address):
        return self.rpc.get_address_info(self.name, address)

    def balance(self, min_conf=None, include_watch_only=None,
                avoid_reuse=None):
        """ Confirmed balance in sats.
        """
        return self.rpc.get_balance(self.name, min_conf=min_conf,
                                    include_watch_only=include_watch_only,
                                    avoid_reuse=avoid_reuse)

    def set_hd_seed(self, new_keypool=None, wif_private_key=None):
        return self.rpc.set_hd_seed(self.name, new_keypool=new_keypool,
                                    wif_private_key=wif_private_key)

    def send_to_address(self, address, amount):
        return self.rpc.send_to_address(self.name, address, amount)

    def send_raw_transaction(self, tx):
        return self.rpc.send_raw_transaction(tx, wallet_name=self.name)

    def get_raw_transaction(self, txid):
        return self.rpc.get_raw_transaction(txid)

    def get_transaction(self, txid):
        return self.rpc.get_transaction(self.name, txid)

    def list_unspent(self, min_conf=None, max_conf=None, addresses=None,
                     include_unsafe=None):
        return self.rpc.list_unspent(self.name, min_conf=min_conf,
                                     max_conf=max_conf, addresses=addresses,
                                     include_unsafe=include_unsafe)

    def dump(self, filename):
        return self.rpc.dump_wallet(self.name, filename)

    def fund_psbt(self, inputs, outputs, locktime=None, options=None,
                  bip32derivs=None):
        return self.rpc.fund_psbt(self.name, inputs, outputs,
                                  locktime=locktime, options=options,
                                  bip32derivs=bip32derivs)

    def join_psbts(self, psbts):
        return self.rpc.join_psbts(psbts, wallet_name=self.name)

    def process_psbt(self, psbt, sign=None, sighash_type=None,
                     bip32derivs=None):
        return self.rpc.wallet_process_psbt(self.name, psbt, sign=sign,
                                            sighash_type=sighash_type,
                                            bip32derivs=bip32derivs)

    def finalize_psbt(self, psbt, extract=None):
        return self.rpc.finalize_psbt(psbt, extract=extract,
                                      wallet_name=self.name)

    def transaction_block_height(self, txid):
        """ Block height at which txid confirmed, None if it has not.
        """
        return self.rpc.get_transaction_block_height(txid)


@defer.inlineCallbacks
def open_wallet(rpc, name, **create_args):
    """ Returns a Deferred firing with a Wallet handle for `name`,
    creating the wallet on the daemon first if getwalletinfo reports
    an error for it (wallet not found, or not loaded). Any other failure,
    including a connection failure, is passed up: it does not tell us
    whether the wallet exists.
    """
    try:
        yield rpc.get_wallet_info(name)
    except JsonRpcError as e:
        log.debug("Wallet {} not available ({}), creating it.".format(
            name, e.message))
        result = yield rpc.create_wallet(name, **create_args)
        if result.warning:
            log.warning("createwallet {}: {}".format(name, result.warning))
        log.info("Created wallet: " + result.name)
    return Wallet(name, rpc)
