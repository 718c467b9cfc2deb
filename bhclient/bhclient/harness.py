""" Helpers for driving a regtest daemon in tests and demos: a miner
wallet that holds the block rewards, coin minting for other wallets,
and an optional background block generator.
Starting and stopping the daemon itself is left to the caller.
"""

from twisted.internet import defer, task

import bhbitcoin as btc
from bhbase import get_log
from bhclient.jsonrpc import JsonRpcConnectionError
from bhclient.wallet import open_wallet

log = get_log()

# coinbase outputs are spendable after this many confirmations
COINBASE_MATURITY = 100


class RegtestHarness(object):

    def __init__(self, rpc, miner_wallet_name="miner_wallet", clock=None):
        self.rpc = rpc
        self.miner_wallet_name = miner_wallet_name
        self.miner = None
        self.miner_address = None
        self.clock = clock
        self.mining_loop = None

    @defer.inlineCallbacks
    def init(self, spendable_quantity=1):
        """ Opens (creating if needed) the miner wallet and mines enough
        blocks to it that `spendable_quantity` coinbase outputs are
        mature. Fires with the list of block hashes.
        """
        if isinstance(spendable_quantity, bool) or \
                not isinstance(spendable_quantity, int) or \
                spendable_quantity < 0:
            raise btc.EncodingError("Invalid spendable quantity: " +
                                    repr(spendable_quantity))
        self.miner = yield open_wallet(self.rpc, self.miner_wallet_name)
        self.miner_address = yield self.miner.new_address()
        nblocks = COINBASE_MATURITY + 1 + spendable_quantity
        log.info("Mining {} blocks to {}".format(nblocks,
                                                 self.miner_address))
        hashes = yield self.rpc.generate_to_address(nblocks,
                                                    self.miner_address)
        return hashes

    def new_wallet(self, name, **create_args):
        return open_wallet(self.rpc, name, **create_args)

    def _require_init(self):
        if self.miner is None:
            raise RuntimeError("Harness not initialised, call init() first")

    def tick_forward_chain(self, n=1):
        self._require_init()
        return self.rpc.generate_to_address(n, self.miner_address)

    @defer.inlineCallbacks
    def mint(self, address, amount):
        """ Sends `amount` sats from the miner wallet to `address` and
        mines a block to confirm it. Fires with the txid.
        """
        self._require_init()
        txid = yield self.miner.send_to_address(address, amount)
        log.debug("Minted {} to {}: {}".format(btc.amount_to_str(amount),
                                               address, txid))
        yield self.tick_forward_chain(1)
        return txid

    @defer.inlineCallbacks
    def _mine_one(self):
        try:
            yield self.tick_forward_chain(1)
        except JsonRpcConnectionError:
            # can happen if the daemon is shut down at the end
            # of a test run
            log.warning("Failed to generate a block, looks like the "
                        "bitcoin daemon has been shut down. Ignoring.")

    def start_mining(self, interval):
        """ Mines one block every `interval` seconds until stop_mining.
        """
        self._require_init()
        if self.mining_loop is not None and self.mining_loop.running:
            return
        self.mining_loop = task.LoopingCall(self._mine_one)
        if self.clock is not None:
            self.mining_loop.clock = self.clock
        d = self.mining_loop.start(interval, now=False)
        d.addErrback(self._mining_failed)

    def _mining_failed(self, failure):
        # the loop is stopped once a call fails
        log.error("Background block generation stopped: " +
                  failure.getErrorMessage())

    def stop_mining(self):
        if self.mining_loop is not None and self.mining_loop.running:
            self.mining_loop.stop()
        self.mining_loop = None
