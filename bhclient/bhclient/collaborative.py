""" Collaborative funding of a single shared output by several wallets
on the same daemon, via PSBTs:

fund -> join -> reconstruct -> sign -> finalize -> broadcast

Each party funds its own contribution to the shared address. Joining
the funded PSBTs gives one transaction with every party's inputs and
change, but with one copy of the shared output per party; before
signing, those copies are replaced by a single output carrying the
agreed total. The parties then sign in turn (in the order they were
given) and the result is finalized and broadcast.

Funding, signing and broadcasting are left entirely to the daemon;
nothing here is persisted.
"""

from twisted.internet import defer

import bhbitcoin as btc
from bhbase import get_log
from bhclient.jsonrpc import JsonRpcResponseError

log = get_log()


class FundingError(Exception):
    """ At least one party could not fund its contribution. The first
    party failure is kept as `failure`.
    """

    def __init__(self, wallet_name, failure):
        self.wallet_name = wallet_name
        self.failure = failure
        super().__init__("Funding failed for wallet {}: {}".format(
            wallet_name, failure.getErrorMessage()))


class SigningIncompleteError(Exception):
    """ After every party has processed the PSBT, the daemon still
    could not finalize it. `psbt` is the last (partially signed) PSBT,
    so that further signatures can be collected elsewhere.
    """

    def __init__(self, psbt):
        self.psbt = psbt
        super().__init__("PSBT is not completely signed after all "
                         "parties processed it")


class SessionStateError(Exception):
    pass


class CollaborativePSBT(object):
    """ State for one collaborative funding attempt. `parties` is an
    ordered list of (Wallet, contribution in sats); the order is the
    signing order, and the first party is used for the calls that are
    not wallet specific (join, finalize, broadcast).
    """

    # enum such that progress can be reported
    BH_CP_NONE = 0
    BH_CP_FUNDED = 1
    BH_CP_FUNDING_FAILED = 2
    BH_CP_JOINED = 3
    BH_CP_RECONSTRUCTED = 4
    BH_CP_SIGNED = 5
    BH_CP_SIGNING_INCOMPLETE = 6
    BH_CP_FINALIZED = 7
    BH_CP_BROADCAST = 8

    state_names = {BH_CP_NONE: "none", BH_CP_FUNDED: "funded",
                   BH_CP_FUNDING_FAILED: "funding failed",
                   BH_CP_JOINED: "joined",
                   BH_CP_RECONSTRUCTED: "reconstructed",
                   BH_CP_SIGNED: "signed",
                   BH_CP_SIGNING_INCOMPLETE: "signing incomplete",
                   BH_CP_FINALIZED: "finalized",
                   BH_CP_BROADCAST: "broadcast"}

    def __init__(self, parties, shared_address, agreed_total=None):
        if not parties:
            raise ValueError("At least one party is required")
        self.parties = list(parties)
        for wallet, contribution in self.parties:
            # validates the amount before anything is sent
            btc.sat_to_btc(contribution)
            if contribution <= 0:
                raise btc.EncodingError("Contribution of {} must be "
                    "positive, got: {}".format(wallet.name, contribution))
        self.shared_address = shared_address
        self.shared_script = btc.address_to_script(shared_address)
        if agreed_total is None:
            agreed_total = sum(c for _, c in self.parties)
        btc.sat_to_btc(agreed_total)
        self.agreed_total = agreed_total
        self.state = self.BH_CP_NONE
        self.funded = None
        self.joined_psbt = None
        self.reconstructed_psbt = None
        self.signed_psbt = None
        self.final_tx_hex = None
        self.txid = None

    @property
    def coordinator(self):
        return self.parties[0][0]

    def state_name(self):
        return self.state_names[self.state]

    def _require_state(self, state, step):
        if self.state != state:
            raise SessionStateError("Cannot {} in state: {}".format(
                step, self.state_name()))

    def fund(self):
        """ Every party funds its contribution concurrently. Fires with
        the list of FundedPsbt records, in party order.
        """
        try:
            self._require_state(self.BH_CP_NONE, "fund")
        except SessionStateError:
            return defer.fail()
        ds = []
        for wallet, contribution in self.parties:
            log.info("Funding {} to {} from wallet {}".format(
                btc.amount_to_str(contribution), self.shared_address,
                wallet.name))
            ds.append(wallet.fund_psbt([], {self.shared_address:
                                            contribution}))
        d = defer.gatherResults(ds, consumeErrors=True)
        d.addCallbacks(self._funded, self._funding_failed)
        return d

    def _funded(self, funded):
        self.funded = funded
        self.state = self.BH_CP_FUNDED
        for (wallet, _), f in zip(self.parties, funded):
            log.debug("Wallet {} funded with fee {}, change position {}"
                      .format(wallet.name, btc.amount_to_str(f.fee),
                              f.change_position))
        return funded

    def _funding_failed(self, failure):
        self.state = self.BH_CP_FUNDING_FAILED
        first = failure.value
        wallet_name = self.parties[first.index][0].name
        log.warning("Collaborative funding failed, wallet {}: {}".format(
            wallet_name, first.subFailure.getErrorMessage()))
        raise FundingError(wallet_name, first.subFailure)

    @defer.inlineCallbacks
    def join(self):
        self._require_state(self.BH_CP_FUNDED, "join")
        joined = yield self.coordinator.join_psbts(
            [f.psbt for f in self.funded])
        self.joined_psbt = joined
        self.state = self.BH_CP_JOINED
        return joined

    def reconstruct(self):
        """ Not asynchronous: replaces the per-party copies of the
        shared output with one output of the agreed total, in a new
        unsigned PSBT. The number of copies must equal the number of
        parties, else PSBTReconstructionError.
        """
        self._require_state(self.BH_CP_JOINED, "reconstruct")
        new_psbt = btc.reconstruct_psbt_base64(
            self.joined_psbt, self.shared_address, self.agreed_total,
            expected_copies=len(self.parties))
        self.reconstructed_psbt = new_psbt
        self.state = self.BH_CP_RECONSTRUCTED
        log.info("Reconstructed PSBT with shared output of " +
                 btc.amount_to_str(self.agreed_total))
        log.debug("Unsigned PSBT:\n" + btc.human_readable_psbt(new_psbt))
        return new_psbt

    @defer.inlineCallbacks
    def sign(self):
        self._require_state(self.BH_CP_RECONSTRUCTED, "sign")
        psbt = self.reconstructed_psbt
        for wallet, _ in self.parties:
            processed = yield wallet.process_psbt(psbt)
            psbt = processed.psbt
            log.info("Wallet {} processed the PSBT, complete: {}".format(
                wallet.name, processed.complete))
        self.signed_psbt = psbt
        self.state = self.BH_CP_SIGNED
        return psbt

    @defer.inlineCallbacks
    def finalize(self):
        self._require_state(self.BH_CP_SIGNED, "finalize")
        finalized = yield self.coordinator.finalize_psbt(self.signed_psbt)
        if not finalized.complete:
            self.state = self.BH_CP_SIGNING_INCOMPLETE
            raise SigningIncompleteError(finalized.psbt or self.signed_psbt)
        if finalized.hex is None:
            raise JsonRpcResponseError(
                "finalizepsbt reported complete without a transaction"
            ).add_context("finalizepsbt", self.coordinator.name)
        self.final_tx_hex = finalized.hex
        self.state = self.BH_CP_FINALIZED
        return finalized.hex

    @defer.inlineCallbacks
    def broadcast(self):
        self._require_state(self.BH_CP_FINALIZED, "broadcast")
        txid = yield self.coordinator.send_raw_transaction(self.final_tx_hex)
        self.txid = txid
        self.state = self.BH_CP_BROADCAST
        log.info("Broadcast collaborative transaction: " + txid)
        return txid

    @defer.inlineCallbacks
    def run(self):
        """ All steps in order; fires with the txid of the broadcast
        transaction.
        """
        yield self.fund()
        yield self.join()
        self.reconstruct()
        yield self.sign()
        yield self.finalize()
        txid = yield self.broadcast()
        return txid
