from bhbitcoin.amount import *
from bhbitcoin.psbt import *
from bitcointx import select_chain_params
from bitcointx.core import (b2x, b2lx, CTransaction, CMutableTransaction,
                            CMutableTxIn, CMutableTxOut, CMutableOutPoint)
from bitcointx.core.script import CScript, OP_0
from bitcointx.wallet import CCoinAddress
from bitcointx.core.psbt import PartiallySignedTransaction
