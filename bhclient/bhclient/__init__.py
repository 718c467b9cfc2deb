import logging

from .jsonrpc import (JsonRpcError, JsonRpcConnectionError,
                      JsonRpcResponseError, JsonRpc, route, build_request,
                      parse_response)
from .rpc_types import (CreateWalletResult, ScanIdle, ScanInProgress,
                        WalletInfo, Unspent, AddressInfo, BlockchainInfo,
                        BlockInfo, RawTransactionInfo, WalletTransaction,
                        DescriptorInfo, DumpWalletResult, FundedPsbt,
                        ProcessedPsbt, FinalizedPsbt)
from .bitcoindrpc import BitcoindRpc
from .wallet import Wallet, open_wallet
from .collaborative import (CollaborativePSBT, FundingError,
                            SigningIncompleteError, SessionStateError)
from .harness import RegtestHarness
from .configure import (load_test_config, load_program_config, bh_single,
                        get_network, get_rpc_instance,
                        get_bitcoin_rpc_credentials)

# Set default logging handler to avoid "No handler found" warnings.
logging.getLogger(__name__).addHandler(logging.NullHandler())
