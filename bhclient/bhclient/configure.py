import io
import os
import sys

from configparser import ConfigParser, NoOptionError

import bhbitcoin as btc
from bhbase import (get_log, debug_silence, set_logging_level, bhprint,
                    set_logging_color, BH_APP_NAME, EXIT_FAILURE)
from bhclient.bitcoindrpc import BitcoindRpc
from bhclient.jsonrpc import JsonRpc

log = get_log()


class AttributeDict(object):
    """
    A class to convert a nested Dictionary into an object with key-values
    accessibly using attribute notation (AttributeDict.attribute) instead of
    key notation (Dict["key"]).
    """

    def __init__(self, **entries):
        self.add_entries(**entries)

    def add_entries(self, **entries):
        for key, value in entries.items():
            if isinstance(value, dict):
                self.__dict__[key] = AttributeDict(**value)
            else:
                self.__dict__[key] = value

    def __getitem__(self, key):
        """
        Provides dict-style access to attributes
        """
        return getattr(self, key)


global_singleton = AttributeDict()
global_singleton.APPNAME = BH_APP_NAME
global_singleton.datadir = None
global_singleton.rpc = None
global_singleton.debug_silence = debug_silence
global_singleton.config = ConfigParser(strict=False)
#This is reset to a full path after load_program_config call
global_singleton.config_location = 'bitcoinharness.cfg'


def bh_single():
    return global_singleton

required_options = {'BLOCKCHAIN': ['network', 'rpc_host', 'rpc_port'],
                    'LOGGING': ['console_log_level', 'color'],
                    'HARNESS': ['miner_wallet_name', 'block_interval_sec']}

# python-bitcointx chain parameters for each configurable network
chain_params_for_network = {"mainnet": "bitcoin",
                            "testnet": "bitcoin/testnet",
                            "signet": "bitcoin/signet",
                            "regtest": "bitcoin/regtest"}

defaultconfig = \
    """
[BLOCKCHAIN]
# options: mainnet, testnet, signet, regtest
network = regtest
rpc_host = localhost
# 8332 for mainnet, 18332 for testnet, 38332 for signet, 18443 for regtest
rpc_port = 18443
rpc_user = bitcoin
rpc_password = password
# if set, credentials are read from the daemon's .cookie file instead
# of rpc_user / rpc_password
rpc_cookie_file =
# seconds before an unanswered call fails; 0 for no timeout
rpc_timeout_sec = 60

[LOGGING]
# Set the log level for the output to the terminal/console
# Possible choices: DEBUG / INFO / WARNING / ERROR
console_log_level = INFO

# Use color-coded log messages to help distinguish log levels?:
color = true

[HARNESS]
# regtest only: the wallet holding the block rewards used to fund
# other wallets
miner_wallet_name = miner_wallet
# interval of the optional background block generator, in seconds
block_interval_sec = 5
"""


def get_network():
    """Returns network name"""
    return global_singleton.config.get("BLOCKCHAIN", "network")


def _check_required_options(config):
    for s in required_options:
        if not config.has_section(s):
            raise Exception(
                "Config file does not contain the required section: " + s)
        for o in required_options[s]:
            if not config.has_option(s, o):
                raise Exception("Config file does not contain the required "
                                "option '{}' in section '{}'.".format(o, s))
    network = config.get("BLOCKCHAIN", "network")
    if network not in chain_params_for_network:
        raise ValueError("Invalid network in config: " + network)


def _apply_logging_config(config):
    loglevel = config.get("LOGGING", "console_log_level")
    try:
        set_logging_level(loglevel)
    except (TypeError, ValueError):
        bhprint("Failed to set logging level, must be DEBUG, INFO, "
                "WARNING, ERROR", "error")

    # Logs to the console are color-coded if user chooses
    set_logging_color(config.get("LOGGING", "color") == "true")


def load_program_config(config_path=""):
    """ Reads `bitcoinharness.cfg` in the directory `config_path`
    (the current directory if not given) over the default settings.
    If there is no such file, a default one is written there and the
    process exits, so that the user can review it.
    """
    global_singleton.config.read_file(io.StringIO(defaultconfig))
    if not config_path:
        config_path = "."
    global_singleton.datadir = config_path
    if not os.path.exists(global_singleton.datadir):
        os.makedirs(global_singleton.datadir)
    global_singleton.config_location = os.path.join(
        global_singleton.datadir, "bitcoinharness.cfg")

    loadedFiles = global_singleton.config.read(
        [global_singleton.config_location])
    # Create default config file if not found
    if len(loadedFiles) != 1:
        with open(global_singleton.config_location, "w") as configfile:
            configfile.write(defaultconfig)
        bhprint("Created a new `bitcoinharness.cfg`. Please review and "
                "adopt the settings and restart.", "info")
        sys.exit(EXIT_FAILURE)

    _check_required_options(global_singleton.config)
    _apply_logging_config(global_singleton.config)
    global_singleton.rpc = get_rpc_instance(global_singleton.config)


def load_test_config(**overrides):
    """ Default settings, with each keyword argument overriding the
    option of that name (in whichever section holds it). Nothing is
    read from or written to disk.
    """
    config = ConfigParser(strict=False)
    config.read_file(io.StringIO(defaultconfig))
    for name, value in overrides.items():
        for section in config.sections():
            if config.has_option(section, name):
                config.set(section, name, str(value))
                break
        else:
            raise ValueError("Unknown config option: " + name)
    _check_required_options(config)
    global_singleton.config = config
    _apply_logging_config(config)
    global_singleton.rpc = get_rpc_instance(config)
    return config


##########################################################
## Returns a tuple (rpc_user: String, rpc_pass: String) ##
##########################################################
def get_bitcoin_rpc_credentials(_config):
    filepath = None

    try:
        filepath = _config.get("BLOCKCHAIN", "rpc_cookie_file")
    except NoOptionError:
        pass

    if filepath:
        if os.path.isfile(filepath):
            with open(filepath, 'r') as f:
                rpc_credentials_string = f.read().strip()
            user, sep, password = rpc_credentials_string.partition(":")
            if not sep:
                raise ValueError("Invalid cookie auth credentials file "
                                 "contents")
            return user, password
        else:
            raise ValueError("Invalid cookie auth credentials file location")
    else:
        rpc_user = _config.get("BLOCKCHAIN", "rpc_user")
        rpc_password = _config.get("BLOCKCHAIN", "rpc_password")
        if not (rpc_user and rpc_password):
            raise ValueError("Invalid RPC auth credentials `rpc_user` and "
                             "`rpc_password`")
        return rpc_user, rpc_password


def get_rpc_instance(_config, agent=None):
    """ Returns a BitcoindRpc for the configured daemon, and selects
    the matching python-bitcointx chain parameters (so that addresses
    are encoded and decoded for that network).
    """
    network = _config.get("BLOCKCHAIN", "network")
    btc.select_chain_params(chain_params_for_network[network])
    rpc_host = _config.get("BLOCKCHAIN", "rpc_host")
    rpc_port = _config.getint("BLOCKCHAIN", "rpc_port")
    rpc_user, rpc_password = get_bitcoin_rpc_credentials(_config)
    timeout = _config.getfloat("BLOCKCHAIN", "rpc_timeout_sec",
                               fallback=0)
    url = "http://{}:{}".format(rpc_host, rpc_port)
    log.debug("Using bitcoind RPC at {} ({})".format(url, network))
    jsonRpc = JsonRpc(url, rpc_user, rpc_password, timeout=timeout or None,
                      agent=agent)
    return BitcoindRpc(jsonRpc)
