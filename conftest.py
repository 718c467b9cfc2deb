import os
import re
import subprocess
from shlex import split
from time import sleep
from typing import Any, Tuple

import pytest


def get_bitcoind_version(bitcoind_path: str) -> Tuple[int, int]:
    """
    This utility function returns the bitcoind version number
    as a tuple in the form (major, minor)
    """
    version = local_command(f'{bitcoind_path} -version')
    if version.returncode != 0:
        raise RuntimeError(version.stdout.decode('utf-8'))
    version_string = version.stdout.split(b'\n')[0]
    version_tuple = re.match(
        br'.*v(?P<major>\d+)\.(?P<minor>\d+)', version_string).groups()
    major, minor = map(lambda x: int(x), version_tuple)
    return major, minor


def local_command(command: str, bg: bool = False):
    """
    Execute command in a new process.
    """
    command = split(command)
    if bg:
        # using subprocess.PIPE seems to cause problems
        FNULL = open(os.devnull, 'w')
        return subprocess.Popen(command,
                                stdout=FNULL,
                                stderr=subprocess.STDOUT,
                                close_fds=True)
    # in case of foreground execution, we can use the output; if not
    # it doesn't matter
    return subprocess.run(command, stdout=subprocess.PIPE,
                          stderr=subprocess.STDOUT)


def root_path() -> str:
    """
    Returns the directory in which this file is contained.
    """
    return os.path.dirname(os.path.realpath(__file__))


def btc_conf_test_path() -> str:
    """
    Returns default Bitcoin conf test path.
    """
    return os.path.join(root_path(), 'test/bitcoin.conf')


def pytest_addoption(parser: Any) -> None:
    """
    Pytest initialization hook to register argparse-style options.
    """
    parser.addoption("--btcroot", action="store", default=None,
                     help="the fully qualified path to the directory containing " +
                          "the bitcoin binaries, e.g. /home/user/bitcoin/bin/; " +
                          "if not given, a regtest bitcoind must already be running")
    parser.addoption("--btcconf", action="store",
                     default=btc_conf_test_path(),
                     help="the fully qualified path to the location of the " +
                          "bitcoin configuration file you use for testing, e.g. " +
                          "/home/user/.bitcoin/bitcoin.conf")
    parser.addoption("--btcpwd",
                     action="store",
                     help="the RPC password for your test bitcoin instance; " +
                          "tests against a live bitcoind are skipped without it")
    parser.addoption("--btcuser",
                     action="store",
                     default='bitcoinrpc',
                     help="the RPC username for your test bitcoin instance (default=bitcoinrpc)")
    parser.addoption("--rpcport",
                     type=int,
                     action="store",
                     default=18443,
                     help="the RPC port of your test bitcoin instance (default=18443)")


@pytest.fixture(scope="session")
def setup_regtest_bitcoind(pytestconfig):
    """
    Returns the (url, user, password) of the regtest bitcoind to test
    against, starting it (and stopping it afterwards) if --btcroot
    is given. Skips if no RPC password was given.
    """
    rpcuser = pytestconfig.getoption("--btcuser")
    rpcpassword = pytestconfig.getoption("--btcpwd")
    rpcport = pytestconfig.getoption("--rpcport")
    if not rpcpassword:
        pytest.skip("needs a regtest bitcoind, see --btcpwd")
    url = f"http://127.0.0.1:{rpcport}"
    bitcoin_path = pytestconfig.getoption("--btcroot")
    if bitcoin_path is None:
        yield url, rpcuser, rpcpassword
        return

    conf = pytestconfig.getoption("--btcconf")
    bitcoind_path = os.path.join(bitcoin_path, "bitcoind")
    bitcoincli_path = os.path.join(bitcoin_path, "bitcoin-cli")
    start_cmd = f'{bitcoind_path} -regtest -daemon -conf={conf}'
    root_cmd = (f'{bitcoincli_path} -regtest -rpcport={rpcport} '
                f'-rpcuser={rpcuser} -rpcpassword={rpcpassword}')

    # determine bitcoind version
    try:
        bitcoind_version = get_bitcoind_version(bitcoind_path)
    except RuntimeError as exc:
        pytest.exit(f"Cannot setup tests, bitcoind failing.\n{exc}")

    if bitcoind_version[0] >= 26:
        start_cmd += ' -allowignoredconf=1'
    local_command(start_cmd, bg=True)
    cpe = local_command(f'{root_cmd} -rpcwait getblockcount')
    if cpe.returncode != 0:
        pytest.exit(f"Cannot setup tests, bitcoin-cli failing.\n{cpe.stdout.decode('utf-8')}")
    yield url, rpcuser, rpcpassword
    # shut down bitcoind
    local_command(f'{root_cmd} stop')
    sleep(1)
    # note, it is better to clean out ~/.bitcoin/regtest but too
    # dangerous to automate it here perhaps
