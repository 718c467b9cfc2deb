
import logging
import binascii

# bitcoin-harness version
BH_CORE_VERSION = '0.1.0'

BH_APP_NAME = "bitcoinharness"

# Exit status codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_ARGERROR = 2

from chromalog.log import (
    ColorizingStreamHandler,
    ColorizingFormatter,
)
from chromalog.colorizer import GenericColorizer, MonochromaticColorizer
from colorama import Fore, Back, Style

# magic; importing e.g. 'info' actually instantiates
# that as a function that uses the color map
# defined below. ( noqa because flake doesn't understand)
from chromalog.mark.helpers.simple import (  # noqa: F401
    debug,
    info,
    important,
    success,
    warning,
    error,
    critical,
)

bh_color_map = {
    'debug': (Style.DIM + Fore.LIGHTBLUE_EX, Style.RESET_ALL),
    'info': (Style.BRIGHT + Fore.BLUE, Style.RESET_ALL),
    'important': (Style.BRIGHT, Style.RESET_ALL),
    'success': (Fore.GREEN, Style.RESET_ALL),
    'warning': (Fore.YELLOW, Style.RESET_ALL),
    'error': (Fore.RED, Style.RESET_ALL),
    'critical': (Back.RED, Style.RESET_ALL),
}

_print_helpers = {
    'debug': debug,
    'info': info,
    'important': important,
    'success': success,
    'warning': warning,
    'error': error,
    'critical': critical,
}


class BHColorizer(GenericColorizer):
    default_color_map = bh_color_map

bh_colorizer = BHColorizer()

logFormatter = ColorizingFormatter(
    "%(asctime)s [%(levelname)s]  %(message)s")
log = logging.getLogger(BH_APP_NAME)
log.setLevel(logging.DEBUG)

# set to True to mute console logging, e.g. for noisy test runs
debug_silence = [False]


class BHStreamHandler(ColorizingStreamHandler):

    def __init__(self):
        super().__init__(colorizer=bh_colorizer)

    def emit(self, record):
        if not debug_silence[0]:
            super().emit(record)

handler = BHStreamHandler()
handler.setFormatter(logFormatter)
log.addHandler(handler)


def hextobin(h):
    """Convert a hex string to bytes"""
    return binascii.unhexlify(h.encode('utf8'))


def bintohex(b):
    """Convert bytes to a hex string"""
    return binascii.hexlify(b).decode('utf8')


def lehextobin(h):
    """Convert a little-endian hex string to bytes

    Lets you write txids and block hashes the way bitcoind shows them.
    """
    return binascii.unhexlify(h.encode('utf8'))[::-1]


def bintolehex(b):
    """Convert bytes to a little-endian hex string"""
    return binascii.hexlify(b[::-1]).decode('utf8')


def is_hex_string(s, length=None):
    """ Returns True if `s` is a str of hex digits, optionally
    of exactly `length` characters.
    """
    if not isinstance(s, str) or len(s) % 2 != 0:
        return False
    if length is not None and len(s) != length:
        return False
    try:
        binascii.unhexlify(s)
    except (binascii.Error, ValueError):
        return False
    return True


def bhprint(msg, level="info"):
    """ Provides the ability to print messages
    with consistent formatting, outside the logging system
    (in case you don't want the standard log format).
    Note that this is exclusively for console printout, NOT for
    logging to file.
    """
    if level not in bh_color_map:
        raise ValueError("Unsupported formatting: " + level)

    # .colorize_message function does a .format() on the string,
    # which does not work with string-ified json:
    msg = msg.replace('{', '{{')
    msg = msg.replace('}', '}}')

    fmtfn = _print_helpers[level]
    print(bh_colorizer.colorize_message(fmtfn(msg)))


def get_log():
    """
    provides the bitcoin-harness logging instance
    :return: log instance
    """
    return log


def set_logging_level(level):
    handler.setLevel(level)


def set_logging_color(colored=False):
    if colored:
        handler.colorizer = bh_colorizer
    else:
        handler.colorizer = MonochromaticColorizer()
