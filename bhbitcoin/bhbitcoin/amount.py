from decimal import Decimal, InvalidOperation
from typing import Any, Union
import re

SATS_PER_BTC = 100000000
# 21 million coins, the largest amount bitcoind will ever accept
MAX_MONEY = 21000000 * SATS_PER_BTC

_EIGHT_PLACES = Decimal('0.00000001')


class EncodingError(ValueError):
    """ A local value (amount, hex, rpc argument) cannot be represented
    on the wire. Always raised before any network I/O.
    """


def _check_sat_range(sat: int) -> None:
    if abs(sat) > MAX_MONEY:
        raise EncodingError("Amount out of range: " + str(sat) + " sat")


def btc_to_sat(btc: Union[int, str, float, Decimal]) -> int:
    """ Converts an amount in coins (as received from, or sent to, the
    daemon) to an integer number of satoshis. Conversion is exact:
    anything with more than 8 fractional digits is an error, not a
    rounding event.
    """
    if isinstance(btc, bool):
        raise EncodingError("Invalid BTC amount: " + repr(btc))
    if isinstance(btc, float):
        # the shortest repr is what the user (or a json encoder) meant
        btc = repr(btc)
    try:
        d = Decimal(btc)
    except (InvalidOperation, TypeError, ValueError):
        raise EncodingError("Invalid BTC amount: " + repr(btc))
    if not d.is_finite():
        raise EncodingError("Non-finite BTC amount: " + repr(btc))
    # checked on the digit tuple, since Decimal arithmetic would
    # round to the context precision first
    _, digits, exponent = d.as_tuple()
    if exponent < -8 and any(digits[exponent + 8:]):
        raise EncodingError("BTC amount has more than 8 decimal places: " +
                            str(btc))
    if abs(d) > Decimal(MAX_MONEY) / SATS_PER_BTC:
        raise EncodingError("Amount out of range: " + str(btc) + " BTC")
    return int(d.scaleb(8))


def sat_to_btc(sat: int) -> Decimal:
    if isinstance(sat, bool) or not isinstance(sat, int):
        raise EncodingError("Amount in sat must be an int, got: " +
                            repr(sat))
    _check_sat_range(sat)
    return (Decimal(sat) / SATS_PER_BTC).quantize(_EIGHT_PLACES)


def sat_to_btc_str(sat: int) -> str:
    """ The wire representation of an amount: a decimal coin
    string with exactly 8 fractional digits, e.g. "1.00000000".
    """
    return format(sat_to_btc(sat), 'f')

# 1             = 0.00000001 BTC = 1sat
# 1sat          = 0.00000001 BTC = 1sat
# 0.00000001    = 0.00000001 BTC = 1sat
# 0.00000001btc = 0.00000001 BTC = 1sat
# 1.00000000    = 1.00000000 BTC = 100000000sat
# 1btc          = 1.00000000 BTC = 100000000sat


def amount_to_sat(amount_str: str) -> int:
    amount_str = str(amount_str).strip()
    if re.compile(r"^[0-9]{1,8}(\.)?([0-9]{1,8})?(btc|sat)?$").match(
                  amount_str.lower()) is None:
        raise EncodingError("Invalid BTC amount string " + amount_str)
    if amount_str.lower().endswith("btc"):
        return btc_to_sat(amount_str[:-3])
    elif amount_str.lower().endswith("sat"):
        sat = Decimal(amount_str[:-3])
        if sat != sat.to_integral_value():
            raise EncodingError("Fractional satoshi amount " + amount_str)
        return int(sat)
    elif "." in amount_str:
        return btc_to_sat(amount_str)
    else:
        return int(Decimal(amount_str))


def sat_to_str(sat: int) -> str:
    return sat_to_btc_str(sat)


def amount_to_str(amount: Any) -> str:
    """ Human readable form of either an int sat amount
    or an amount string as accepted by `amount_to_sat`.
    """
    if isinstance(amount, int) and not isinstance(amount, bool):
        sat = amount
    else:
        sat = amount_to_sat(amount)
    return sat_to_btc_str(sat) + " BTC (" + str(sat) + " sat)"
