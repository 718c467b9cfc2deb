import random
from decimal import Decimal

import pytest

import bhbitcoin as btc


def test_btc_to_sat():
    assert btc.btc_to_sat(Decimal("0.00000001")) == 1
    assert btc.btc_to_sat(Decimal("1.00000000")) == 100000000
    assert btc.btc_to_sat("1.5") == 150000000
    assert btc.btc_to_sat(3) == 300000000
    assert btc.btc_to_sat(0.1) == 10000000
    assert btc.btc_to_sat("-0.0001") == -10000
    # trailing zeros beyond 8 places are still exact
    assert btc.btc_to_sat("1.0000000000") == 100000000


def test_sat_to_btc():
    assert btc.sat_to_btc(1) == Decimal("0.00000001")
    assert btc.sat_to_btc(100000000) == Decimal("1.00000000")
    assert btc.sat_to_btc_str(100000000) == "1.00000000"
    assert btc.sat_to_btc_str(0) == "0.00000000"
    assert btc.sat_to_btc_str(1) == "0.00000001"
    assert btc.sat_to_btc_str(btc.MAX_MONEY) == "21000000.00000000"


@pytest.mark.parametrize('value', [
    "0.000000001",
    Decimal("1.123456789"),
    "1.0000000000000000000000000000001",
    1e-9,
    float("nan"),
    float("inf"),
    Decimal("Infinity"),
    "NaN",
    "one btc",
    "",
    None,
    True,
    "21000000.00000001",
])
def test_btc_to_sat_rejects_unrepresentable(value):
    with pytest.raises(btc.EncodingError):
        btc.btc_to_sat(value)


@pytest.mark.parametrize('value', [
    1.5, Decimal(1), "1", None, True, btc.MAX_MONEY + 1, -btc.MAX_MONEY - 1,
])
def test_sat_to_btc_rejects_bad_values(value):
    with pytest.raises(btc.EncodingError):
        btc.sat_to_btc(value)


def test_encoding_error_is_value_error():
    with pytest.raises(ValueError):
        btc.btc_to_sat("0.123456789")


def test_amount_round_trip():
    values = [0, 1, -1, 546, 99999999, 100000000, 100000001,
              2099999999999999, btc.MAX_MONEY, -btc.MAX_MONEY]
    values += [random.randint(-btc.MAX_MONEY, btc.MAX_MONEY)
               for _ in range(500)]
    for v in values:
        assert btc.btc_to_sat(btc.sat_to_btc_str(v)) == v
        assert btc.btc_to_sat(btc.sat_to_btc(v)) == v


def test_amount_to_sat():
    assert btc.amount_to_sat("1") == 1
    assert btc.amount_to_sat("1sat") == 1
    assert btc.amount_to_sat("0.00000001") == 1
    assert btc.amount_to_sat("0.00000001btc") == 1
    assert btc.amount_to_sat("0.00000001BTC") == 1
    assert btc.amount_to_sat("1.00000000") == 100000000
    assert btc.amount_to_sat("1btc") == 100000000
    assert btc.amount_to_sat("1BTC") == 100000000
    with pytest.raises(btc.EncodingError):
        btc.amount_to_sat("1.123sat")
    with pytest.raises(btc.EncodingError):
        btc.amount_to_sat("-1btc")


def test_amount_to_str():
    assert btc.amount_to_str("1") == "0.00000001 BTC (1 sat)"
    assert btc.amount_to_str("1btc") == "1.00000000 BTC (100000000 sat)"
    assert btc.amount_to_str(200000000) == "2.00000000 BTC (200000000 sat)"
    assert btc.sat_to_str(150000000) == "1.50000000"
