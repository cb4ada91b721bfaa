import pytest

from orchtx.tx_builder import (
    BUFFER_THRESHOLD,
    DEFAULT_MEMO,
    GAS_BUFFER,
    SMALL_GAS_BUFFER,
    Coin,
    SignDoc,
    SigningAccount,
    TxBody,
    TxBuilder,
)
from orchtx.tx_resp import DaemonError

VALID_ADDRESS = "juno16g2rahf5846rxzp3fwlswy08fz8ccuwk03k57y"


class FakeWallet:
    def __init__(self, gas=100_000, price=0.025, chain_id="juno-1"):
        self.gas = gas
        self.price = price
        self.chain_id = chain_id
        self.account = SigningAccount(account_number=7, sequence=3)
        self.gas_calls = []

    async def signing_account(self):
        return self.account

    async def calculate_gas(self, body, sequence, account_number):
        self.gas_calls.append((sequence, account_number))
        return self.gas

    def gas_price(self):
        return self.price

    def build_fee(self, amount, gas_limit):
        return TxBuilder.build_fee(amount, "ujuno", gas_limit, None)

    def sign(self, sign_doc):
        return sign_doc


def test_build_body_default_memo():
    body = TxBuilder.build_body(["msg"], None, 100)
    assert body.memo == DEFAULT_MEMO
    assert body.messages == ["msg"]
    assert body.timeout_height == 100


def test_build_body_custom_memo():
    body = TxBuilder.build_body([], "hello", 0)
    assert body.memo == "hello"


def test_build_body_timeout_truncated_to_u32():
    body = TxBuilder.build_body([], None, (1 << 32) + 5)
    assert body.timeout_height == 5


def test_build_fee_without_granter():
    fee = TxBuilder.build_fee(1234, "ujuno", 5000, None)
    assert fee.amount == [Coin(amount=1234, denom="ujuno")]
    assert fee.gas_limit == 5000
    assert fee.granter is None


def test_build_fee_with_valid_granter():
    fee = TxBuilder.build_fee(10, "ujuno", 10, VALID_ADDRESS)
    assert fee.granter == VALID_ADDRESS


@pytest.mark.parametrize(
    "granter",
    ["not-an-address", VALID_ADDRESS[:-1] + "x", "Juno16g2rahf5846rxzp3fwlswy08fz8ccuwk03k57y"],
)
def test_build_fee_with_invalid_granter(granter):
    with pytest.raises(DaemonError):
        TxBuilder.build_fee(10, "ujuno", 10, granter)


def test_fee_from_gas_small_buffer_below_threshold():
    gas = BUFFER_THRESHOLD - 1
    assert TxBuilder.get_fee_from_gas(gas, 0.1) == TxBuilder.get_fee_from_gas(
        gas, 0.1, SMALL_GAS_BUFFER
    )


def test_fee_from_gas_default_buffer_at_threshold():
    gas = BUFFER_THRESHOLD
    assert TxBuilder.get_fee_from_gas(gas, 0.1) == TxBuilder.get_fee_from_gas(
        gas, 0.1, GAS_BUFFER
    )


def test_fee_from_gas_pinned_value():
    gas_expected, _ = TxBuilder.get_fee_from_gas(1_000_000, 0.0)
    assert gas_expected == 1_300_000


def test_fee_from_gas_min_gas_dominates():
    gas_expected, _ = TxBuilder.get_fee_from_gas(10, 0.1, None, 500_000)
    assert gas_expected == 500_000


def test_fee_from_gas_explicit_buffer_overrides():
    gas_expected, _ = TxBuilder.get_fee_from_gas(1000, 0.1, 2.0)
    assert gas_expected == 2000


def test_fee_grows_with_price():
    _, cheap = TxBuilder.get_fee_from_gas(300_000, 0.01)
    _, dear = TxBuilder.get_fee_from_gas(300_000, 1.0)
    assert dear > cheap


@pytest.mark.asyncio
async def test_simulate_uses_sequence_override():
    wallet = FakeWallet(gas=4242)
    builder = TxBuilder(TxBody(), sequence=99)
    assert await builder.simulate(wallet) == 4242
    assert wallet.gas_calls == [(99, 7)]


@pytest.mark.asyncio
async def test_build_with_fixed_fee_skips_simulation():
    wallet = FakeWallet()
    builder = TxBuilder(TxBody(), fee_amount=500, gas_limit=10_000)
    doc = await builder.build(wallet)
    assert isinstance(doc, SignDoc)
    assert wallet.gas_calls == []
    assert doc.fee.amount == [Coin(amount=500, denom="ujuno")]
    assert doc.fee.gas_limit == 10_000
    assert doc.sequence == 3
    assert doc.account_number == 7
    assert doc.chain_id == "juno-1"


@pytest.mark.asyncio
async def test_build_simulates_and_keeps_gas_limit():
    wallet = FakeWallet(gas=250_000, price=0.025)
    builder = TxBuilder(TxBody(), sequence=11)
    doc = await builder.build(wallet)
    expected_gas, expected_fee = TxBuilder.get_fee_from_gas(250_000, 0.025)
    assert builder.gas_limit == expected_gas
    assert doc.fee.gas_limit == expected_gas
    assert doc.fee.amount[0].amount == expected_fee
    assert doc.sequence == 11
    assert wallet.gas_calls == [(11, 7)]


@pytest.mark.asyncio
async def test_build_rejects_invalid_chain_id():
    wallet = FakeWallet(chain_id="")
    builder = TxBuilder(TxBody(), fee_amount=1, gas_limit=1)
    with pytest.raises(DaemonError):
        await builder.build(wallet)