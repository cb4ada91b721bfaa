"""Building, simulating and signing transactions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from .tx_resp import DaemonError

__all__ = [
    "GAS_BUFFER",
    "BUFFER_THRESHOLD",
    "SMALL_GAS_BUFFER",
    "DEFAULT_MEMO",
    "Coin",
    "Fee",
    "TxBody",
    "SigningAccount",
    "SignDoc",
    "Signer",
    "TxBuilder",
]

logger = logging.getLogger(__name__)

GAS_BUFFER = 1.3
BUFFER_THRESHOLD = 200_000
SMALL_GAS_BUFFER = 1.4
DEFAULT_MEMO = "Tx committed using orchtx! ⚙️"

_MAX_CHAIN_ID_LENGTH = 50
_U32_MASK = 0xFFFFFFFF

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


@dataclass(frozen=True)
class Coin:
    """An amount of a given denomination."""

    amount: int
    denom: str


@dataclass
class Fee:
    """The fee paid for a transaction and the gas it may use."""

    amount: list[Coin]
    gas_limit: int
    granter: str | None = None
    payer: str | None = None


@dataclass
class TxBody:
    """The messages of a transaction with its memo and timeout height."""

    messages: list[Any] = field(default_factory=list)
    memo: str = ""
    timeout_height: int = 0


@dataclass(frozen=True)
class SigningAccount:
    """Account number and current sequence of a signing account."""

    account_number: int
    sequence: int


@dataclass
class SignDoc:
    """Everything a signer needs to sign a transaction."""

    body: TxBody
    fee: Fee
    sequence: int
    chain_id: str
    account_number: int


class Signer(Protocol):
    """What a wallet must provide for a transaction to be built and signed."""

    chain_id: str

    async def signing_account(self) -> SigningAccount:
        """Return the account number and sequence of the signer."""

    async def calculate_gas(
        self, body: TxBody, sequence: int, account_number: int
    ) -> int:
        """Simulate the body on a node and return the gas it uses."""

    def gas_price(self) -> float:
        """Return the gas price of the chain."""

    def build_fee(self, amount: int, gas_limit: int) -> Fee:
        """Return the fee object for the given amount and gas limit."""

    def sign(self, sign_doc: SignDoc) -> Any:
        """Sign the document and return the raw transaction."""


def _bech32_polymod(values: Sequence[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = ((checksum & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_BECH32_GENERATOR):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _validate_account_id(address: str) -> str:
    if address.lower() != address and address.upper() != address:
        raise DaemonError(f"invalid address {address!r}: mixed case")
    if any(not 33 <= ord(char) <= 126 for char in address):
        raise DaemonError(f"invalid address {address!r}: invalid character")
    lowered = address.lower()
    separator = lowered.rfind("1")
    if separator < 1 or separator + 7 > len(lowered) or len(lowered) > 90:
        raise DaemonError(f"invalid address {address!r}: bad length or separator")
    hrp, data_part = lowered[:separator], lowered[separator + 1 :]
    if any(char not in _BECH32_CHARSET for char in data_part):
        raise DaemonError(f"invalid address {address!r}: invalid character")
    data = [_BECH32_CHARSET.index(char) for char in data_part]
    expanded = [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]
    if _bech32_polymod(expanded + data) != 1:
        raise DaemonError(f"invalid address {address!r}: bad checksum")
    return address


def _validate_chain_id(chain_id: str) -> str:
    if not chain_id or len(chain_id.encode("utf-8")) > _MAX_CHAIN_ID_LENGTH:
        raise DaemonError(f"invalid chain id {chain_id!r}")
    return chain_id


@dataclass
class TxBuilder:
    """Builds a raw transaction from a body, ready to be broadcast by a signer.

    ``fee_amount`` and ``gas_limit`` fix the fee when both are set; otherwise
    the transaction is simulated. ``sequence`` overrides the account sequence.
    """

    body: TxBody
    fee_amount: int | None = None
    gas_limit: int | None = None
    sequence: int | None = None
    gas_buffer: float | None = None
    min_gas: int = 0

    @staticmethod
    def build_body(
        msgs: Sequence[Any], memo: str | None = None, timeout: int = 0
    ) -> TxBody:
        """Build a transaction body with a memo and timeout height."""
        return TxBody(
            messages=list(msgs),
            memo=DEFAULT_MEMO if memo is None else memo,
            timeout_height=timeout & _U32_MASK,
        )

    @staticmethod
    def build_fee(
        amount: int, denom: str, gas_limit: int, fee_granter: str | None = None
    ) -> Fee:
        """Build a fee of one coin; raises DaemonError on an invalid granter."""
        granter = None if fee_granter is None else _validate_account_id(fee_granter)
        return Fee(
            amount=[Coin(amount=int(amount), denom=denom)],
            gas_limit=gas_limit,
            granter=granter,
        )

    def _sequence_for(self, account: SigningAccount) -> int:
        return account.sequence if self.sequence is None else self.sequence

    async def simulate(self, wallet: Signer) -> int:
        """Simulate the transaction and return the gas the node reports."""
        account = await wallet.signing_account()
        return await wallet.calculate_gas(
            self.body, self._sequence_for(account), account.account_number
        )

    async def build(self, wallet: Signer) -> Any:
        """Build and sign the transaction.

        When no fixed fee and gas limit are set, the transaction is simulated
        and the gas limit found is kept for later builds.
        """
        account = await wallet.signing_account()
        sequence = self._sequence_for(account)

        if self.fee_amount is not None and self.gas_limit is not None:
            logger.debug(
                "Using pre-defined fee and gas limits: %s, %s",
                self.fee_amount,
                self.gas_limit,
            )
            tx_fee, gas_limit = self.fee_amount, self.gas_limit
        else:
            simulated = await wallet.calculate_gas(
                self.body, sequence, account.account_number
            )
            logger.debug("Simulated gas needed %s", simulated)
            gas_limit, tx_fee = self.get_fee_from_gas(
                simulated, wallet.gas_price(), self.gas_buffer, self.min_gas
            )
            logger.debug("Calculated fee needed: %s", tx_fee)
            self.gas_limit = gas_limit

        fee = wallet.build_fee(tx_fee, gas_limit)
        logger.debug(
            "submitting TX: fee: %s account_nr: %s sequence: %s",
            fee,
            account.account_number,
            sequence,
        )
        sign_doc = SignDoc(
            body=self.body,
            fee=fee,
            sequence=sequence,
            chain_id=_validate_chain_id(wallet.chain_id),
            account_number=account.account_number,
        )
        return wallet.sign(sign_doc)

    @staticmethod
    def get_fee_from_gas(
        gas: int,
        gas_price: float,
        gas_buffer: float | None = None,
        min_gas: int = 0,
    ) -> tuple[int, int]:
        """Return (gas limit, fee amount) for the simulated gas, with a buffer applied."""
        if gas_buffer is not None:
            gas_expected = gas * gas_buffer
        elif gas < BUFFER_THRESHOLD:
            gas_expected = gas * SMALL_GAS_BUFFER
        else:
            gas_expected = gas * GAS_BUFFER
        gas_expected = max(float(min_gas), gas_expected)
        fee_amount = gas_expected * (gas_price + 0.00001)
        return max(0, int(gas_expected)), max(0, int(fee_amount))