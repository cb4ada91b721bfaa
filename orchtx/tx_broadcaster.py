"""Broadcasting transactions with retry strategies for known failures."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Union

from .tx_builder import Signer, TxBuilder
from .tx_resp import CosmTxResponse, DaemonError, TxFailedError

__all__ = [
    "InsufficientFeeError",
    "TxResponse",
    "BroadcastOutcome",
    "StrategyAction",
    "BroadcastRetry",
    "RetryStrategy",
    "BroadcastSigner",
    "TxBroadcaster",
    "assert_broadcast_code_response",
    "assert_broadcast_code_cosm_response",
    "has_insufficient_fee",
    "has_account_sequence_error",
    "parse_suggested_fee",
    "insufficient_fee_strategy",
    "account_sequence_strategy",
]

logger = logging.getLogger(__name__)

_U128_MAX = (1 << 128) - 1


class InsufficientFeeError(DaemonError):
    """The fee was too low and no suggested fee could be read from the log."""

    def __init__(self, raw_log: str) -> None:
        super().__init__(f"insufficient fee: {raw_log}")
        self.raw_log = raw_log


@dataclass
class TxResponse:
    """The response of a node to a broadcast transaction."""

    code: int = 0
    raw_log: str = ""
    txhash: str = ""
    height: int = 0
    codespace: str = ""
    data: str = ""
    gas_wanted: int = 0
    gas_used: int = 0


BroadcastOutcome = Union[TxResponse, DaemonError]
StrategyAction = Callable[[TxBuilder, BroadcastOutcome], None]


@dataclass(frozen=True)
class BroadcastRetry:
    """How many times a strategy may retry; ``None`` means without limit."""

    max_retries: int | None = None

    @classmethod
    def infinite(cls) -> BroadcastRetry:
        return cls(None)

    @classmethod
    def finite(cls, max_retries: int) -> BroadcastRetry:
        return cls(max_retries)

    @property
    def is_infinite(self) -> bool:
        return self.max_retries is None


@dataclass
class RetryStrategy:
    """A condition on a broadcast outcome and what to do before retrying.

    ``broadcast_condition`` is checked on a successful response,
    ``simulation_condition`` on an error. ``action`` may change the
    builder before the transaction is submitted again.
    """

    broadcast_condition: Callable[[TxResponse], bool]
    simulation_condition: Callable[[DaemonError], bool]
    action: StrategyAction | None
    max_retries: BroadcastRetry
    reason: str
    current_retries: int = field(default=0, init=False)

    def condition_met(self, tx_response: BroadcastOutcome) -> bool:
        """Whether this strategy applies to the given outcome."""
        if isinstance(tx_response, DaemonError):
            return self.simulation_condition(tx_response)
        return self.broadcast_condition(tx_response)

    def can_retry(self) -> bool:
        """Count one retry and tell whether it is still allowed."""
        if self.max_retries.is_infinite:
            return True
        self.current_retries += 1
        return self.current_retries <= self.max_retries.max_retries


class BroadcastSigner(Signer, Protocol):
    """A signer that can also submit transactions and report block speed."""

    async def broadcast_tx(self, tx: Any) -> TxResponse:
        """Submit a signed transaction and return the node's response."""

    async def average_block_speed(self) -> float:
        """Return the average time between blocks, in seconds."""


async def _broadcast_once(
    tx_builder: TxBuilder, signer: BroadcastSigner
) -> BroadcastOutcome:
    try:
        tx = await tx_builder.build(signer)
        response = await signer.broadcast_tx(tx)
        logger.debug("TX broadcast response: %r", response)
        return assert_broadcast_code_response(response)
    except DaemonError as exc:
        return exc


class TxBroadcaster:
    """Broadcasts a transaction, retrying it according to its strategies."""

    def __init__(self, strategies: list[RetryStrategy] | None = None) -> None:
        self.strategies: list[RetryStrategy] = list(strategies or [])

    def add_strategy(self, strategy: RetryStrategy) -> TxBroadcaster:
        """Add a strategy; strategies are tried in the order they were added."""
        self.strategies.append(strategy)
        return self

    async def broadcast(
        self, tx_builder: TxBuilder, signer: BroadcastSigner
    ) -> TxResponse:
        """Broadcast the transaction and return the final response.

        Raises the last error when the transaction still fails once no
        strategy allows another retry.
        """
        tx_response = await _broadcast_once(tx_builder, signer)
        logger.info("Awaiting TX inclusion in block...")
        retry = True
        while retry:
            retry = False
            for strategy in self.strategies:
                if not (strategy.condition_met(tx_response) and strategy.can_retry()):
                    continue
                if strategy.action is not None:
                    strategy.action(tx_builder, tx_response)
                retry = True
                # Wait a block so a failing transaction is not resubmitted in a tight loop.
                block_speed = await signer.average_block_speed()
                logger.warning(
                    "Retrying broadcasting TX in %s milliseconds because of %s",
                    int(block_speed * 1000),
                    strategy.reason,
                )
                await asyncio.sleep(block_speed)
                tx_response = await _broadcast_once(tx_builder, signer)
        if isinstance(tx_response, DaemonError):
            raise tx_response
        return tx_response


def assert_broadcast_code_response(tx_response: TxResponse) -> TxResponse:
    """Return the response if its code is 0, else raise TxFailedError."""
    if tx_response.code == 0:
        return tx_response
    raise TxFailedError(code=tx_response.code, reason=tx_response.raw_log)


def assert_broadcast_code_cosm_response(tx_response: CosmTxResponse) -> CosmTxResponse:
    """Return the response if its code is 0, else raise TxFailedError."""
    if tx_response.code == 0:
        return tx_response
    raise TxFailedError(code=tx_response.code, reason=tx_response.raw_log)


def has_insufficient_fee(raw_log: str) -> bool:
    return "insufficient fees" in raw_log


def has_account_sequence_error(raw_log: str) -> bool:
    return "incorrect account sequence" in raw_log


def _parse_u128(text: str) -> int | None:
    digits = text[1:] if text.startswith("+") else text
    if not digits or not all("0" <= char <= "9" for char in digits):
        return None
    value = int(digits)
    return value if value <= _U128_MAX else None


def parse_suggested_fee(raw_log: str) -> int | None:
    """Read the required fee in the paid denomination from an insufficient-fee log.

    Logs look like ``insufficient fees; got: 14867ujuno required:
    17771ibc/...,444255ujuno: insufficient fee``.
    """
    parts = raw_log.split("required: ")
    if len(parts) != 2:
        return None
    got, required = parts

    got_parts = got.split()
    if not got_parts:
        return None
    paid_fee = got_parts[-1]
    denom_start = next(
        (pos for pos, char in enumerate(paid_fee) if not char.isnumeric()), None
    )
    if denom_start is None:
        return None
    denomination = paid_fee[denom_start:]
    logger.debug("denom: %s", denomination)

    required_fees = required.split(denomination)
    logger.debug("required fees: %r", required_fees)

    first = required_fees[0]
    last_non_numeric = next(
        (
            pos
            for pos, char in reversed(list(enumerate(first)))
            if not char.isnumeric()
        ),
        None,
    )
    if last_non_numeric is None:
        return None
    suggested = first[last_non_numeric:]
    logger.debug("suggested fee: %s", suggested)

    # The leading character may be a separator such as a comma.
    parsed = _parse_u128(suggested)
    return parsed if parsed is not None else _parse_u128(suggested[1:])


def _raise_fee_from_log(tx_builder: TxBuilder, tx_response: BroadcastOutcome) -> None:
    if not isinstance(tx_response, TxResponse):
        raise TypeError("the insufficient fee action needs a transaction response")
    new_fee = parse_suggested_fee(tx_response.raw_log)
    if new_fee is None:
        raise InsufficientFeeError(tx_response.raw_log)
    tx_builder.fee_amount = new_fee


def insufficient_fee_strategy() -> RetryStrategy:
    """Retry once with the fee suggested by the node."""
    return RetryStrategy(
        broadcast_condition=lambda response: has_insufficient_fee(response.raw_log),
        simulation_condition=lambda _error: False,
        action=_raise_fee_from_log,
        max_retries=BroadcastRetry.finite(1),
        reason="an insufficient fee error",
    )


def account_sequence_strategy() -> RetryStrategy:
    """Retry without limit while the account sequence is out of date."""
    return RetryStrategy(
        broadcast_condition=lambda response: has_account_sequence_error(
            response.raw_log
        ),
        simulation_condition=lambda error: has_account_sequence_error(str(error)),
        action=None,
        max_retries=BroadcastRetry.infinite(),
        reason="an account sequence error",
    )