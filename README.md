# orchtx

Build, sign, broadcast and inspect transactions for Cosmos-SDK style chains.

`orchtx` has no runtime dependencies. It is made of four modules:

- `orchtx.tx_builder`: `TxBuilder` holds a `TxBody` and works out the gas limit
  and fee from a simulation (with safety buffers and a minimum gas floor), then
  hands a `SignDoc` to your `Signer` for signing.
- `orchtx.tx_broadcaster`: `TxBroadcaster` broadcasts a transaction built by a
  `TxBuilder` and retries it when a `RetryStrategy` recognises the outcome.
  Two strategies are provided: `insufficient_fee_strategy()` and
  `account_sequence_strategy()`.
- `orchtx.tx_resp`: `CosmTxResponse` and its log, event and attribute types,
  with helpers to find events and attribute values, and `parse_timestamp` for
  the timestamp formats nodes return.
- `orchtx.snapshots`: `parse_storage`, which turns raw contract storage pairs
  of bytes into readable strings.

## Install

```
pip install orchtx
```

## Inspecting a transaction response

```python
from orchtx.tx_resp import CosmTxResponse

resp = CosmTxResponse.from_dict(node_json)
code_ids = resp.event_attr_values("store_code", "code_id")
for event in resp.get_events("wasm"):
    print(event.get_first_attribute_value("action"))
```

- `get_events` looks in the message logs first and falls back to the
  response's event list when the logs hold no event of that type.
- `get_attribute_from_logs` returns `(msg_index, value)` pairs.
- `event_attr_value` returns the first matching value and raises `DaemonError`
  when the event or attribute is missing; `event_attr_values` returns them all.
- `index_events` returns every event as an `IndexEvent` with text attributes.
- `data_binary` returns the data field JSON-encoded as a list of bytes, or
  `None` when it is empty.
- `from_dict` raises `TimestampError` for a timestamp in an unknown format.
  `parse_timestamp` accepts offsets but does not apply them; the result is
  always read as UTC.

## Broadcasting with retries

```python
from orchtx.tx_broadcaster import (
    TxBroadcaster,
    account_sequence_strategy,
    insufficient_fee_strategy,
)
from orchtx.tx_builder import TxBuilder

body = TxBuilder.build_body(msgs, None, 0)
builder = TxBuilder(body)

broadcaster = (
    TxBroadcaster()
    .add_strategy(insufficient_fee_strategy())
    .add_strategy(account_sequence_strategy())
)
response = await broadcaster.broadcast(builder, signer)
```

`signer` is any object meeting the `BroadcastSigner` protocol: it has a
`chain_id`, reports its account number and sequence, simulates gas, gives the
gas price, builds fees, signs, broadcasts a signed transaction and reports the
chain's average block time in seconds.

A response with a non-zero code becomes a `TxFailedError`. Each strategy is
checked in the order it was added: `broadcast_condition` against a returned
`TxResponse`, `simulation_condition` against an error. When one matches and
`can_retry()` allows it, its `action` may change the builder, the broadcaster
sleeps for one block time and submits again. `BroadcastRetry.finite(n)` limits
a strategy to `n` retries; `BroadcastRetry.infinite()` has no limit. When no
strategy applies any more, the final error is raised or the final response
returned.

- `insufficient_fee_strategy()` matches a response whose raw log contains
  "insufficient fees", sets the builder's fee to the amount read by
  `parse_suggested_fee`, and retries once. If no fee can be read it raises
  `InsufficientFeeError`.
- `account_sequence_strategy()` matches a response or error mentioning
  "incorrect account sequence" and retries without limit.

`assert_broadcast_code_response` and `assert_broadcast_code_cosm_response`
return a response whose code is 0 and raise `TxFailedError` otherwise.

## Fee calculation

```python
gas_limit, fee = TxBuilder.get_fee_from_gas(150_000, 0.025, None, 0)
```

Without an explicit buffer, gas under 200,000 is multiplied by 1.4 and larger
amounts by 1.3; the result is never less than `min_gas`. A `TxBuilder` passes
its own `gas_buffer` and `min_gas` fields. When both `fee_amount` and
`gas_limit` are set on the builder no simulation is made; otherwise the gas
limit found is kept for later builds. `sequence`, when set, overrides the
account's sequence. `TxBuilder.build_fee` checks a fee granter address's
bech32 checksum and raises `DaemonError` if it is invalid.

## What it does not do

`orchtx` holds no keys and opens no connections. Signing, gas simulation,
account lookups and the actual submission to a node are all done by the
`Signer` / `BroadcastSigner` object you supply.

## Running the tests

```
pip install -e ".[test]"
pytest
```