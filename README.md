# bridgekit

Building blocks for services that relay transactions between blockchains.

- `bridgekit.networks` – chain identifiers for the mainnet, testnet and devnet
  environments (`Network`, `chain_id`, `chains`, `eth_chains`, `current_network`).
  When no network is given, the `BRIDGEKIT_NETWORK` environment variable selects
  one (mainnet by default).
- `bridgekit.base` – transaction states and per-chain settings
  (`State`, `get_state_name`, `get_chain_name`, `blocks_to_skip`, `blocks_to_wait`,
  `same_as_eth`).
- `bridgekit.chains` – a `ChainSDK` that keeps several nodes of one chain, follows
  their heights on a background thread and picks a healthy node (`new`,
  `new_chain_sdk`, `Options`).
- `bridgekit.bridge` – a client for the bridge HTTP API: fee checks, token
  registration and transaction lookups (`Client`, `SDK`, `new_sdk`).
- `bridgekit.rpc.message` – JSON-RPC 2.0 messages (`JsonRpcMessage`, `JsonError`),
  batch parsing and a stream codec (`JsonCodec`).
- `bridgekit.rpc.types` – block selectors (`BlockNumber`, `BlockNumberOrHash`).
- `bridgekit.rpc.service` – a registry of objects whose public methods are served
  (`ServiceRegistry`, `Callback`).
- `bridgekit.rpc.subscription` – server-side subscriptions (`Notifier`,
  `Subscription`, `new_id`).
- `bridgekit.rpc.handler` – dispatch of incoming messages on one connection
  (`Handler`, `RequestOp`).
- `bridgekit.rpc.http` – an HTTP connection that posts JSON-RPC messages
  (`HttpConn`), request checks (`validate_request`) and WSGI host filtering
  (`new_vhost_handler`).

## Installation

```
pip install bridgekit
```

## Examples

Chain settings:

```python
from bridgekit.base import State, get_state_name, get_chain_name
from bridgekit.networks import Network, chain_id

get_state_name(State.PENDING)                       # "Pending"
eth = chain_id("ETH", Network.MAINNET)              # 2
get_chain_name(eth, Network.MAINNET)                # "Ethereum"
```

Asking the bridge API about a transaction:

```python
from bridgekit.bridge import Client, CheckTxRequest

api = Client("http://localhost:8080")
info = api.check_tx(CheckTxRequest(hash="0xabc"))
```

Parsing JSON-RPC messages and block selectors:

```python
from bridgekit.rpc.message import parse_message
from bridgekit.rpc.types import BlockNumber

msgs, batch = parse_message('{"jsonrpc":"2.0","id":1,"method":"eth_blockNumber"}')
msgs[0].is_call()                                   # True
BlockNumber.from_json('"latest"')                   # BlockNumber(-1)
```

Serving methods on a connection (anything with a `write_json` method):

```python
from bridgekit.rpc.handler import Handler
from bridgekit.rpc.service import ServiceRegistry

class Calc:
    def add(self, a, b):
        return a + b

registry = ServiceRegistry()
registry.register_name("calc", Calc())
handler = Handler(conn, registry=registry)
handler.handle_msg(msgs[0])   # the answer is written to conn on a background thread
```

## What the package does not do

There is no JSON-RPC client that connects to a node, sends calls and waits for
their answers: `HttpConn.do_request` posts one message and returns the raw
response body, and matching responses to requests is left to the caller
(`Handler.add_request_op` and `RequestOp.wait` help with that). There is no
command-line tool and no HTTP server; `validate_request` and `new_vhost_handler`
are pieces for a server you run yourself.

## Tests

```
pip install -e .[test]
pytest
```