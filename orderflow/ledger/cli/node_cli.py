import argparse
import json
import logging
import os
import sys
from ...protocol.config.economic_model import SCALE
from ...protocol.config.params import NETWORKS
from ...protocol.crypto.keys import generate_private_key, public_key_from_private
from ...protocol.crypto.addresses import address_from_pubkey
from ...protocol.types.ledger import LedgerGlobals
from ..core.ledger import RewardLedger
from ..core.services import ExternalServices, InMemoryToken, VAULT_ADDRESS
from ..core.state import LedgerState
from ..core.verification import AttestorProofVerifier
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)

NODE_CONFIG = "node.json"
LEDGER_DB = "ledger.db"
DEVNET_VAULT_SUPPLY = 1_000_000 * SCALE
DEVNET_ALLOC = 10_000 * SCALE


def cmd_init(args):
    """Create the data dir with a governor key and a proof attestor key."""
    os.makedirs(args.datadir, exist_ok=True)
    config_path = os.path.join(args.datadir, NODE_CONFIG)
    if os.path.exists(config_path):
        print(f"Node already initialized at {config_path}")
        return

    governor_priv = generate_private_key()
    attestor_priv = generate_private_key()
    network = NETWORKS[args.network]
    governor = address_from_pubkey(public_key_from_private(governor_priv), prefix=network.bech32_prefix_acc)
    node_config = {
        "network": args.network,
        "governor": governor,
        "governor_priv_key": governor_priv.hex(),
        "attestor_pub_key": public_key_from_private(attestor_priv).hex(),
        "attestor_priv_key": attestor_priv.hex(),
        "trusted_mirror_sender": args.mirror_sender,
        # In-memory token balances minted at every start (devnet token is not persisted)
        "vault_supply": DEVNET_VAULT_SUPPLY,
        "alloc": {governor: DEVNET_ALLOC},
    }
    with open(config_path, "w") as f:
        json.dump(node_config, f, indent=2)

    print(f"Initialized {args.network} node in {args.datadir}")
    print(f"Governor: {node_config['governor']}")
    print("Private keys saved unencrypted. Do not share!")


def load_node_config(datadir: str) -> dict:
    config_path = os.path.join(datadir, NODE_CONFIG)
    if not os.path.exists(config_path):
        print(f"Error: {config_path} not found. Run 'init' first.")
        sys.exit(1)
    with open(config_path, "r") as f:
        return json.load(f)


def build_ledger(datadir: str) -> RewardLedger:
    node_config = load_node_config(datadir)
    network = NETWORKS[node_config["network"]]

    token = InMemoryToken()
    token.mint(VAULT_ADDRESS, node_config.get("vault_supply", 0))
    for address, amount in node_config.get("alloc", {}).items():
        token.mint(address, amount)
        token.approve(address, amount)

    services = ExternalServices(
        token=token,
        proof_verifier=AttestorProofVerifier(bytes.fromhex(node_config["attestor_pub_key"])),
        trusted_mirror_sender=node_config.get("trusted_mirror_sender"),
    )
    return RewardLedger(
        os.path.join(datadir, LEDGER_DB),
        services,
        governor=node_config["governor"],
        config=network,
    )


def cmd_start(args):
    from ..rpc.api import start_rpc_server

    ledger = build_ledger(args.datadir)
    try:
        start_rpc_server(ledger, host=args.host, port=args.port)
    except KeyboardInterrupt:
        pass
    finally:
        ledger.close()


def cmd_status(args):
    """Print clock and globals straight from the data dir, without starting a node."""
    node_config = load_node_config(args.datadir)
    network = NETWORKS[node_config["network"]]
    db = StorageDB(os.path.join(args.datadir, LEDGER_DB))
    try:
        state = LedgerState(db)
        state.load_globals(
            LedgerGlobals(
                reward_rate_per_volume=network.reward_rate_per_volume,
                min_volume_threshold=network.min_volume_threshold,
            ),
            genesis_time=0,
        )
        print(json.dumps({
            "network": network.network_id,
            "clock": state.clock.model_dump(),
            "globals": state.globals.model_dump(exclude={"merkle_claimed"}),
            "merkle_claims": len(state.globals.merkle_claimed),
            "accounts": len(state.get_all_accounts()),
        }, indent=2))
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="OrderFlow Ledger Node CLI")
    parser.add_argument("--datadir", default="./.orderflow", help="Data directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Initialize node configuration")
    init_parser.add_argument("--network", choices=sorted(NETWORKS), default="devnet", help="Network")
    init_parser.add_argument("--mirror-sender", default=None, help="Trusted cross-chain mirror sender")

    start_parser = subparsers.add_parser("start", help="Run the RPC node")
    start_parser.add_argument("--host", default="0.0.0.0", help="RPC Host")
    start_parser.add_argument("--port", type=int, default=8000, help="RPC Port")

    subparsers.add_parser("status", help="Show epoch clock and global counters")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "init":
        cmd_init(args)
    elif args.command == "start":
        cmd_start(args)
    elif args.command == "status":
        cmd_status(args)

if __name__ == "__main__":
    main()
