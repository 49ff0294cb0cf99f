# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import json
import os
import sys
import requests
from ecdsa import MalformedPointError  # type: ignore
from ..protocol.config.economic_model import SCALE
from ..protocol.config.params import DENOM
from ..protocol.crypto.addresses import address_from_pubkey
from ..protocol.crypto.keys import public_key_from_private, sign
from ..protocol.types.claim import operation_message_hash

DEFAULT_NODE = "http://localhost:8000"

def get_node_url(args):
    return args.node or os.environ.get("ORDERFLOW_NODE", DEFAULT_NODE)

def _get(args, path: str) -> dict:
    url = get_node_url(args)
    try:
        resp = requests.get(f"{url}{path}", timeout=10)
    except requests.RequestException as e:
        print(f"Error: cannot reach node at {url}: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

# --- Query Commands ---
def cmd_query_status(args):
    data = _get(args, "/status")
    print(f"Network:   {data['network']} ({data['chain_id']})")
    print(f"Epoch:     {data['epoch']}")
    print(f"Lifetime distributed: {int(data['lifetime_distributed']) / SCALE} {DENOM}")

def cmd_query_account(args):
    data = _get(args, f"/account/{args.address}")
    if args.json:
        print(json.dumps(data, indent=2))
        return
    acc = data["account"]
    print(f"Staked:        {acc['staked'] / SCALE} {DENOM} (tier {data['tier']}, x{data['multiplier'] / 100})")
    print(f"Epoch volume:  {acc['epoch_volume'] / SCALE}")
    print(f"Last claimed:  epoch {acc['last_claimed_epoch']}")
    print(f"Auto-compound: {acc['auto_compound']}")
    print(f"Vesting:       {data['vesting']['released'] / SCALE}/{data['vesting']['total'] / SCALE} released, "
          f"{data['claimable_vested'] / SCALE} claimable")
    if data["pending_unstake"]:
        print(f"Unstaking:     {data['pending_unstake']['amount'] / SCALE} until {data['pending_unstake']['unlock_time']}")

def _post(args, path: str, body: dict) -> dict:
    url = get_node_url(args)
    try:
        resp = requests.post(f"{url}{path}", json=body, timeout=10)
    except requests.RequestException as e:
        print(f"Error: cannot reach node at {url}: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

def get_nonce(args, address: str) -> int:
    return _get(args, f"/account/{address}")["account"]["nonce"]

def _signed_body(args, operation: str, op_args: dict) -> dict:
    """Sign (operation, args, nonce) with --priv-key and build the request body."""
    key_hex = args.priv_key or os.environ.get("ORDERFLOW_KEY")
    if not key_hex:
        print("Error: no signing key (use --priv-key or ORDERFLOW_KEY)")
        sys.exit(1)
    try:
        priv = bytes.fromhex(key_hex)
        pub = public_key_from_private(priv)
    except (ValueError, MalformedPointError) as e:
        print(f"Error: invalid private key: {e}")
        sys.exit(1)

    address = address_from_pubkey(pub)
    nonce = get_nonce(args, address)
    digest = operation_message_hash(operation, op_args, nonce, address)
    return dict(op_args, address=address, signature=sign(digest, priv).hex(), pub_key=pub.hex())

# --- Tx Commands ---
def _amount_units(amount: str) -> int:
    return int(float(amount) * SCALE)

def cmd_tx_stake(args):
    amount = _amount_units(args.amount)
    data = _post(args, "/stake", _signed_body(args, "stake", {"amount": amount}))
    print(f"Staked: {data['staked'] / SCALE} {DENOM} (tier {data['tier']})")

def cmd_tx_unstake(args):
    amount = _amount_units(args.amount)
    data = _post(args, "/unstake", _signed_body(args, "request_unstake", {"amount": amount}))
    print(f"Unstaking {data['amount'] / SCALE} {DENOM}, unlocks at {data['unlock_time']}")

def cmd_tx_withdraw(args):
    data = _post(args, "/withdraw", _signed_body(args, "withdraw_unstaked", {}))
    print(f"Withdrawn: {data['withdrawn'] / SCALE} {DENOM}")

def cmd_tx_claim_vested(args):
    data = _post(args, "/claim/vested", _signed_body(args, "claim_vested", {}))
    print(f"Released: {data['released'] / SCALE} {DENOM}")

def cmd_tx_auto_compound(args):
    enabled = args.state == "on"
    data = _post(args, "/auto-compound", _signed_body(args, "set_auto_compound", {"enabled": enabled}))
    print(f"Auto-compound: {data['auto_compound']}")

def main(argv=None):
    parser = argparse.ArgumentParser(description="OrderFlow Ledger Client")
    parser.add_argument("--node", help=f"Node URL (default: {DEFAULT_NODE})")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_query = subparsers.add_parser("query", help="Query ledger state")
    sp_query = p_query.add_subparsers(dest="query_command", required=True)

    pq_status = sp_query.add_parser("status", help="Epoch and global counters")
    pq_status.set_defaults(func=cmd_query_status)

    pq_acc = sp_query.add_parser("account", help="Account, vesting and unstake state")
    pq_acc.add_argument("address", help="Account address")
    pq_acc.add_argument("--json", action="store_true", help="Raw JSON output")
    pq_acc.set_defaults(func=cmd_query_account)

    p_tx = subparsers.add_parser("tx", help="Signed account operations")
    p_tx.add_argument("--priv-key", help="Hex private key (default: $ORDERFLOW_KEY)")
    sp_tx = p_tx.add_subparsers(dest="tx_command", required=True)

    pt_stake = sp_tx.add_parser("stake", help="Stake tokens")
    pt_stake.add_argument("amount", help=f"Amount in {DENOM}")
    pt_stake.set_defaults(func=cmd_tx_stake)

    pt_unstake = sp_tx.add_parser("unstake", help="Start the unstake cooldown")
    pt_unstake.add_argument("amount", help=f"Amount in {DENOM}")
    pt_unstake.set_defaults(func=cmd_tx_unstake)

    pt_withdraw = sp_tx.add_parser("withdraw", help="Withdraw after the cooldown")
    pt_withdraw.set_defaults(func=cmd_tx_withdraw)

    pt_vested = sp_tx.add_parser("claim-vested", help="Release vested rewards")
    pt_vested.set_defaults(func=cmd_tx_claim_vested)

    pt_compound = sp_tx.add_parser("auto-compound", help="Toggle re-staking of immediate rewards")
    pt_compound.add_argument("state", choices=["on", "off"])
    pt_compound.set_defaults(func=cmd_tx_auto_compound)

    args = parser.parse_args(argv)
    args.func(args)

if __name__ == "__main__":
    main()
