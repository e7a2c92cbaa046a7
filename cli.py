#!/usr/bin/env python3
"""Operator CLI for the SmartKit relay"""

import argparse
import asyncio
from typing import Any, Dict, Optional

import httpx

from smartkit.core.execution.receipt_poller import get_receipt_poller
from smartkit.logging_config import setup_logging

DEFAULT_BASE_URL = "http://localhost:8000"


def print_transaction(tx: Dict[str, Any]) -> None:
    status_icon = {"success": "✅", "failed": "❌"}.get(tx.get("status"), "⏳")
    print(f"\n{status_icon} Transaction {tx.get('status', 'unknown').upper()}")
    print("=" * 50)
    print(f"UserOp hash: {tx.get('userOpHash')}")
    print(f"Tx hash:     {tx.get('txHash') or '-'}")
    print(f"Wallet:      {tx.get('walletAddress')}")
    print(f"To:          {tx.get('to')}")
    print(f"Value (wei): {tx.get('value')}")
    print(f"Sponsored:   {tx.get('gasSponsored')}")
    if tx.get("gasCost"):
        print(f"Gas cost:    {tx['gasCost']} ETH")


async def _request(method: str, url: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    async with httpx.AsyncClient() as client:
        response = await client.request(method, url, json=body, timeout=60)
    if response.status_code >= 400:
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = response.text
        raise RuntimeError(f"HTTP {response.status_code}: {detail}")
    return response.json()


async def cli_create_wallet(base_url: str, project_id: str, user_id: str, email: Optional[str]):
    """Create (or fetch) the wallet for a user"""
    print(f"🔐 Creating wallet for {user_id} in {project_id}...")
    wallet = await _request(
        "POST",
        f"{base_url}/projects/{project_id}/wallets",
        {"userId": user_id, "email": email},
    )
    print(f"Address:  {wallet['address']}")
    print(f"Chain:    {wallet['chainId']}")
    print(f"Deployed: {wallet['deployed']}")


async def cli_send(
    base_url: str,
    project_id: str,
    wallet: str,
    to: str,
    value: str,
    data: str,
    sponsored: bool,
):
    """Send a single call through the relay"""
    print(f"🚀 Sending from {wallet} to {to}...")
    tx = await _request(
        "POST",
        f"{base_url}/projects/{project_id}/transactions",
        {"walletAddress": wallet, "to": to, "value": value, "data": data, "sponsored": sponsored},
    )
    print_transaction(tx)


async def cli_status(base_url: str, project_id: str, hash_: str, wait: bool, interval: float):
    """Show a transaction, optionally waiting for a terminal status"""
    url = f"{base_url}/projects/{project_id}/transactions/{hash_}"
    tx = await _request("GET", url)
    while wait and tx.get("status") not in ("success", "failed"):
        await asyncio.sleep(interval)
        tx = await _request("GET", url)
    print_transaction(tx)


async def cli_recover():
    """Poll every pending transaction in the store to a terminal status"""
    poller = get_receipt_poller()
    scheduled = await poller.recover_pending()
    print(f"🔁 Polling {scheduled} pending transactions...")
    try:
        while poller.active_hashes:
            await asyncio.sleep(1)
    finally:
        await poller.shutdown()
    print("Done.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SmartKit relay CLI")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="Relay API base URL")
    subparsers = parser.add_subparsers(dest="command")

    wallet_parser = subparsers.add_parser("create-wallet", help="Create or fetch a user's wallet")
    wallet_parser.add_argument("project_id", help="Project id")
    wallet_parser.add_argument("user_id", help="Your user identifier")
    wallet_parser.add_argument("--email", help="Optional email stored with the wallet")

    send_parser = subparsers.add_parser("send", help="Send a transaction")
    send_parser.add_argument("project_id", help="Project id")
    send_parser.add_argument("wallet", help="Smart wallet address")
    send_parser.add_argument("to", help="Target address")
    send_parser.add_argument("--value", default="0", help="Value in wei (default: 0)")
    send_parser.add_argument("--data", default="0x", help="Calldata (default: 0x)")
    send_parser.add_argument("--unsponsored", action="store_true", help="Do not request gas sponsorship")

    status_parser = subparsers.add_parser("status", help="Show a transaction by hash")
    status_parser.add_argument("project_id", help="Project id")
    status_parser.add_argument("hash", help="UserOperation or transaction hash")
    status_parser.add_argument("--wait", action="store_true", help="Wait for a terminal status")
    status_parser.add_argument("--interval", type=float, default=2.0, help="Seconds between checks")

    subparsers.add_parser("recover", help="Poll pending transactions left by a stopped server")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    base_url = args.base_url.rstrip("/")

    try:
        if args.command == "create-wallet":
            await cli_create_wallet(base_url, args.project_id, args.user_id, args.email)

        elif args.command == "send":
            await cli_send(
                base_url, args.project_id, args.wallet, args.to,
                args.value, args.data, not args.unsponsored,
            )

        elif args.command == "status":
            await cli_status(base_url, args.project_id, args.hash, args.wait, args.interval)

        elif args.command == "recover":
            setup_logging()
            await cli_recover()

    except (RuntimeError, httpx.HTTPError) as e:
        print(f"❌ Error: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    asyncio.run(main())
