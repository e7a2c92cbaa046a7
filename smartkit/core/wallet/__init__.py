"""
Smart Wallet Module

Operator-owned ERC-4337 smart accounts, one per (project, user):
- AddressDeriver: deterministic salt and counterfactual address per user id
- SmartWalletService: wallet creation, sends, transaction queries and stats

Usage:
    from smartkit.core.wallet.service import get_wallet_service

    service = get_wallet_service()
    wallet = await service.create_wallet("project-1", "user-42")
    tx = await service.send_transaction(
        "project-1", wallet.address, to="0x000000000000000000000000000000000000dEaD"
    )
"""
