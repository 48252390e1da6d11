#!/usr/bin/env python3
"""
Quick start guide for the Gelap wallet core.

Runs a deposit, a private payment and a withdraw against the in-process
devnet. Nothing leaves the process.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gelap.config import GelapSettings
from gelap.core.keys import NoncePolicy
from gelap.core.wallet import PrivacyWallet, TransferOutput
from gelap.devnet import LocalChain, LocalSigner, MockProver

TOKEN = "0x" + "11" * 20
RECEIVER = "0x" + "ab" * 20


async def run():
    """Run a simple example of the Gelap wallet."""

    print("=" * 70)
    print("GELAP QUICK START EXAMPLE")
    print("=" * 70)
    print()

    # Step 1: Local chain, prover and two wallets
    print("Step 1: Start a local chain and two wallets")
    print("-" * 70)
    settings = GelapSettings(_env_file=None, merkle_tree_depth=16)
    chain = LocalChain(depth=settings.merkle_tree_depth)
    prover = MockProver()
    alice = PrivacyWallet(chain, prover, settings=settings)
    bob = PrivacyWallet(chain, prover, settings=settings)
    await alice.initialize(LocalSigner(b"alice"), NoncePolicy.FIXED)
    await bob.initialize(LocalSigner(b"bob"), NoncePolicy.FIXED)
    print(f"✓ Alice: {alice.address}")
    print(f"✓ Bob:   {bob.address}")
    print()

    # Step 2: Alice deposits
    print("Step 2: Alice deposits 100 tokens")
    print("-" * 70)
    note = await alice.deposit(TOKEN, 100)
    print(f"✓ Note at leaf {note.leaf_index}, commitment {note.commitment.hex()[:32]}...")
    print(f"  Shielded balance: {alice.shielded_balance()}")
    print()

    # Step 3: Alice pays Bob through a stealth address
    print("Step 3: Alice pays Bob 30 tokens")
    print("-" * 70)
    result = await alice.transfer(TOKEN, [TransferOutput(30, bob.public_keys)])
    print(f"✓ Transfer mined in block {result.block_number}")
    await alice.sync()
    await bob.sync(force=True)
    print(f"  Alice balance after sync: {alice.shielded_balance()}")
    print(f"  Bob balance after sync:   {bob.shielded_balance()}")
    print()

    # Step 4: Bob withdraws to a public address
    print("Step 4: Bob withdraws 20 tokens")
    print("-" * 70)
    await bob.withdraw(TOKEN, 20, RECEIVER)
    await bob.sync()
    print(f"✓ Receiver got {chain.withdrawals[RECEIVER]}")
    print(f"  Bob shielded balance: {bob.shielded_balance()}")
    print()

    print("=" * 70)
    print(f"Merkle root: {chain.tree.root.hex()}")
    print(f"Commitments on chain: {len(chain.tree)}")
    print("=" * 70)


def main():
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(run())


if __name__ == "__main__":
    main()
