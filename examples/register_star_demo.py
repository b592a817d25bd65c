# examples/register_star_demo.py
# Run with: python examples/register_star_demo.py
#
# Registers two stars in an in-memory ledger, then shows tamper detection.

import logging
from dataclasses import replace

from starledger import StarRegistry, StarClaim, Block
from starledger.crypto.keys import WalletKey
from starledger.verify.validator import ChainValidator


# =============================================================================
# DEMO
# =============================================================================

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="  %(name)s: %(message)s")

    alice = WalletKey.generate()
    bob = WalletKey.generate()
    registry = StarRegistry()

    print("\n[Registering stars]")
    for wallet, star in [
        (alice, {"dec": "68° 52' 56.9", "ra": "16h 29m 1.0s", "story": "Found from the porch"}),
        (bob, {"dec": "-26° 29' 24.9", "ra": "13h 03m 33.35s", "story": "Birthday star"}),
    ]:
        message = registry.request_message_ownership_verification(wallet.address)
        signature = wallet.sign_message(message)
        block = registry.submit_star(wallet.address, message, signature, star)
        print(f"  height {block.height}: {wallet.address} -> {block.hash[:16]}...")

    print("\n[Chain]")
    for block in registry.chain.blocks:
        prev_preview = block.previous_hash[:12] + "..." if block.previous_hash else "(genesis)"
        print(f"  [{block.height}] {prev_preview} | {block.decode_payload()}")

    print("\n[Stars owned by alice]")
    for owned in registry.get_stars_by_wallet_address(alice.address):
        print(f"  {owned.star}")

    print("\n[Validation]")
    print(f"  Faulty blocks: {registry.validate_chain()}")

    print("\n[Tamper detection]")
    tampered = list(registry.chain.blocks)
    forged = StarClaim(bob.address, "forged", "forged", {"story": "Alice's star is mine now"})
    tampered[1] = replace(tampered[1], body=Block.from_payload(forged).body)
    print(ChainValidator().validate(tampered))

    print("\n" + "=" * 60)
