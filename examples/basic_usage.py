#!/usr/bin/env python3
"""Basic usage example for the claim registry.

This example demonstrates:
- Claiming addresses with ownership signatures
- Keeping a claim private and whitelisting viewers
- Editing a DID document
- Claiming a word handle
- Building social connections and attestations
- Scoring reputation from attestations
"""

from claim_registry import AuthorizationError, IdentityService, Profile
from claim_registry.signatures import address_of, claim_message_hash, sign_message_hash


def make_principal(seed: int) -> tuple[bytes, str]:
    key = bytes([seed]) * 32
    return key, address_of(key)


def main():
    """Run basic registry operations."""
    service = IdentityService()

    alice_key, alice = make_principal(1)
    bob_key, bob = make_principal(2)
    _, carol = make_principal(3)

    # Claim both addresses
    print("Claiming addresses...")
    for key, address, name in ((alice_key, alice, "Alice"), (bob_key, bob, "Bob")):
        signature = sign_message_hash(key, claim_message_hash(address))
        summary = service.claim_address(
            address, address, signature, Profile(name=name, is_private=(name == "Alice"))
        )
        print(f"  {summary.name}: {summary.claimant}")

    # Privacy
    print("\nWhitelisting Bob on Alice's private claim...")
    service.add_viewer(alice, bob)
    print(f"  Bob sees: {service.get_claim(alice, caller=bob).name}")
    try:
        service.get_claim(alice, caller=carol)
    except AuthorizationError as e:
        print(f"  Carol denied: {e}")

    # DID document
    print("\nEditing Alice's DID document...")
    service.add_service_endpoint(alice, "messaging", "MessagingService", "https://msg.example.com")
    service.add_also_known_as(alice, "twitter:@alice")
    document = service.get_did_document(alice, caller=alice)
    print(f"  {document.did} -> {service.resolve_did(document.did)}")
    print(f"  Services: {list(document.service_endpoints)}")

    # Handles
    print("\nClaiming a handle...")
    handle = service.suggest_handle(alice, min_length=2)
    service.claim_handle(alice, handle)
    print(f"  Alice owns handle {handle.hex()}")

    # Social graph
    print("\nConnecting Alice and Bob...")
    service.follow_user(alice, bob)
    service.send_friend_request(alice, bob)
    service.accept_friend_request(bob, alice)
    print(f"  Relationship: {service.relationship(alice, bob).relationship_type}")

    # Attestation
    service.create_attestation(bob, alice, 90, comment="met in person")
    print(f"  Bob trusts Alice at {service.get_attestation(bob, alice).trust_level}")

    # Reputation
    summary = service.reputation_summary(alice)
    print(f"  Alice's reputation: {summary.score} ({summary.category})")
    print(f"  Seen from Bob: {service.reputation(alice, observer=bob).score:.1f}")

    print(f"\n{len(service.sink.events)} events committed")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
    except Exception as e:
        print(f"\nError: {e}")
        import traceback
        traceback.print_exc()
