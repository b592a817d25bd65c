# tests/test_ownership.py
import math
import re
import pytest
from dataclasses import replace

from starledger.chain.manager import ChainManager
from starledger.chain.ownership import OwnershipVerifier, parse_challenge_timestamp
from starledger.core.errors import (
    ChainInvalid,
    ChainRejected,
    ClaimError,
    DecodeError,
    Expired,
    InternalError,
    InvalidSignature,
    MalformedMessage,
)
from starledger.core.types import StarClaim, OwnedStar
from starledger.crypto.keys import WalletKey
from starledger.registry import StarRegistry

STAR = {"dec": "68° 52' 56.9", "ra": "16h 29m 1.0s", "story": "Testing the story 4"}


class FakeClock:
    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wallet():
    return WalletKey.generate()


@pytest.fixture
def chain(clock):
    return ChainManager(clock=clock)


@pytest.fixture
def flow(chain, clock):
    return OwnershipVerifier(chain, clock=clock)


def test_issue_challenge_format(flow, clock):
    assert flow.issue_challenge("addr1") == f"addr1:{clock.now}:starRegistry"


def test_issue_challenge_custom_tag(chain, clock):
    flow = OwnershipVerifier(chain, clock=clock, tag="myRegistry")
    assert flow.issue_challenge("a").endswith(":myRegistry")


def test_submit_claim_commits_block(flow, chain, wallet):
    message = flow.issue_challenge(wallet.address)
    block = flow.submit_claim(wallet.address, message, wallet.sign_message(message), STAR)

    assert chain.height == 1
    assert block.height == 1
    assert block.previous_hash == chain.get_block_by_height(0).hash
    payload = block.decode_payload()
    assert isinstance(payload, StarClaim)
    assert payload.address == wallet.address
    assert payload.message == message
    assert payload.star == STAR


@pytest.mark.parametrize("elapsed", [0, 1, 299])
def test_within_window_accepted(flow, clock, wallet, elapsed):
    message = flow.issue_challenge(wallet.address)
    clock.now += elapsed
    block = flow.submit_claim(wallet.address, message, wallet.sign_message(message), STAR)
    assert block.height == 1


@pytest.mark.parametrize("elapsed", [300, 301, 3600])
def test_at_or_past_threshold_expired(flow, chain, clock, wallet, elapsed):
    message = flow.issue_challenge(wallet.address)
    clock.now += elapsed
    with pytest.raises(Expired):
        flow.submit_claim(wallet.address, message, wallet.sign_message(message), STAR)
    assert chain.height == 0


def test_custom_threshold(chain, clock, wallet):
    flow = OwnershipVerifier(chain, clock=clock, threshold=10)
    message = flow.issue_challenge(wallet.address)
    clock.now += 10
    with pytest.raises(Expired):
        flow.submit_claim(wallet.address, message, wallet.sign_message(message), STAR)


def test_threshold_must_be_positive(chain):
    with pytest.raises(ValueError):
        OwnershipVerifier(chain, threshold=0)


def test_wrong_signer_rejected(flow, chain, wallet):
    intruder = WalletKey.generate()
    message = flow.issue_challenge(wallet.address)
    with pytest.raises(InvalidSignature):
        flow.submit_claim(wallet.address, message, intruder.sign_message(message), STAR)
    assert chain.height == 0


def test_garbage_signature_rejected(flow, chain, wallet):
    message = flow.issue_challenge(wallet.address)
    with pytest.raises(InvalidSignature):
        flow.submit_claim(wallet.address, message, "bm90IGEgc2lnbmF0dXJl", STAR)
    assert chain.height == 0


@pytest.mark.parametrize("message", [
    "no-colons-here",
    "addr1:later:starRegistry",
    "addr1::starRegistry",
    "addr1:-5:starRegistry",
    "addr1:12.5:starRegistry",
])
def test_malformed_message(flow, message):
    with pytest.raises(MalformedMessage):
        flow.submit_claim("addr1", message, "sig", STAR)


def test_parse_challenge_timestamp():
    assert parse_challenge_timestamp("a:1700000000:starRegistry") == 1700000000
    assert parse_challenge_timestamp("a:42") == 42


def test_star_passed_through_untouched(flow, chain, wallet):
    message = flow.issue_challenge(wallet.address)
    flow.submit_claim(wallet.address, message, wallet.sign_message(message), ["not", "a", "dict"])
    assert chain.get_claims_by_address(wallet.address) == [
        OwnedStar(star=["not", "a", "dict"], owner=wallet.address)
    ]


@pytest.mark.parametrize("star", [{"dec": math.inf}, {"ra": math.nan}])
def test_non_finite_star_rejected(flow, chain, wallet, star):
    message = flow.issue_challenge(wallet.address)
    with pytest.raises(DecodeError):
        flow.submit_claim(wallet.address, message, wallet.sign_message(message), star)
    assert chain.height == 0


def test_verifier_fault_is_internal_error(chain, clock):
    def broken(message, address, signature):
        raise RuntimeError("verifier crashed")

    flow = OwnershipVerifier(chain, verify=broken, clock=clock)
    message = flow.issue_challenge("addr1")
    with pytest.raises(InternalError):
        flow.submit_claim("addr1", message, "sig", STAR)
    assert chain.height == 0


def test_chain_rejection_propagates(flow, chain, wallet):
    chain._blocks[0] = replace(chain._blocks[0], timestamp=1)
    message = flow.issue_challenge(wallet.address)

    with pytest.raises(ChainRejected) as exc:
        flow.submit_claim(wallet.address, message, wallet.sign_message(message), STAR)
    assert isinstance(exc.value.__cause__, ChainInvalid)
    assert isinstance(exc.value, ClaimError)
    assert chain.height == 0


def test_replay_within_window_is_accepted(flow, chain, wallet):
    message = flow.issue_challenge(wallet.address)
    signature = wallet.sign_message(message)
    flow.submit_claim(wallet.address, message, signature, STAR)
    flow.submit_claim(wallet.address, message, signature, STAR)
    assert chain.height == 2


def test_registry_scenario(clock):
    alice, bob = WalletKey.generate(), WalletKey.generate()
    registry = StarRegistry(clock=clock)

    registry.initialize_chain()
    assert registry.get_chain_height() == 0
    genesis = registry.get_block_by_height(0)
    assert genesis.previous_hash is None

    message = registry.request_message_ownership_verification(alice.address)
    assert re.fullmatch(rf"{alice.address}:\d+:starRegistry", message)

    clock.now += 120
    block = registry.submit_star(alice.address, message, alice.sign_message(message), {"dec": "1", "ra": "2"})
    assert registry.get_chain_height() == 1
    assert block.height == 1
    assert block.previous_hash == genesis.hash
    assert registry.get_block_by_hash(block.hash) == block
    assert registry.validate_chain() == []

    bob_msg = registry.request_message_ownership_verification(bob.address)
    registry.submit_star(bob.address, bob_msg, bob.sign_message(bob_msg), {"dec": "3", "ra": "4"})

    assert registry.get_stars_by_wallet_address(alice.address) == [
        OwnedStar(star={"dec": "1", "ra": "2"}, owner=alice.address)
    ]
    assert registry.get_stars_by_wallet_address("1NobodyHere") == []


def test_registry_rejects_non_finite_star(clock, wallet):
    registry = StarRegistry(clock=clock)
    message = registry.request_message_ownership_verification(wallet.address)
    with pytest.raises(DecodeError, match="not representable"):
        registry.submit_star(wallet.address, message, wallet.sign_message(message), {"dec": math.inf})
    assert registry.get_chain_height() == 0
