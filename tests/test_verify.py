# tests/test_verify.py
import pytest
from dataclasses import replace

from starledger.chain.manager import ChainManager
from starledger.core.types import Block, StarClaim
from starledger.verify.validator import ChainValidator, VerificationResult


def create_test_chain(n_claims=4):
    chain = ChainManager(clock=lambda: 1_700_000_000)
    for i in range(n_claims):
        chain.append(Block.from_payload(StarClaim(
            address=f"addr{i % 2}",
            message=f"addr{i % 2}:1700000000:starRegistry",
            signature="sig",
            star={"ra": f"{i}h"},
        )))
    return list(chain.blocks)


def test_valid_chain():
    blocks = create_test_chain(5)
    result = ChainValidator().validate(blocks)
    assert result.is_valid is True
    assert result.faulty_indices == []
    assert bool(result)
    assert "valid" in str(result).lower()


@pytest.mark.parametrize("blocks", [[], [Block.genesis().seal(0, None, 1)]])
def test_trivial_chains_are_valid(blocks):
    assert ChainValidator().validate(blocks).is_valid


def test_tamper_content():
    blocks = create_test_chain(5)
    forged = Block.from_payload(StarClaim("addr9", "m", "s", {"ra": "stolen"}))
    blocks[2] = replace(blocks[2], body=forged.body)

    result = ChainValidator().validate(blocks)
    assert not result.is_valid
    assert result.faulty_indices == [2]
    assert result.first_failure.category == "hash"


def test_broken_hash_link():
    blocks = create_test_chain(5)
    blocks[3] = replace(blocks[3], previous_hash="deadbeef" * 8)

    result = ChainValidator().validate(blocks)
    assert not result.is_valid
    assert 2 in result.faulty_indices
    assert any(f.category == "link" and f.index == 2 for f in result.failures)


def test_rehashed_forgery_still_breaks_link():
    blocks = create_test_chain(4)
    forged = replace(blocks[1], body=Block.from_payload(StarClaim("x", "m", "s", {})).body, hash="")
    blocks[1] = forged.seal(forged.height, forged.previous_hash, forged.timestamp)

    result = ChainValidator().validate(blocks)
    assert result.faulty_indices == [1]
    assert result.first_failure.category == "link"


def test_both_faults_report_duplicate_index():
    blocks = create_test_chain(4)
    blocks[1] = replace(blocks[1], body="00", hash="ff" * 32)

    result = ChainValidator().validate(blocks)
    assert result.faulty_indices == [1, 1]
    assert [f.category for f in result.failures] == ["hash", "link"]


def test_last_block_content_not_checked_alone():
    blocks = create_test_chain(3)
    blocks[-1] = replace(blocks[-1], body="00")
    assert ChainValidator().validate(blocks).is_valid


def test_failure_report_lists_issues():
    blocks = create_test_chain(3)
    blocks[1] = replace(blocks[1], timestamp=0)
    text = str(ChainValidator().validate(blocks))
    assert "FAILED" in text
    assert "[1] hash" in text


def test_manager_validate_chain_reports_indices():
    chain = ChainManager(clock=lambda: 1_700_000_000)
    for i in range(3):
        chain.append(Block.from_payload(StarClaim("a", "m", "s", {"i": i})))
    assert chain.validate_chain() == []

    chain._blocks[0] = replace(chain._blocks[0], timestamp=1)
    assert chain.validate_chain() == [0]


def test_empty_result_defaults():
    result = VerificationResult()
    assert result.is_valid
    assert result.first_failure is None
