import asyncio
import logging

import pytest

from app.core.errors import (
    DistributionFailed,
    DistributionUnavailable,
    DuplicateFundingTransaction,
    InvalidAddress,
    InvalidAmount,
    MissingField,
    TransactionNotConfirmed,
    TransactionNotFound,
    WrongDestination,
)
from app.schemas.grants import GrantCreate
from app.services.grant_service import MOCK_SENDER, split_fee
from app.tests.fakes import GRANTOR, RECIPIENT, TREASURY, OUTSIDER, ONE_HUNDREDTH_ETH


def run(coro):
    return asyncio.run(coro)


@pytest.mark.parametrize("gross", [0, 1, 19, 20, 21, 99, 100, 10**16, 123456789012345678901, 2**256 - 1])
def test_fee_split_invariants(gross):
    s = split_fee(gross, 5)
    assert s.fee + s.net == gross
    assert s.fee == gross * 5 // 100
    assert 0 <= s.fee <= gross


def test_fee_split_rejects_bad_percent():
    with pytest.raises(ValueError):
        split_fee(100, 100)
    with pytest.raises(ValueError):
        split_fee(-1, 5)


# ─────────── validation ───────────

@pytest.mark.parametrize("body", [{}, {"recipient": RECIPIENT}, {"txHash": "0xf1"}])
def test_missing_fields(grant_service, body):
    with pytest.raises(MissingField) as exc:
        run(grant_service.create_grant(GrantCreate(**body), mock=True))
    assert "instructions" in exc.value.extra


def test_invalid_recipient_has_no_side_effects(grant_service, chain, ledger):
    chain.fund("0xf1")
    with pytest.raises(InvalidAddress):
        run(grant_service.create_grant(GrantCreate(recipient="0x1234", txHash="0xf1")))
    assert ledger.list() == []
    assert chain.sent == []


# ─────────── live mode ───────────

def test_live_grant_verifies_and_forwards_net(grant_service, chain, ledger):
    chain.fund("0xF1", sender=GRANTOR, value=ONE_HUNDREDTH_ETH)
    chain.signing = True

    outcome = run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xF1", reason="docs")))
    g = outcome.grant

    assert chain.sent == [(RECIPIENT, 95 * 10**14)]
    assert g.gross_amount == ONE_HUNDREDTH_ETH
    assert g.fee == 5 * 10**14
    assert g.net_amount == 95 * 10**14
    assert g.grantor == GRANTOR
    assert g.funding_tx_hash == "0xf1"
    assert g.mock is False
    assert outcome.explorer_url == f"https://basescan.org/tx/{g.distribution_tx_hash}"
    assert ledger.get_by_id(g.id).id == g.id


def test_explicit_grantor_overrides_sender(grant_service, chain):
    chain.fund("0xf1", sender=GRANTOR)
    outcome = run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1", grantor=OUTSIDER)))
    assert outcome.grant.grantor == OUTSIDER


def test_unknown_transaction(grant_service, ledger):
    with pytest.raises(TransactionNotFound):
        run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xnope")))
    assert ledger.list() == []


@pytest.mark.parametrize("status", [0, None])
def test_failed_or_pending_transaction(grant_service, chain, ledger, status):
    chain.fund("0xf1", status=status)
    with pytest.raises(TransactionNotConfirmed):
        run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))
    assert ledger.list() == []


def test_wrong_destination(grant_service, chain, ledger):
    chain.fund("0xf1", to=OUTSIDER)
    with pytest.raises(WrongDestination) as exc:
        run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))
    assert exc.value.extra == {"expected": TREASURY, "got": OUTSIDER}
    assert chain.sent == []
    assert ledger.list() == []


def test_treasury_match_is_case_insensitive(grant_service, chain):
    chain.fund("0xf1", to=TREASURY.upper().replace("0X", "0x"))
    outcome = run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))
    assert outcome.grant.status == "completed"


def test_distribution_unavailable_without_signing_key(grant_service, chain, ledger):
    chain.fund("0xf1")
    chain.signing = False
    with pytest.raises(DistributionUnavailable):
        run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))
    assert ledger.list() == []


def test_distribution_failure_leaves_funding_tx_unconsumed(grant_service, chain, ledger):
    chain.fund("0xf1")
    chain.send_error = RuntimeError("insufficient funds for gas")
    with pytest.raises(DistributionFailed) as exc:
        run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))
    assert "insufficient funds" in exc.value.detail
    assert ledger.find_by_funding_tx("0xf1") is None

    # caller may retry with the same funding proof
    chain.send_error = None
    outcome = run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))
    assert outcome.grant.funding_tx_hash == "0xf1"


def test_unrecorded_distribution_is_logged(grant_service, chain, ledger, monkeypatch, caplog):
    chain.fund("0xf1")

    def broken_insert(**kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(ledger, "insert", broken_insert)
    with caplog.at_level(logging.ERROR, logger="app.services.grant_service"):
        with pytest.raises(RuntimeError):
            run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))

    sent_hash = "0x" + f"{1:064x}"
    assert chain.sent == [(RECIPIENT, 95 * 10**14)]
    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert any(sent_hash in m and "0xf1" in m for m in errors)


# ─────────── simulated mode ───────────

def test_mock_grant_uses_defaults_and_skips_chain(grant_service, chain):
    outcome = run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xm1"), mock=True))
    g = outcome.grant
    assert g.gross_amount == ONE_HUNDREDTH_ETH
    assert g.grantor == MOCK_SENDER
    assert g.reason == "Direct grant"
    assert g.mock is True
    assert g.distribution_tx_hash.startswith("0xmock")
    assert len(g.distribution_tx_hash) == len("0xmock") + 32
    assert chain.sent == []


def test_mock_grant_with_amount(grant_service):
    outcome = run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xm1", amount="1.5 ETH"), mock=True))
    assert outcome.split.gross == 15 * 10**17
    assert outcome.split.fee == 75 * 10**15


def test_mock_grant_rejects_bad_amount(grant_service, ledger):
    with pytest.raises(InvalidAmount):
        run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xm1", amount="lots"), mock=True))
    assert ledger.list() == []


# ─────────── idempotency ───────────

def test_same_funding_tx_twice(grant_service, chain, ledger):
    chain.fund("0xf1")
    first = run(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash="0xf1")))
    with pytest.raises(DuplicateFundingTransaction) as exc:
        run(grant_service.create_grant(GrantCreate(recipient=OUTSIDER, txHash="0XF1".replace("0X", "0x"))))
    assert exc.value.grant_id == first.grant.id
    assert exc.value.extra == {"grantId": first.grant.id}
    assert len(ledger.list()) == 1
    assert len(chain.sent) == 1


def test_concurrent_submissions_distribute_once(grant_service, chain, ledger):
    chain.fund("0xf1")
    chain.send_delay = 0.01

    async def burst():
        reqs = [GrantCreate(recipient=RECIPIENT, txHash="0xf1") for _ in range(8)]
        return await asyncio.gather(*(grant_service.create_grant(r) for r in reqs), return_exceptions=True)

    results = run(burst())
    ok = [r for r in results if not isinstance(r, Exception)]
    dupes = [r for r in results if isinstance(r, DuplicateFundingTransaction)]

    assert len(ok) == 1
    assert len(dupes) == 7
    assert {d.grant_id for d in dupes} == {ok[0].grant.id}
    assert len(chain.sent) == 1
    assert len(ledger.list()) == 1


def test_distinct_funding_txs_do_not_block_each_other(grant_service, chain, ledger):
    for n in range(3):
        chain.fund(f"0xf{n}")
    chain.send_delay = 0.01

    async def burst():
        return await asyncio.gather(
            *(grant_service.create_grant(GrantCreate(recipient=RECIPIENT, txHash=f"0xf{n}")) for n in range(3))
        )

    run(burst())
    assert len(ledger.list()) == 3
    stats, _ = ledger.get_grantor_stats(GRANTOR)
    assert stats.total_grants == 3
    assert stats.total_amount == 3 * ONE_HUNDREDTH_ETH


# ─────────── e2e ───────────

def test_e2e_defaults_recipient_to_treasury(grant_service, chain):
    chain.fund("0xe1")
    steps = []
    outcome = run(grant_service.run_e2e("0xe1", trail=steps))
    assert outcome.grant.recipient == TREASURY
    assert outcome.grant.reason == "E2E Test Grant"
    assert [s.get("status") for s in steps if "status" in s] == ["verified", "sent"]


def test_e2e_requires_tx_hash(grant_service):
    with pytest.raises(MissingField) as exc:
        run(grant_service.run_e2e(None))
    assert exc.value.detail == "txHash required"
