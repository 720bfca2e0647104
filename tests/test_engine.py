import asyncio
import logging
import random

import pytest

from receipt_recon.matching.engine import ReconciliationEngine, SuggestionReport
from receipt_recon.matching.suggestions import FuzzyMatcher
from receipt_recon.models.ledger import MatchOrigin, MatchSuggestion
from receipt_recon.models.working_set import LedgerWorkingSet
from receipt_recon.storage.json_store import JsonWorkingSetStore
from receipt_recon.utils.exceptions import (
    ConfigurationError,
    ConsistencyConflict,
    ReconciliationError,
    SuggestionServiceError,
)


class _NeverAnswers(FuzzyMatcher):
    async def suggest(self, transactions, receipts):
        await asyncio.sleep(3600)
        return []


def test_run_deterministic_commits_matches(config, working_set):
    engine = ReconciliationEngine(config, working_set)

    assert engine.run_deterministic() == 2
    assert engine.run_deterministic() == 0
    assert engine.working_set.get_transaction("T1").match_origin is MatchOrigin.DETERMINISTIC


def test_request_suggestions_reruns_deterministic_pass(config, working_set, stub_matcher):
    matcher = stub_matcher()
    engine = ReconciliationEngine(config, working_set, fuzzy_matcher=matcher)

    report = asyncio.run(engine.request_suggestions())

    assert report.deterministic_matches == 2
    assert report.no_further_matches
    assert report.message == "Found 2 exact matches. No further matches found."
    assert matcher.calls == [(["T3"], ["R3"])]


def test_request_suggestions_without_rerun(config, working_set, stub_matcher):
    engine = ReconciliationEngine(config, working_set, fuzzy_matcher=stub_matcher(("T1", "R1")))

    report = asyncio.run(engine.request_suggestions(rerun_deterministic=False))

    assert report.deterministic_matches == 0
    assert report.message == "1 suggested matches ready for review."
    assert not engine.working_set.get_transaction("T1").is_matched

    engine.accept(report.suggestions[0])
    assert engine.working_set.get_transaction("T1").match_origin is MatchOrigin.SUGGESTED


def test_rerun_default_follows_config(config, working_set, stub_matcher):
    config.suggestions.rerun_deterministic = False
    engine = ReconciliationEngine(config, working_set, fuzzy_matcher=stub_matcher())

    report = asyncio.run(engine.request_suggestions())

    assert report.deterministic_matches == 0
    assert report.message == "No further matches found."


def test_timeout_is_a_service_error(config, working_set):
    engine = ReconciliationEngine(config, working_set, fuzzy_matcher=_NeverAnswers())

    with pytest.raises(SuggestionServiceError):
        asyncio.run(engine.request_suggestions(rerun_deterministic=False, timeout=0.01))

    assert not engine.orchestrator.in_flight
    assert engine.pending_suggestions == []


def test_suggestions_need_a_matcher(config, working_set):
    engine = ReconciliationEngine(config, working_set)

    with pytest.raises(ConfigurationError):
        asyncio.run(engine.request_suggestions())
    with pytest.raises(ConfigurationError):
        engine.dismiss(MatchSuggestion("T1", "R1", 0.9))
    assert engine.pending_suggestions == []


def test_select_and_link(config, working_set):
    engine = ReconciliationEngine(config, working_set)
    engine.select_transaction("T2")
    engine.select_receipt("R3")

    updated = engine.link_selected()

    assert updated.matched_receipt_id == "R3"
    assert updated.match_origin is MatchOrigin.MANUAL


def test_changes_are_persisted(config, working_set, tmp_path):
    store = JsonWorkingSetStore(tmp_path)
    engine = ReconciliationEngine(config, working_set, store=store, ledger_key="march")

    engine.link("T1", "R1")

    assert store.load("march").get_transaction("T1").matched_receipt_id == "R1"


def test_quota_failure_does_not_roll_back(config, working_set, tmp_path, caplog):
    store = JsonWorkingSetStore(tmp_path, quota_bytes=16)
    engine = ReconciliationEngine(config, working_set, store=store)

    with caplog.at_level(logging.WARNING):
        engine.link("T1", "R1")

    assert engine.working_set.get_transaction("T1").is_matched
    assert not store.path_for("default").exists()
    assert any("not saved" in r.message for r in caplog.records)


def test_statistics_and_report_follow_live_state(config, working_set):
    engine = ReconciliationEngine(config, working_set)
    assert engine.statistics().matched_count == 0

    engine.run_deterministic()
    engine.ignore_transaction("T3")

    summary = engine.statistics()
    assert summary.matched_count == 2
    assert summary.ignored_count == 1
    assert len(engine.unified_report()) == 4


def test_suggestion_report_messages():
    suggestion = MatchSuggestion("T1", "R1", 0.8)
    assert SuggestionReport([suggestion], 3).message == "1 suggested matches ready for review."
    assert SuggestionReport([], 0).message == "No further matches found."


def _assert_one_receipt_per_transaction(working_set: LedgerWorkingSet) -> None:
    LedgerWorkingSet.validate(working_set.transactions, working_set.receipts)
    claimed = [t.matched_receipt_id for t in working_set.transactions if t.is_matched]
    assert len(claimed) == len(set(claimed))


def test_random_operation_sequences_keep_receipts_unique(
    config, make_transaction, make_receipt, stub_matcher
):
    rng = random.Random(7)
    tids = [f"T{i}" for i in range(6)]
    rids = [f"R{i}" for i in range(6)]

    for _ in range(20):
        working_set = LedgerWorkingSet(
            transactions=[make_transaction(t, f"-{rng.choice([10, 20])}.00") for t in tids],
            receipts=[make_receipt(r, f"{rng.choice([10, 20])}.00") for r in rids],
        )
        pairs = [(rng.choice(tids), rng.choice(rids)) for _ in range(8)]
        engine = ReconciliationEngine(config, working_set, fuzzy_matcher=stub_matcher(*pairs))

        for _ in range(40):
            op = rng.choice(["det", "link", "unlink", "ignore", "restore", "suggest", "accept"])
            try:
                if op == "det":
                    engine.run_deterministic()
                elif op == "link":
                    engine.link(rng.choice(tids), rng.choice(rids))
                elif op == "unlink":
                    engine.unlink(rng.choice(tids))
                elif op == "ignore":
                    engine.ignore_transaction(rng.choice(tids))
                elif op == "restore":
                    engine.restore_transaction(rng.choice(tids))
                elif op == "suggest":
                    asyncio.run(engine.request_suggestions(rerun_deterministic=False))
                elif engine.pending_suggestions:
                    engine.accept(rng.choice(engine.pending_suggestions))
            except ReconciliationError:
                pass
            _assert_one_receipt_per_transaction(engine.working_set)


def test_unlink_then_rerun_can_rematch(config, working_set):
    engine = ReconciliationEngine(config, working_set)
    engine.link("T1", "R3")
    engine.unlink("T1")

    assert engine.run_deterministic() == 2
    assert engine.working_set.get_transaction("T1").matched_receipt_id == "R1"


class _GatedMatcher(FuzzyMatcher):
    """Holds the request open until ``release`` is set."""

    def __init__(self, *pairs):
        self.pairs = pairs
        self.release = None

    async def suggest(self, transactions, receipts):
        await self.release.wait()
        return [MatchSuggestion(t, r, 0.9, "Similar amount and date") for t, r in self.pairs]


def test_manual_link_while_request_pending_wins(config, working_set):
    matcher = _GatedMatcher(("T1", "R1"))
    engine = ReconciliationEngine(config, working_set, fuzzy_matcher=matcher)

    async def scenario():
        matcher.release = asyncio.Event()
        request = asyncio.create_task(engine.request_suggestions(rerun_deterministic=False))
        await asyncio.sleep(0)
        assert engine.orchestrator.in_flight
        engine.link("T2", "R1")
        matcher.release.set()
        return await request

    report = asyncio.run(scenario())
    (suggestion,) = report.suggestions
    transactions = list(engine.working_set.transactions)
    history = list(engine.working_set.history)

    with pytest.raises(ConsistencyConflict):
        engine.accept(suggestion)

    assert engine.working_set.transactions == transactions
    assert engine.working_set.history == history
    assert engine.pending_suggestions == []
    assert not engine.working_set.get_transaction("T1").is_matched
    assert engine.working_set.get_transaction("T2").matched_receipt_id == "R1"
