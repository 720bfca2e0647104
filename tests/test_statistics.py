from decimal import Decimal

from receipt_recon.matching.currency import CurrencyNormalizer, normalize
from receipt_recon.models.ledger import MatchOrigin, MonetaryAmount
from receipt_recon.models.working_set import LedgerWorkingSet
from receipt_recon.reports.statistics import ReconciliationStatistics

RATES = {"USD": 1.0, "EUR": 1.08, "GBP": 1.27}


def _compute(working_set):
    return ReconciliationStatistics.compute(
        working_set.transactions, working_set.receipts, RATES, "USD"
    )


def test_normalize_uses_rate_table():
    assert normalize(MonetaryAmount("100", "EUR"), RATES, "USD") == Decimal("108.00")
    assert normalize(MonetaryAmount("-10", "GBP"), RATES, "USD") == Decimal("-12.70")


def test_normalize_ignores_rate_table_key_case():
    assert normalize(MonetaryAmount("1", "EUR"), {"eur": 1.08}, "USD") == Decimal("1.08")
    assert CurrencyNormalizer({"eur": 1.08}, "usd").normalize(MonetaryAmount("1", "eur")) == Decimal("1.08")


def test_unknown_currency_converts_at_one(caplog):
    normalizer = CurrencyNormalizer(RATES, "USD")
    with caplog.at_level("WARNING"):
        assert normalizer.normalize(MonetaryAmount("7", "JPY")) == Decimal("7")
        normalizer.normalize(MonetaryAmount("8", "JPY"))
    assert sum("JPY" in r.message for r in caplog.records) == 1


def test_counts_and_coverage(working_set):
    working_set.apply_match("T1", "R1", MatchOrigin.DETERMINISTIC, "Exact")
    working_set.apply_match("T2", "R2", MatchOrigin.MANUAL, "Manually linked")

    summary = _compute(working_set)

    assert summary.total_transactions == 3
    assert summary.matched_count == 2
    assert summary.missing_receipts == 0
    assert summary.unmatched_receipts == 1
    assert summary.count_coverage == 2 / 3
    assert summary.value_coverage == 1.0
    assert summary.matches_by_origin[MatchOrigin.DETERMINISTIC] == 1
    assert summary.matches_by_origin[MatchOrigin.SUGGESTED] == 0


def test_income_counts_toward_count_coverage_only(working_set):
    summary = _compute(working_set)

    assert summary.count_coverage == 0.0
    assert summary.value_coverage == 0.0
    assert summary.total_expense_value == Decimal("62.40")
    assert summary.missing_receipts == 2


def test_no_expenses_means_full_value_coverage(make_transaction):
    working_set = LedgerWorkingSet(transactions=[make_transaction("T1", "25.00")])
    summary = _compute(working_set)

    assert summary.value_coverage == 1.0
    assert summary.count_coverage == 0.0


def test_empty_working_set():
    summary = _compute(LedgerWorkingSet())

    assert summary.total_transactions == 0
    assert summary.count_coverage == 0.0
    assert summary.value_coverage == 1.0


def test_ignored_transactions_are_excluded(working_set):
    working_set.set_ignored("T3", True)
    summary = _compute(working_set)

    assert summary.total_transactions == 2
    assert summary.ignored_count == 1


def test_values_are_normalized(make_transaction, make_receipt):
    working_set = LedgerWorkingSet(
        transactions=[
            make_transaction("T1", "-100.00", currency="EUR"),
            make_transaction("T2", "-10.00"),
        ],
        receipts=[make_receipt("R1", "100.00", currency="EUR")],
    )
    working_set.apply_match("T1", "R1", MatchOrigin.MANUAL, "Manually linked")

    summary = _compute(working_set)

    assert summary.total_expense_value == Decimal("118.00")
    assert summary.matched_expense_value == Decimal("108.00")
    assert summary.unmatched_expense_value == Decimal("10.00")


def test_variance_between_bank_and_receipt(make_transaction, make_receipt):
    working_set = LedgerWorkingSet(
        transactions=[make_transaction("T1", "-50.00")],
        receipts=[make_receipt("R1", "49.98")],
    )
    working_set.apply_match("T1", "R1", MatchOrigin.DETERMINISTIC, "Exact")

    summary = _compute(working_set)

    assert summary.total_amount_variance == Decimal("0.02")
    assert summary.variance_count == 1
