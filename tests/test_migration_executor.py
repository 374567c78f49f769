import logging

import pytest

from bapp.schemas.migration import (
    DuplicateSplit,
    HalfMonthMode,
    HighestMerge,
    LastMerge,
    LastSplit,
    ManualMerge,
    ManualSplit,
    MigrationStrategy,
)
from bapp.schemas.period import Bucket, Period
from bapp.services.migration_analyzer import analyze_migration
from bapp.services.migration_executor import execute_migration, merged_notes
from bapp.services.progress_service import (
    initial_records,
    sync_signatures,
    update_progress,
    validate_record_set,
)
from bapp.utils.exceptions import (
    IncompleteStrategyError,
    InvalidPeriodError,
    InvalidRecordSetError,
    NoOpMigrationError,
    StrategyMismatchError,
)

from conftest import by_bucket, by_month, make_records


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------


def test_semiannual_to_bimonthly_duplicate() -> None:
    records = make_records(Period.SEMIANNUAL, {6: 50, 12: 80})

    migrated = execute_migration(6, 2, records, MigrationStrategy(split=DuplicateSplit()))

    assert by_month(migrated) == {2: 50, 4: 50, 6: 50, 8: 80, 10: 80, 12: 80}
    validate_record_set(Period.BIMONTHLY, migrated)


def test_split_last_keeps_value_on_final_target_only() -> None:
    records = make_records(Period.SEMIANNUAL, {6: 50}, notes={6: "termin 1"})

    migrated = execute_migration(6, 2, records, MigrationStrategy(split=LastSplit()))

    assert by_month(migrated) == {2: 0, 4: 0, 6: 50, 8: 0, 10: 0, 12: 0}
    notes = {r.bucket.end_month: r.notes for r in migrated}
    assert notes[2] == notes[4] == notes[6] == "termin 1"
    assert notes[8] is None


def test_split_manual_values_with_fallback_to_source() -> None:
    records = make_records(Period.ANNUAL, {12: 90})
    strategy = MigrationStrategy(split=ManualSplit(percentages={3: 10, 6: 40}))

    migrated = execute_migration(12, 3, records, strategy)

    assert by_month(migrated) == {3: 10, 6: 40, 9: 90, 12: 90}
    assert by_bucket(migrated)[Bucket.month(3)].percentage_overridden


def test_single_target_inherits_without_strategy() -> None:
    records = make_records(Period.FOUR_MONTHLY, {4: 20, 8: 60, 12: 90})

    migrated = execute_migration(4, 3, records)

    assert by_month(migrated) == {3: 20, 6: 0, 9: 0, 12: 90}


def test_unmapped_buckets_are_logged(caplog) -> None:
    records = make_records(Period.FOUR_MONTHLY, {8: 60})

    with caplog.at_level(logging.WARNING, logger="bapp.services.migration_executor"):
        migrated = execute_migration(4, 3, records)

    assert by_month(migrated) == {3: 0, 6: 0, 9: 0, 12: 0}
    assert "Mei - Agu" in caplog.text


def test_split_carries_signature_and_upload_state(signatures) -> None:
    records = initial_records(Period.SEMIANNUAL, signatures)
    records[0] = update_progress(
        records[0],
        signature_updates={s.id: True for s in signatures},
        upload_completed=True,
        upload_link="https://drive.example/bapp-h1.pdf",
    )

    migrated = execute_migration(6, 2, records, MigrationStrategy(split=DuplicateSplit()))

    for record in migrated[:3]:
        assert record.percentage == 100
        assert record.upload_completed
        assert record.upload_link == "https://drive.example/bapp-h1.pdf"
        assert record.completed_signatures == 3
        assert not record.percentage_overridden
    assert all(r.percentage == 0 for r in migrated[3:])


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def test_quarterly_to_annual_highest_with_notes() -> None:
    records = make_records(
        Period.QUARTERLY,
        {3: 0, 6: 40, 9: 40, 12: 100},
        notes={3: "mulai", 6: "revisi dokumen", 9: "menunggu TTD"},
    )
    strategy = MigrationStrategy(
        merge=HighestMerge(),
        keep_notes_from=[Bucket.month(6), Bucket.month(9)],
    )

    [annual] = execute_migration(Period.QUARTERLY, Period.ANNUAL, records, strategy)

    assert annual.bucket == Bucket.month(12)
    assert annual.percentage == 100
    assert annual.notes == "[Jun] revisi dokumen; [Sep] menunggu TTD"


def test_merge_without_kept_notes_drops_them() -> None:
    records = make_records(Period.MONTHLY, {1: 30}, notes={2: "catatan"})

    migrated = execute_migration(1, 3, records, MigrationStrategy(merge=HighestMerge()))

    assert migrated[0].percentage == 30
    assert migrated[0].notes is None


def test_merge_last_uses_source_ending_at_target() -> None:
    records = make_records(Period.MONTHLY, {1: 10, 2: 100, 3: 50, 4: 70})

    migrated = execute_migration(1, 3, records, MigrationStrategy(merge=LastMerge()))

    assert by_month(migrated) == {3: 50, 6: 0, 9: 0, 12: 0}


def test_merge_last_without_source_at_end_month_is_zero() -> None:
    records = make_records(Period.MONTHLY, {1: 10, 4: 70})

    migrated = execute_migration(1, 3, records, MigrationStrategy(merge=LastMerge()))

    assert by_month(migrated) == {3: 0, 6: 0, 9: 0, 12: 0}


def test_merge_manual_with_per_target_override() -> None:
    records = make_records(Period.MONTHLY, {1: 10, 2: 20, 6: 100})
    strategy = MigrationStrategy(merge=ManualMerge(percentage=40, per_target={6: 90}))

    migrated = execute_migration(1, 3, records, strategy)

    assert by_month(migrated) == {3: 40, 6: 90, 9: 0, 12: 0}


def test_half_month_to_monthly_merge() -> None:
    records = make_records(Period.HALF_MONTH)
    records[8] = records[8].model_copy(update={"percentage": 40})
    records[9] = records[9].model_copy(update={"percentage": 70, "notes": "BAPP kedua"})
    strategy = MigrationStrategy(merge=HighestMerge(), keep_notes_from=[Bucket.half(5, 2)])

    migrated = execute_migration(0.5, 1, records, strategy)

    may = by_bucket(migrated)[Bucket.month(5)]
    assert may.percentage == 70
    assert may.notes == "[Mei (2/2)] BAPP kedua"
    assert len(migrated) == 12


def test_half_month_notes_keep_their_sub_period() -> None:
    records = make_records(Period.HALF_MONTH)
    records[8] = records[8].model_copy(update={"notes": "BAPP pertama"})
    records[9] = records[9].model_copy(update={"notes": "BAPP kedua"})
    strategy = MigrationStrategy(
        merge=HighestMerge(),
        keep_notes_from=[Bucket.half(5, 1), Bucket.half(5, 2)],
    )

    migrated = execute_migration(0.5, 1, records, strategy)

    assert by_bucket(migrated)[Bucket.month(5)].notes == "[Mei (1/2)] BAPP pertama; [Mei (2/2)] BAPP kedua"


def test_merged_notes_separator_comes_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("NOTES_SEPARATOR", " | ")
    records = make_records(Period.MONTHLY, notes={1: "a", 2: "b"})
    [candidate] = analyze_migration(1, 3, records).merge_plan

    assert merged_notes(candidate, {Bucket.month(1), Bucket.month(2)}) == "[Jan] a | [Feb] b"
    assert merged_notes(candidate, set()) is None


# ---------------------------------------------------------------------------
# Half-month expansion
# ---------------------------------------------------------------------------


def test_monthly_to_half_month_empty_second_half() -> None:
    records = make_records(Period.MONTHLY, {5: 60})

    migrated = execute_migration(1, 0.5, records, MigrationStrategy(half_month=HalfMonthMode.EMPTY))

    indexed = by_bucket(migrated)
    assert indexed[Bucket.half(5, 1)].percentage == 60
    assert indexed[Bucket.half(5, 2)].percentage == 0
    assert len(migrated) == 24


def test_quarterly_to_half_month_duplicates_into_end_month() -> None:
    records = make_records(Period.QUARTERLY, {6: 75})

    migrated = execute_migration(3, 0.5, records)

    indexed = by_bucket(migrated)
    assert indexed[Bucket.half(6, 1)].percentage == 75
    assert indexed[Bucket.half(6, 2)].percentage == 75
    assert indexed[Bucket.half(4, 1)].percentage == 0


# ---------------------------------------------------------------------------
# Round trips and signatures
# ---------------------------------------------------------------------------


def test_monthly_to_annual_and_back() -> None:
    records = make_records(Period.MONTHLY, {3: 30, 12: 100})

    annual = execute_migration(1, 12, records, MigrationStrategy(merge=HighestMerge()))
    monthly = execute_migration(12, 1, annual, MigrationStrategy(split=DuplicateSplit()))

    assert by_month(annual) == {12: 100}
    assert by_month(monthly) == {month: 100 for month in range(1, 13)}


def test_current_signatures_are_applied_to_new_records(signatures) -> None:
    records = make_records(Period.SEMIANNUAL, {6: 50}, signature_ids=["sig-pm"])

    migrated = execute_migration(
        6, 2, records, MigrationStrategy(split=DuplicateSplit()), signatures=signatures
    )

    validate_record_set(Period.BIMONTHLY, migrated, ["sig-pm", "sig-fin", "sig-dir"])
    assert by_month(migrated)[4] == 50


def test_derived_percentage_follows_current_signatures(signatures) -> None:
    records = initial_records(Period.SEMIANNUAL, signatures[:1])
    records[0] = update_progress(records[0], signature_updates={"sig-pm": True}, upload_completed=True)
    assert records[0].percentage == 100

    migrated = execute_migration(
        6, 2, records, MigrationStrategy(split=DuplicateSplit()), signatures=signatures
    )

    for record in migrated[:3]:
        assert record.percentage == 50
        assert not record.percentage_overridden
    assert [r.percentage for r in sync_signatures(migrated, signatures)][:3] == [50, 50, 50]


def test_records_with_diverging_signatures_are_rejected() -> None:
    records = make_records(Period.MONTHLY, {2: 40}, signature_ids=["a"])
    records[1] = make_records(Period.MONTHLY, {2: 40}, signature_ids=["zzz"])[1]

    with pytest.raises(InvalidRecordSetError):
        execute_migration(1, 3, records, MigrationStrategy(merge=HighestMerge()))


def test_record_signature_missing_from_contract_is_rejected(signatures) -> None:
    records = make_records(Period.ANNUAL, {12: 40}, signature_ids=["sig-old"])

    with pytest.raises(InvalidRecordSetError):
        execute_migration(
            12, 6, records, MigrationStrategy(split=DuplicateSplit()), signatures=signatures
        )


def test_empty_record_set_yields_defaults() -> None:
    migrated = execute_migration(12, 0.5, [])

    assert len(migrated) == 24
    assert all(r.percentage == 0 and r.notes is None for r in migrated)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("period", [0.5, 1, 3, 12])
def test_same_period_is_rejected(period) -> None:
    with pytest.raises(NoOpMigrationError):
        execute_migration(period, period, make_records(Period.parse(period)))


def test_unsupported_period_is_rejected() -> None:
    with pytest.raises(InvalidPeriodError):
        execute_migration(1, 5, make_records(Period.MONTHLY))


def test_missing_merge_mode_is_rejected() -> None:
    records = make_records(Period.QUARTERLY, {6: 40})

    with pytest.raises(IncompleteStrategyError):
        execute_migration(3, 12, records)


def test_missing_split_mode_is_rejected() -> None:
    records = make_records(Period.ANNUAL, {12: 40})

    with pytest.raises(IncompleteStrategyError):
        execute_migration(12, 6, records, MigrationStrategy(merge=HighestMerge()))


def test_stale_analysis_is_rejected() -> None:
    records = make_records(Period.QUARTERLY, {6: 40})
    stale = analyze_migration(3, 12, make_records(Period.QUARTERLY, {6: 20}))

    with pytest.raises(StrategyMismatchError):
        execute_migration(3, 12, records, MigrationStrategy(merge=HighestMerge()), analysis=stale)


def test_matching_analysis_is_accepted() -> None:
    records = make_records(Period.QUARTERLY, {6: 40})
    analysis = analyze_migration(3, 12, records)

    migrated = execute_migration(3, 12, records, MigrationStrategy(merge=HighestMerge()), analysis)

    assert by_month(migrated) == {12: 40}


def test_notes_from_non_source_bucket_are_rejected() -> None:
    records = make_records(Period.QUARTERLY, {6: 40}, notes={6: "ok"})
    strategy = MigrationStrategy(merge=HighestMerge(), keep_notes_from=[Bucket.month(9)])

    with pytest.raises(StrategyMismatchError):
        execute_migration(3, 12, records, strategy)


def test_manual_values_for_unknown_targets_are_rejected() -> None:
    records = make_records(Period.MONTHLY, {1: 10})
    strategy = MigrationStrategy(merge=ManualMerge(percentage=50, per_target={9: 80}))

    with pytest.raises(StrategyMismatchError):
        execute_migration(1, 3, records, strategy)


def test_inputs_are_not_mutated() -> None:
    records = make_records(Period.SEMIANNUAL, {6: 50, 12: 80}, notes={12: "akhir"})
    snapshot = [r.model_copy() for r in records]

    execute_migration(6, 1, records, MigrationStrategy(split=LastSplit()))

    assert records == snapshot
