from __future__ import annotations

from scripts.append_race_check import _percentile, summarize_messages


def test_summarize_messages_consistent_run() -> None:
    summary = summarize_messages(
        sent_texts=["m1", "m2", "m3"],
        stored_texts=["m2", "m1", "m3"],
        initial_count=0,
    )

    assert summary["consistent"] is True
    assert summary["expected_total"] == 3
    assert summary["missing"] == []
    assert summary["duplicated"] == []


def test_summarize_messages_flags_lost_and_duplicated_appends() -> None:
    summary = summarize_messages(
        sent_texts=["m1", "m2", "m3"],
        stored_texts=["m1", "m1", "m3"],
        initial_count=0,
    )

    assert summary["consistent"] is False
    assert summary["missing"] == ["m2"]
    assert summary["duplicated"] == ["m1"]


def test_percentile_interpolates() -> None:
    assert _percentile([], 0.5) is None
    assert _percentile([4.0], 0.95) == 4.0
    assert _percentile([1.0, 2.0, 3.0, 4.0], 0.5) == 2.5
