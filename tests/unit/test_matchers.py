from __future__ import annotations

import logging

import pytest

from nft_batcher.batching import NOT_FOUND, ContentAddressedMatcher, PositionalMatcher


def test_not_found_is_a_falsy_singleton() -> None:
    assert not NOT_FOUND
    assert NOT_FOUND is type(NOT_FOUND)()
    assert repr(NOT_FOUND) == "NOT_FOUND"
    assert NOT_FOUND is not None


def test_positional_matcher_aligns_by_index() -> None:
    matcher = PositionalMatcher()
    assert matcher.match([10, 11, 12], ["a", "b", "c"]) == {10: "a", 11: "b", 12: "c"}


def test_positional_matcher_applies_transform() -> None:
    matcher = PositionalMatcher(transform=lambda value: value.upper() if value else None)
    assert matcher.match([1, 2], ["x", None]) == {1: "X", 2: None}


def test_positional_matcher_ignores_surplus_results(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        matched = PositionalMatcher().match([1], ["a", "b"])
    assert matched == {1: "a"}
    assert "batch_surplus_results" in caplog.text


def test_positional_matcher_leaves_missing_positions_unmatched() -> None:
    assert PositionalMatcher().match([1, 2, 3], ["a"]) == {1: "a"}
    assert PositionalMatcher().match([1, 2], None) == {}


def test_content_addressed_matcher_normalizes_extracted_keys() -> None:
    matcher = ContentAddressedMatcher(
        extract_keys=lambda record: record["ids"],
        normalize_key=int,
    )
    listing = {"ids": ["3", "7"]}

    matched = matcher.match([3, 7, 8], [listing])

    assert matched[3] is listing
    assert matched[7] is listing
    assert matched[8] is NOT_FOUND


def test_content_addressed_matcher_later_record_wins() -> None:
    matcher = ContentAddressedMatcher(extract_keys=lambda record: record["ids"])
    older = {"ids": [1], "intent": "old"}
    newer = {"ids": [1], "intent": "new"}

    assert matcher.match([1], [older, newer])[1] is newer
    assert matcher.match([1], None)[1] is NOT_FOUND
