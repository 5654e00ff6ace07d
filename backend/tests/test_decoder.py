from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from app.domain import RawEvent
from app.errors import DecodeError
from app.models import Outcome
from ingestion.decoder import decode_finality_event
from ingestion.felt import format_address, get_selector_from_name

SELECTOR = get_selector_from_name("EventTimeout")


def _raw(data, *, keys=None, block_number=103) -> RawEvent:
    return RawEvent(
        from_address="0xa1",
        keys=tuple(keys if keys is not None else [hex(SELECTOR)]),
        data=tuple(data),
        block_number=block_number,
        transaction_hash="0xfeed",
    )


def test_decodes_matching_event():
    decoded = decode_finality_event(_raw(["0xa1", "0x1", "0x6553f100"]), SELECTOR)

    assert decoded is not None
    assert decoded.contract_address == format_address("0xa1")
    assert decoded.block_number == 103
    assert decoded.resolved_outcome is Outcome.WIN
    assert decoded.timestamp == 0x6553F100
    assert decoded.transaction_hash == "0xfeed"


def test_selector_comparison_ignores_zero_padding():
    padded = "0x" + format(SELECTOR, "064x")
    decoded = decode_finality_event(_raw(["0xa1", "0x0", "0x1"], keys=[padded]), SELECTOR)
    assert decoded is not None
    assert decoded.resolved_outcome is Outcome.LOSE


@pytest.mark.parametrize("keys", [[], ["0x1234"], ["not-hex"]])
def test_non_matching_selector_is_skipped(keys):
    assert decode_finality_event(_raw(["0xa1", "0x1", "0x1"], keys=keys), SELECTOR) is None


@pytest.mark.parametrize(
    "data",
    [
        ["0xa1", "0x1"],
        ["0xa1", "0x2", "0x1"],
        ["0xa1", "0x1", "xyz"],
    ],
)
def test_malformed_payload_raises_decode_error(data):
    raw = _raw(data)
    with pytest.raises(DecodeError) as excinfo:
        decode_finality_event(raw, SELECTOR)
    assert excinfo.value.raw_event is raw


def test_event_without_block_number_is_rejected():
    with pytest.raises(DecodeError):
        decode_finality_event(_raw(["0xa1", "0x1", "0x1"], block_number=None), SELECTOR)


def test_oversized_timestamp_still_resolves_the_event():
    decoded = decode_finality_event(_raw(["0xa1", "0x0", hex(1 << 64)]), SELECTOR)

    assert decoded is not None
    assert decoded.resolved_outcome is Outcome.LOSE
    assert decoded.timestamp == 0


def test_finished_at_converts_unix_timestamp():
    decoded = decode_finality_event(_raw(["0xa1", "0x1", "0x6553f100"]), SELECTOR)

    assert decoded.finished_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert replace(decoded, timestamp=(1 << 64) - 1).finished_at is None
