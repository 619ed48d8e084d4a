import asyncio
import time

import pytest

from newshub.utils.concurrency import run_with_deadline, settle_all
from newshub.utils.hashing import generate_article_id
from newshub.utils.time import (
    convert_date_str_to_timestamp,
    convert_epoch_millis_to_timestamp,
    timestamp_to_iso,
)

from conftest import never_finishes


class TestTime:

    @pytest.mark.parametrize("date_str, expected", [
        ("Mon, 01 Jan 2024 00:00:00 GMT", 1704067200),
        ("Mon, 01 Jan 2024 08:00:00 +0800", 1704067200),
        ("2024-01-01T00:00:00Z", 1704067200),
        ("2024-01-01T00:00:00", 1704067200),
    ])
    def test_parses_feed_dates(self, date_str, expected):
        assert convert_date_str_to_timestamp(date_str) == expected

    @pytest.mark.parametrize("date_str", [None, "", "not a date"])
    def test_unparseable_dates_fall_back_to_now(self, date_str):
        before = int(time.time())

        assert before <= convert_date_str_to_timestamp(date_str) <= int(time.time()) + 1

    def test_epoch_millis(self):
        assert convert_epoch_millis_to_timestamp(1704067200999) == 1704067200

    def test_iso(self):
        assert timestamp_to_iso(1704067200) == "2024-01-01T00:00:00+00:00"


def test_article_id_is_stable_and_scoped_by_source():
    first = generate_article_id("cnn", "https://example.com/a", "Title")

    assert first == generate_article_id("cnn", "https://example.com/a", "Title")
    assert first.startswith("cnn-")
    assert first != generate_article_id("bbc-news", "https://example.com/a", "Title")


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_settle_all_keeps_order_and_errors(self):
        async def ok(value):
            await asyncio.sleep(0)
            return value

        async def fail():
            raise RuntimeError("boom")

        results = await settle_all([ok(1), fail(), ok(3)])

        assert [r.ok for r in results] == [True, False, True]
        assert results[0].value == 1
        assert isinstance(results[1].error, RuntimeError)
        assert results[2].value == 3

    @pytest.mark.asyncio
    async def test_run_with_deadline_returns_default_on_timeout(self):
        assert await run_with_deadline(never_finishes(), timeout=0.01, default=[]) == []

    @pytest.mark.asyncio
    async def test_run_with_deadline_returns_result(self):
        async def quick():
            return ["article"]

        assert await run_with_deadline(quick(), timeout=1, default=[]) == ["article"]
