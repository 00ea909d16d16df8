"""Unit tests for the concurrency-bounded downloader"""

import asyncio

import pytest

from registry_mirror.models.registry_item import IndexEntry
from registry_mirror.services.downloader import Downloader


def _entries(count):
    return [IndexEntry(name=f"item-{i}", type="registry:ui") for i in range(count)]


class TestDownloader:
    """Test concurrency bound, failure isolation and progress"""

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            Downloader(0)

    @pytest.mark.asyncio
    async def test_never_exceeds_concurrency(self):
        in_flight = 0
        peak = 0

        async def process(entry):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return entry.name

        result = await Downloader(3).run(_entries(12), process)

        assert peak == 3
        assert sorted(result.items) == sorted(f"item-{i}" for i in range(12))
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self):
        async def process(entry):
            if entry.name in ("item-1", "item-3"):
                raise RuntimeError(f"boom {entry.name}")
            return entry.name

        result = await Downloader(2).run(_entries(5), process)

        assert sorted(result.items) == ["item-0", "item-2", "item-4"]
        assert sorted(failure.name for failure in result.failures) == ["item-1", "item-3"]
        errors = {failure.name: failure.error for failure in result.failures}
        assert errors["item-1"] == "boom item-1"

    @pytest.mark.asyncio
    async def test_every_entry_processed_exactly_once(self):
        seen = []

        async def process(entry):
            seen.append(entry.name)
            await asyncio.sleep(0)
            return entry.name

        downloader = Downloader(4)
        await downloader.run(_entries(9), process)

        assert sorted(seen) == sorted(set(seen))
        assert len(seen) == 9
        assert downloader.completed == 9
        assert downloader.total == 9

    @pytest.mark.asyncio
    async def test_empty_input(self):
        async def process(entry):
            raise AssertionError("should not be called")

        result = await Downloader(5).run([], process)

        assert result.items == []
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_progress_callback(self):
        progress = []

        async def process(entry):
            return entry.name

        await Downloader(2, on_progress=lambda done, total: progress.append((done, total))).run(
            _entries(3), process
        )

        assert progress == [(1, 3), (2, 3), (3, 3)]
