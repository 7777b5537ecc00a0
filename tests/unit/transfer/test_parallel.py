"""
Unit tests for bounded-concurrency processing.
"""

import asyncio

import pytest

from fscopy.transfer.parallel import process_in_parallel


class TestProcessInParallel:
    """Tests for process_in_parallel."""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self) -> None:
        async def work(item: int) -> int:
            await asyncio.sleep(0.01 * (5 - item))
            return item * 10

        result = await process_in_parallel([1, 2, 3, 4], 4, work)

        assert result.results == [10, 20, 30, 40]
        assert result.errors == []
        assert result.skipped == []

    @pytest.mark.asyncio
    async def test_concurrency_bound(self) -> None:
        running = 0
        peak = 0

        async def work(item: int) -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await process_in_parallel(list(range(10)), 3, work)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_sequential_when_concurrency_is_one(self) -> None:
        order: list[str] = []

        async def work(item: str) -> None:
            order.append(f"start {item}")
            await asyncio.sleep(0)
            order.append(f"end {item}")

        await process_in_parallel(["a", "b"], 1, work)

        assert order == ["start a", "end a", "start b", "end b"]

    @pytest.mark.asyncio
    async def test_errors_are_collected(self) -> None:
        async def work(item: int) -> int:
            if item == 2:
                raise ValueError("two")
            return item

        result = await process_in_parallel([1, 2, 3], 2, work)

        assert result.results == [1, 3]
        assert len(result.errors) == 1
        item, error = result.errors[0]
        assert item == 2
        assert isinstance(error, ValueError)

    @pytest.mark.asyncio
    async def test_stop_error_skips_unstarted_items(self) -> None:
        class Fatal(Exception):
            pass

        started: list[int] = []

        async def work(item: int) -> int:
            started.append(item)
            if item == 1:
                raise Fatal()
            return item

        result = await process_in_parallel([1, 2, 3], 1, work, stop_on=(Fatal,))

        assert started == [1]
        assert result.skipped == [2, 3]
        assert [item for item, _ in result.errors] == [1]

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self) -> None:
        async def work(item: int) -> int:
            return item

        with pytest.raises(ValueError):
            await process_in_parallel([1], 0, work)
