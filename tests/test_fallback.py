import pytest

from themefit_core.fallback import FallbackChain


@pytest.mark.asyncio
class TestFallbackChain:

    async def test_first_valid_result_wins(self):
        chain = FallbackChain("test")
        chain.add("always_fails", lambda x: None)
        chain.add("returns_value", lambda x: x * 2)

        result = await chain.execute_async(5)
        assert result.success is True
        assert result.value == 10
        assert result.strategy_used == "returns_value"
        assert result.errors == {"always_fails": "Returned None"}

    async def test_priority_order(self):
        chain = FallbackChain("test")
        chain.add("low", lambda: "low")
        chain.add("high", lambda: "high", priority=10)
        assert chain.strategy_names == ["high", "low"]
        assert (await chain.execute_async()).value == "high"

    async def test_async_strategies_and_exceptions(self):
        async def broken():
            raise ConnectionError("down")

        async def works():
            return {"ok": True}

        chain = FallbackChain("test")
        chain.add("broken", broken, priority=1)
        chain.add("works", works)

        result = await chain.execute_async()
        assert result.value == {"ok": True}
        assert result.strategies_tried == ["broken", "works"]
        assert "ConnectionError" in result.errors["broken"]

    async def test_validator_rejects(self):
        chain = FallbackChain("test")
        chain.add("small", lambda: 1, validator=lambda v: v > 5)
        chain.add("big", lambda: 10)
        assert (await chain.execute_async()).strategy_used == "big"

    async def test_all_fail(self):
        chain = FallbackChain("test")
        chain.add("fail1", lambda: None)
        chain.add("fail2", lambda: None)

        result = await chain.execute_async()
        assert result.success is False
        assert len(result.strategies_tried) == 2
