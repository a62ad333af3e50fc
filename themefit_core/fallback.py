"""
Ordered strategies, first acceptable answer wins.

Selector inference registers the LLM at high priority and the static
heuristic adapter last, so mapping always produces an adapter.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class FallbackResult:
    success: bool
    value: Any = None
    strategy_used: str = ""
    strategies_tried: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


@dataclass
class ChainStep:
    name: str
    func: Callable[..., Any]
    validator: Optional[Callable[[Any], bool]] = None
    priority: int = 0

    async def run(self, *args, **kwargs) -> Any:
        result = self.func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def rejects(self, result: Any) -> Optional[str]:
        if result is None:
            return "Returned None"
        if self.validator is not None and not self.validator(result):
            return "Failed validation"
        return None


class FallbackChain:
    """
    chain = FallbackChain("inference")
    chain.add("llm", infer_with_llm, priority=10)
    chain.add("heuristic", build_heuristic)
    result = await chain.execute_async(snapshot)
    """

    def __init__(self, name: str = "chain"):
        self.name = name
        self._strategies: List[ChainStep] = []

    def add(self, name: str, func: Callable[..., Any],
            validator: Optional[Callable[[Any], bool]] = None,
            priority: int = 0) -> "FallbackChain":
        """Higher priority runs first; equal priorities keep insertion order."""
        self._strategies.append(ChainStep(name, func, validator, priority))
        self._strategies.sort(key=lambda s: s.priority, reverse=True)
        return self

    @property
    def strategy_names(self) -> List[str]:
        return [s.name for s in self._strategies]

    async def execute_async(self, *args, **kwargs) -> FallbackResult:
        outcome = FallbackResult(success=False)

        for strategy in self._strategies:
            outcome.strategies_tried.append(strategy.name)
            try:
                value = await strategy.run(*args, **kwargs)
            except Exception as e:
                outcome.errors[strategy.name] = f"{type(e).__name__}: {e}"
                logger.warning(f"{self.name}: '{strategy.name}' raised {outcome.errors[strategy.name]}")
                continue

            reason = strategy.rejects(value)
            if reason:
                outcome.errors[strategy.name] = reason
                continue

            logger.debug(f"{self.name}: '{strategy.name}' succeeded")
            outcome.success = True
            outcome.value = value
            outcome.strategy_used = strategy.name
            return outcome

        logger.warning(f"{self.name}: all {len(outcome.strategies_tried)} strategies failed")
        return outcome
