"""
Retry/Fallback Orchestrator

Drives an ordered chain of resolution methods through an explicit
state machine:

    START -> ATTEMPTING(method_i) -> RESOLVED
                                  -> RETRY_SAME_METHOD -> ATTEMPTING(method_i)
                                  -> NEXT_METHOD -> ATTEMPTING(method_i+1)
                                  -> EXHAUSTED

This is the single place where ResolutionError becomes Unresolvable.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from .errors import MethodNotApplicable, ResolutionError
from .models import AttemptRecord, ClassifiedLink, Resolved, ResolutionOutcome, Unresolvable

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    """Orchestrator states"""
    START = "start"
    ATTEMPTING = "attempting"
    RETRY_SAME_METHOD = "retry_same_method"
    NEXT_METHOD = "next_method"
    RESOLVED = "resolved"
    EXHAUSTED = "exhausted"


@dataclass
class RetryPolicy:
    """Retry bound and delay, applied per method."""
    max_retries: int = 2
    retry_delay: float = 0.5


@dataclass
class ResolutionMethod:
    """
    One step of a fallback chain.

    `run` returns Resolved or raises ResolutionError.
    """
    name: str
    run: Callable[[ClassifiedLink], Awaitable[Resolved]]


@dataclass
class ResolutionRun:
    """Trace of one orchestrated resolution, mostly useful to tests and logs."""
    link: ClassifiedLink
    state: AttemptState = AttemptState.START
    method_index: int = 0
    attempt: int = 0
    transitions: List[AttemptState] = field(default_factory=list)
    failures: List[AttemptRecord] = field(default_factory=list)

    def move(self, state: AttemptState) -> None:
        self.state = state
        self.transitions.append(state)


class FallbackOrchestrator:
    """
    Runs fallback chains with bounded per-method retries.

    Usage:
        orchestrator = FallbackOrchestrator(RetryPolicy(max_retries=2, retry_delay=0.5))
        outcome = await orchestrator.run(link, [api_method, guess_method])
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def _next_state(self, run: ResolutionRun, error: ResolutionError, methods_left: int) -> AttemptState:
        if error.retryable and run.attempt < self.policy.max_retries:
            return AttemptState.RETRY_SAME_METHOD
        if methods_left > 0:
            return AttemptState.NEXT_METHOD
        return AttemptState.EXHAUSTED

    async def run(self, link: ClassifiedLink, methods: Sequence[ResolutionMethod]) -> ResolutionOutcome:
        outcome, _ = await self.run_traced(link, methods)
        return outcome

    async def run_traced(
        self,
        link: ClassifiedLink,
        methods: Sequence[ResolutionMethod],
    ) -> Tuple[ResolutionOutcome, ResolutionRun]:
        """Same as run(), also returning the state machine trace."""
        run = ResolutionRun(link=link)

        if not methods:
            run.move(AttemptState.EXHAUSTED)
            return Unresolvable(reason=f"no resolution method for {link.kind.value}"), run

        while True:
            method = methods[run.method_index]
            run.move(AttemptState.ATTEMPTING)
            try:
                resolved = await method.run(link)
            except ResolutionError as e:
                run.failures.append(AttemptRecord(method.name, run.attempt, e.reason))
                if not isinstance(e, MethodNotApplicable):
                    logger.warning(
                        f"[Orchestrator] {method.name} failed (attempt {run.attempt + 1}) "
                        f"for {link.raw[:60]}: {e.reason}"
                    )
                state = self._next_state(run, e, len(methods) - run.method_index - 1)
                run.move(state)

                if state == AttemptState.RETRY_SAME_METHOD:
                    run.attempt += 1
                    if self.policy.retry_delay > 0:
                        await self._sleep(self.policy.retry_delay)
                    continue
                if state == AttemptState.NEXT_METHOD:
                    run.method_index += 1
                    run.attempt = 0
                    continue
                return self._exhausted(run), run

            run.move(AttemptState.RESOLVED)
            logger.info(f"[Orchestrator] Resolved via {method.name}: {link.raw[:60]}")
            return resolved, run

    @staticmethod
    def _exhausted(run: ResolutionRun) -> Unresolvable:
        # Last failure of each method tells the story
        last_by_method = {}
        for record in run.failures:
            last_by_method[record.method] = record.reason
        reason = "; ".join(f"{name}: {why}" for name, why in last_by_method.items())
        logger.warning(f"[Orchestrator] Exhausted for {run.link.raw[:60]}: {reason}")
        return Unresolvable(reason=reason, attempts=tuple(run.failures))
