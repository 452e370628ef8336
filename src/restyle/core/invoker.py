"""Single (image, style) transformation with bounded retry.

:class:`StyleTransformInvoker` turns one work unit into one
:class:`~restyle.core.models.TransformOutcome`.  It is the only component
that talks to the external image service, and it never lets a service error
escape: after the last attempt fails the unit is reported as a
:class:`~restyle.core.models.Failure` carrying the last error message.

Retry State Machine
-------------------
The retry loop is driven by :class:`RetryState`, a small synchronous state
machine that knows nothing about asyncio::

    ATTEMPTING(n) ──ok──▶ SUCCEEDED
         │
       error
         ▼
    n < max ? WAITING_BACKOFF(n) ──advance()──▶ ATTEMPTING(n + 1)
            : EXHAUSTED

The delay in ``WAITING_BACKOFF(n)`` is ``backoff_base * 2 ** (n - 1)``
seconds, i.e. 1 s then 2 s with the defaults.  The invoker owns the sleeping
and takes the ``sleep`` coroutine as a constructor argument so tests can
record delays instead of waiting.

Callers that share a concurrency cap pass their semaphore as ``slots``.  A
slot is held only while a service call is in flight, never during backoff.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from restyle.core.models import Failure, SourceImage, Success, TransformOutcome

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def build_style_prompt(style_name: str) -> str:
    """Return the natural-language instruction for one style."""
    return f"Convert this image into the style of {style_name} art"


class ImageService(Protocol):
    """An external service that re-renders an image according to a prompt."""

    async def generate(self, prompt: str, image: bytes, mime_type: str) -> bytes:
        """Return PNG bytes, or raise on any failure (including no image)."""
        ...


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts a unit gets and how long to wait between them."""

    max_attempts: int = 3
    backoff_base: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base < 0:
            raise ValueError("backoff_base must not be negative")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait between ``attempt`` and ``attempt + 1``."""
        return self.backoff_base * 2 ** (attempt - 1)


class RetryPhase(enum.Enum):
    ATTEMPTING = "attempting"
    WAITING_BACKOFF = "waiting_backoff"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class RetryState:
    """Per-invocation retry bookkeeping.

    Attributes:
        attempt: One-based number of the current (or last) attempt.
        phase: Current :class:`RetryPhase`.
        last_error: Message of the most recent failed attempt.
    """

    def __init__(self, policy: RetryPolicy) -> None:
        self.policy = policy
        self.attempt = 1
        self.phase = RetryPhase.ATTEMPTING
        self.last_error: str | None = None

    @property
    def done(self) -> bool:
        return self.phase in (RetryPhase.SUCCEEDED, RetryPhase.EXHAUSTED)

    def record_success(self) -> None:
        self._expect(RetryPhase.ATTEMPTING)
        self.phase = RetryPhase.SUCCEEDED

    def record_failure(self, message: str) -> None:
        """Record a failed attempt and move to backoff or exhaustion."""
        self._expect(RetryPhase.ATTEMPTING)
        self.last_error = message
        if self.attempt >= self.policy.max_attempts:
            self.phase = RetryPhase.EXHAUSTED
        else:
            self.phase = RetryPhase.WAITING_BACKOFF

    def backoff_delay(self) -> float:
        self._expect(RetryPhase.WAITING_BACKOFF)
        return self.policy.delay_after(self.attempt)

    def advance(self) -> None:
        """Leave backoff and start the next attempt."""
        self._expect(RetryPhase.WAITING_BACKOFF)
        self.attempt += 1
        self.phase = RetryPhase.ATTEMPTING

    def _expect(self, phase: RetryPhase) -> None:
        if self.phase is not phase:
            raise RuntimeError(f"Invalid retry transition from {self.phase.value}")


def _error_message(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "Request to image service timed out"
    return str(error) or error.__class__.__name__


class StyleTransformInvoker:
    """Runs one transformation against an :class:`ImageService` with retries.

    Args:
        service: The external image service.
        policy: Attempt count and backoff base.
        request_timeout: Optional deadline in seconds for each attempt.
        sleep: Coroutine used for backoff delays (``asyncio.sleep`` by default).
    """

    def __init__(
        self,
        service: ImageService,
        policy: RetryPolicy | None = None,
        *,
        request_timeout: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._service = service
        self._policy = policy or RetryPolicy()
        self._request_timeout = request_timeout
        self._sleep = sleep

    async def invoke(
        self, source: SourceImage, style_name: str, *, slots: asyncio.Semaphore | None = None
    ) -> TransformOutcome:
        """Transform ``source`` into ``style_name``."""
        return await self.invoke_prompt(source, build_style_prompt(style_name), slots=slots)

    async def invoke_prompt(
        self, source: SourceImage, prompt: str, *, slots: asyncio.Semaphore | None = None
    ) -> TransformOutcome:
        """Transform ``source`` following a free-form ``prompt``.

        Args:
            source: Image to transform.
            prompt: Instruction sent to the service.
            slots: Optional semaphore acquired around each service call.

        Returns:
            :class:`Success` with PNG bytes, or :class:`Failure` with the
            message of the last failed attempt.
        """
        state = RetryState(self._policy)
        max_attempts = self._policy.max_attempts

        while not state.done:
            try:
                if slots is None:
                    image = await self._attempt(source, prompt)
                else:
                    async with slots:
                        image = await self._attempt(source, prompt)
            except Exception as e:
                state.record_failure(_error_message(e))
                logger.warning(
                    "Error transforming %s (attempt %d/%d): %s",
                    source.original_name,
                    state.attempt,
                    max_attempts,
                    state.last_error,
                )
                if state.phase is RetryPhase.WAITING_BACKOFF:
                    delay = state.backoff_delay()
                    logger.info("Retrying in %.1fs...", delay)
                    await self._sleep(delay)
                    state.advance()
                continue

            state.record_success()
            logger.info("Processed %s (attempt %d/%d)", source.original_name, state.attempt, max_attempts)
            return Success(image_bytes=image)

        logger.error(
            "Giving up on %s after %d attempts: %s", source.original_name, max_attempts, state.last_error
        )
        return Failure(message=state.last_error or "Unknown error")

    async def _attempt(self, source: SourceImage, prompt: str) -> bytes:
        call = self._service.generate(prompt, source.data, source.mime_type)
        if self._request_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self._request_timeout)
