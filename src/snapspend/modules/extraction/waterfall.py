from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from snapspend.core.logging import get_logger, log_event, monotonic_ms

logger = get_logger(__name__)

Invoke = Callable[[str, Any, str], str]


@dataclass(frozen=True)
class ModelAttempt:
    backend_id: str
    ok: bool
    error: str | None = None
    duration_ms: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend_id,
            "ok": self.ok,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class WaterfallResult:
    text: str | None = None
    backend_id: str | None = None
    attempts: list[ModelAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.text is not None

    @property
    def errors(self) -> list[str]:
        return [a.error for a in self.attempts if a.error]

    @property
    def last_error(self) -> str | None:
        errors = self.errors
        return errors[-1] if errors else None


def run_waterfall(
    *,
    image: Any,
    prompt: str,
    backend_ids: Sequence[str],
    invoke: Invoke,
) -> WaterfallResult:
    """
    Try each backend in order and stop at the first one that answers.

    Every failure is recorded in the attempt log and the loop moves on; nothing
    raised by a backend escapes this function.
    """
    result = WaterfallResult()
    for backend_id in backend_ids:
        start = time.monotonic()
        log_event(logger, "extraction.attempt.start", backend=backend_id)
        try:
            text = invoke(backend_id, image, prompt)
            if not isinstance(text, str) or not text.strip():
                raise ValueError("Empty response")
        except Exception as e:  # noqa: BLE001
            error = str(e) or type(e).__name__
            result.attempts.append(
                ModelAttempt(
                    backend_id=backend_id,
                    ok=False,
                    error=error,
                    duration_ms=monotonic_ms(start),
                )
            )
            log_event(
                logger,
                "extraction.attempt.error",
                backend=backend_id,
                error=error,
                error_type=type(e).__name__,
                duration_ms=monotonic_ms(start),
            )
            continue

        result.attempts.append(
            ModelAttempt(backend_id=backend_id, ok=True, duration_ms=monotonic_ms(start))
        )
        result.text = text
        result.backend_id = backend_id
        log_event(
            logger,
            "extraction.attempt.success",
            backend=backend_id,
            chars=len(result.text),
            duration_ms=monotonic_ms(start),
        )
        return result

    log_event(
        logger,
        "extraction.exhausted",
        attempted=len(result.attempts),
        last_error=result.last_error,
    )
    return result
