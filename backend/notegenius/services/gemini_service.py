"""
NoteGenius Backend — Google Gemini Summarization Service
==========================================================

What:  Concrete Summarizer using Google Gemini to condense note content.
Why:   Gemini's flash models are fast and cheap enough to summarize on demand.
How:   Wraps the note text in a fixed instruction template, sends it with fixed
       sampling parameters, and returns the first candidate's text, trimmed.
Who:   Instantiated once at import; called by the summarize route and NoteService.

Failure Strategy:
    1. No retries: one user action, one outbound call
    2. Any SDK/transport/API error or unexpected response shape becomes a
       SummarizationError with a generic "failed to summarize" message
    3. A circuit breaker stops calling Gemini for a while after repeated
       consecutive failures, so a Gemini outage fails requests instantly
"""

import asyncio
import logging
import time
import uuid
from typing import Optional

import google.generativeai as genai

from notegenius.config import settings
from notegenius.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    SummarizationError,
)
from notegenius.services.llm_base import Summarizer

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Implements the circuit breaker pattern to prevent cascade failures.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Thread Safety:
        Not thread-safe (plain counters). uvicorn runs one event loop per
        worker, and each worker keeps its own breaker.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Raises:
            CircuitBreakerOpenError if circuit is OPEN and recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(Summarizer):
    """
    Google Gemini implementation of note summarization.

    Request shape (fixed for every call):
        contents:          [instruction template + text]
        generation_config: temperature 0.2, max 800 output tokens, top_p 0.95, top_k 40
        safety_settings:   BLOCK_ONLY_HIGH for the four harm categories
    Response path:
        candidates[0].content.parts[0].text
    """

    SUMMARIZATION_PROMPT = """
You are an expert note summarizer with the following capabilities:

1. Extracting key points and main ideas from text
2. Condensing information while preserving essential meaning
3. Organizing information in a clear, logical structure
4. Removing redundant or less important details
5. Maintaining the original tone and intent of the content

Your summaries should be:
- Concise: Typically 20-30% of the original length
- Comprehensive: Capture all important information
- Clear: Easy to understand and well-structured
- Accurate: Faithful to the original content

Focus on identifying the most important concepts, arguments, findings, or conclusions in the text.
"""

    GENERATION_CONFIG = {
        "temperature": 0.2,
        "max_output_tokens": 800,
        "top_p": 0.95,
        "top_k": 40,
    }

    SAFETY_SETTINGS = [
        {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_ONLY_HIGH"},
        {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
        {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_ONLY_HIGH"},
        {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
    ]

    def __init__(self):
        # The SDK keeps the API key in module-level state
        if settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(
            settings.gemini_model,
            generation_config=self.GENERATION_CONFIG,
            safety_settings=self.SAFETY_SETTINGS,
        )

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @classmethod
    def build_prompt(cls, text: str) -> str:
        """Wraps the user's text in the fixed instruction template."""
        return f"{cls.SUMMARIZATION_PROMPT}\n\nPlease summarize the following text:\n\n{text}"

    @staticmethod
    def extract_summary(response) -> str:
        """
        Pull candidates[0].content.parts[0].text out of a Gemini response.

        Raises SummarizationError when any step of that path is missing,
        e.g. a response blocked by safety filters has no parts.
        """
        try:
            candidates = response.candidates
            part = candidates[0].content.parts[0]
            text = part.text
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            raise SummarizationError(
                context={"reason": "unexpected_response_shape", "error_type": type(e).__name__},
            ) from e
        if not isinstance(text, str):
            raise SummarizationError(context={"reason": "unexpected_response_shape"})
        return text.strip()

    async def summarize(self, text: str) -> str:
        """
        Summarize note text with Gemini.

        Flow:
            1. Fail fast if GEMINI_API_KEY is missing (ConfigurationError)
            2. Check circuit breaker → may raise CircuitBreakerOpenError
            3. Single generate_content call with the fixed template and parameters
            4. Extract and trim the first candidate's text
            5. Record success/failure in the circuit breaker
        """
        settings.require_gemini()

        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Requesting Gemini summary for %d chars", request_id, len(text))
        start_time = time.time()

        try:
            response = await self.model.generate_content_async(
                self.build_prompt(text),
                request_options={"timeout": settings.gemini_timeout_seconds},
            )
            summary = self.extract_summary(response)
        except SummarizationError as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Unexpected Gemini response format: %s", request_id, e.context)
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "[%s] Gemini summarization failed after %.0fms: %s",
                request_id,
                duration_ms,
                str(e),
            )
            raise SummarizationError(
                context={"request_id": request_id, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "[%s] Gemini summary completed in %.0fms, %d chars",
            request_id,
            duration_ms,
            len(summary),
        )
        return summary

    async def health_check(self) -> bool:
        """
        Check if Gemini API is reachable.

        Lists available models: verifies key and connectivity without
        spending generation tokens. The SDK call is synchronous, so it runs
        in a worker thread.
        """
        try:
            model_names = await asyncio.to_thread(_list_model_names)
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


def _list_model_names() -> list:
    return [m.name for m in genai.list_models()]


# ── Singleton Instance ────────────────────────────────────────────────────
# The circuit breaker state must be shared across all requests
gemini_service = GeminiService()
