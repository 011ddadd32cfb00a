"""
NoteGenius Backend — Abstract Summarizer Interface
====================================================

What:  Abstract base class defining the contract for AI summarization services.
Why:   Routes and NoteService depend on this interface, not on Gemini, so
       tests can substitute a stub and another provider can be slotted in.
How:   Concrete implementations inherit from Summarizer and implement summarize().
Who:   Called by the /api/summarize route and NoteService.summarize_note().
"""

from abc import ABC, abstractmethod


class Summarizer(ABC):
    """
    Abstract interface for AI text summarization.

    Contract:
        - summarize() accepts non-empty text and returns a trimmed summary
        - No retries: a failed call fails the request
        - Every provider-specific failure is wrapped in SummarizationError
        - A missing API key raises ConfigurationError before any network call
    """

    @abstractmethod
    async def summarize(self, text: str) -> str:
        """
        Summarize `text`.

        Returns:
            str: The summary, stripped of surrounding whitespace.

        Raises:
            ConfigurationError: The provider's API key is not configured.
            SummarizationError: Transport error, non-2xx answer or a response
                without candidates[0].content.parts[0].text.
            CircuitBreakerOpenError: Recent calls kept failing.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability test; must not consume generation quota."""
        ...
