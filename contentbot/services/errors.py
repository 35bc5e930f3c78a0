# contentbot/services/errors.py
from typing import Optional


class ContentbotError(Exception):
    """Base class for errors raised by the generation services."""


class InvalidTransition(ContentbotError):
    def __init__(self, kind: str, source, target):
        self.kind = kind
        self.source = source
        self.target = target
        super().__init__(f"{kind}: transition {getattr(source, 'value', source)} -> {getattr(target, 'value', target)} is not allowed")


class ArticleNotFound(ContentbotError):
    def __init__(self, article_id: int):
        self.article_id = article_id
        super().__init__(f"Article {article_id} not found")


class GenerationNotFound(ContentbotError):
    def __init__(self, article_id: int):
        self.article_id = article_id
        super().__init__(f"No generation record for article {article_id}")


class NotRetryable(ContentbotError):
    pass


class ClaimConflict(ContentbotError):
    def __init__(self, article_id: int, outcome):
        self.article_id = article_id
        self.outcome = outcome
        super().__init__(f"Article {article_id} could not be claimed: {getattr(outcome, 'value', outcome)}")


class QueueError(ContentbotError):
    pass


class DuplicateQueueEntry(QueueError):
    pass


class QueueItemBusy(QueueError):
    pass


class QueueItemNotFound(QueueError):
    pass


class PhaseError(ContentbotError):
    """A phase executor could not produce its artifact."""

    def __init__(self, phase: str, message: str):
        self.phase = phase
        super().__init__(message)


class NoSourcesError(PhaseError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__("research", f"Failed to find any sources for research after {attempts} attempts")


class EmptyOutputError(PhaseError):
    pass


class LLMError(ContentbotError):
    pass


class StructuredOutputError(LLMError):
    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message)


class SearchError(ContentbotError):
    pass
