"""
Keyword-based topic guardrail.

Decides whether the newest user turn is about travel before any model call
is made. Out-of-scope turns get a canned redirect instead of an answer.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from ..models.config import DEFAULT_REDIRECT_MESSAGES, DEFAULT_TOPIC_KEYWORDS

logger = logging.getLogger(__name__)

# Picks one redirect message from the pool
RedirectPolicy = Callable[[Sequence[str]], str]


@dataclass(frozen=True)
class GuardrailDecision:
    """Outcome of classifying one user turn."""

    in_scope: bool
    redirect_text: Optional[str] = None
    matched_keyword: Optional[str] = None


def random_redirect(pool: Sequence[str]) -> str:
    """Uniformly random redirect policy."""
    return random.choice(pool)


def first_redirect(pool: Sequence[str]) -> str:
    """Deterministic redirect policy, handy for tests and the CLI."""
    return pool[0]


class TopicGuardrail:
    """
    Classifies user text as in or out of the travel domain.

    A keyword matches when it appears at the start of a word, so "hotels"
    matches "hotel" while "strip" does not match "trip".
    """

    def __init__(
        self,
        keywords: Sequence[str] = DEFAULT_TOPIC_KEYWORDS,
        redirect_messages: Sequence[str] = DEFAULT_REDIRECT_MESSAGES,
        redirect_policy: RedirectPolicy = random_redirect,
    ):
        cleaned = [k.strip().lower() for k in keywords if k and k.strip()]
        if not cleaned:
            raise ValueError("TopicGuardrail needs at least one keyword")
        if not redirect_messages:
            raise ValueError("TopicGuardrail needs at least one redirect message")

        self.keywords: tuple[str, ...] = tuple(cleaned)
        self.redirect_messages: tuple[str, ...] = tuple(redirect_messages)
        self.redirect_policy = redirect_policy
        self._pattern = re.compile(
            r"\b(" + "|".join(re.escape(k) for k in self.keywords) + r")"
        )

    def classify(self, latest_user_text: Any) -> GuardrailDecision:
        """
        Classify the newest user turn.

        Never raises: empty or non-text input is treated as out of scope.
        """
        if not isinstance(latest_user_text, str) or not latest_user_text.strip():
            return self._reject(reason="empty or non-text input")

        match = self._pattern.search(latest_user_text.lower())
        if match:
            return GuardrailDecision(in_scope=True, matched_keyword=match.group(1))
        return self._reject(reason="no travel keyword")

    def _reject(self, reason: str) -> GuardrailDecision:
        logger.info("Guardrail rejected turn: %s", reason)
        return GuardrailDecision(in_scope=False, redirect_text=self._pick_redirect())

    def _pick_redirect(self) -> str:
        try:
            return self.redirect_policy(self.redirect_messages)
        except Exception:
            logger.exception("Redirect policy failed, using the first message")
            return self.redirect_messages[0]
