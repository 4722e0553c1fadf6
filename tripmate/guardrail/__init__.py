"""
Topic guardrail that keeps conversations on travel.
"""

from .topic import (
    GuardrailDecision,
    RedirectPolicy,
    TopicGuardrail,
    first_redirect,
    random_redirect,
)

__all__ = [
    "GuardrailDecision",
    "RedirectPolicy",
    "TopicGuardrail",
    "first_redirect",
    "random_redirect",
]
