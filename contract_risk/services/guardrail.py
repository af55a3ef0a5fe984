"""
Content Guardrail
Pre-flight check that blocks sensitive identifiers and profanity before any
text is sent to the model.
"""

import re
import logging
from typing import List, NamedTuple

logger = logging.getLogger(__name__)


class GuardrailVerdict(NamedTuple):
    blocked: bool
    reasons: List[str]


def _passes_luhn(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


class ContentGuardrail:
    """
    Detects content that must not be sent for analysis.

    Checks:
    - US social security numbers (123-45-6789)
    - Payment card numbers (13-19 digits, Luhn-valid)
    - Profanity from a fixed word list
    """

    SSN_PATTERN = re.compile(r'\b(?!000|666|9\d\d)\d{3}-(?!00)\d{2}-(?!0000)\d{4}\b')
    CARD_PATTERN = re.compile(r'\b(?:\d[ -]?){12,18}\d\b')

    PROFANITY_WORDS = (
        "fuck", "fucking", "shit", "bullshit", "bitch", "asshole",
        "bastard", "cunt", "motherfucker", "dickhead",
    )
    PROFANITY_PATTERN = re.compile(
        r'\b(?:' + '|'.join(PROFANITY_WORDS) + r')\b',
        re.IGNORECASE
    )

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def _contains_card_number(self, text: str) -> bool:
        for match in self.CARD_PATTERN.finditer(text):
            digits = re.sub(r'[ -]', '', match.group(0))
            if 13 <= len(digits) <= 19 and _passes_luhn(digits):
                return True
        return False

    def check(self, text: str) -> GuardrailVerdict:
        """
        Check text before analysis.

        Args:
            text: Contract text

        Returns:
            GuardrailVerdict listing every reason the text was blocked
        """
        if not self.enabled:
            return GuardrailVerdict(blocked=False, reasons=[])

        reasons = []
        if self.SSN_PATTERN.search(text):
            reasons.append("Text contains what appears to be a social security number")
        if self._contains_card_number(text):
            reasons.append("Text contains what appears to be a payment card number")
        if self.PROFANITY_PATTERN.search(text):
            reasons.append("Text contains profanity")

        if reasons:
            logger.warning(f"Guardrail blocked input ({len(text)} chars): {'; '.join(reasons)}")
        return GuardrailVerdict(blocked=bool(reasons), reasons=reasons)
