"""Output clean-up for exported model text.

Stored replies and workflow results keep the model text exactly as returned.
Only the .txt export strips zero-width characters, which basic editors show
as garbage.
"""

import re
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class GuardrailResult:
    """Result of a guardrail check."""
    passed: bool
    reason: str = ""


# Zero-width and invisible Unicode characters
_INVISIBLE_CHARS = re.compile(
    r"[\u200b\u200c\u200d\u200e\u200f\u2060\u2061\u2062\u2063\u2064\ufeff]"
)


class OutputGuard:
    """Removes invisible characters from text leaving the service as a file."""

    def check(self, text: str) -> tuple[str, GuardrailResult]:
        """Returns (cleaned_text, result)."""
        if not text:
            return text, GuardrailResult(True)

        cleaned = _INVISIBLE_CHARS.sub("", text)
        if cleaned != text:
            logger.info("guardrail.invisible_removed", removed=len(text) - len(cleaned))
            return cleaned, GuardrailResult(True, "normalized")
        return cleaned, GuardrailResult(True)
