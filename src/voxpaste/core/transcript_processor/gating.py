"""
Quality gate for optimizer output.

The gate rejects refusals and outputs that dropped most of the content. The
thresholds are heuristics kept as configurable constants.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Optional, Sequence

from ...utils.logger import get_logger
from ..errors import GatingRejected
from .prompts import AGGRESSIVE_FILLERS, LIGHT_FILLERS

logger = get_logger(__name__)

REFUSAL_MARKERS = (
    "抱歉",
    "对不起",
    "无法",
    "我不能",
    "作为AI",
    "作为一个AI",
    "sorry",
    "i cannot",
    "i can't",
    "as an ai",
    "unable to",
)

_WRAPPER_PREFIX = re.compile(
    r"^\s*(?:cleaned|result|output|输出|结果|优化后|清洗后|修改后)(?:\s*text|文本)?\s*[:：]\s*",
    re.IGNORECASE,
)
_QUOTE_PAIRS = (('"', '"'), ("“", "”"), ("'", "'"), ("‘", "’"), ("「", "」"))

_FILLER_ONLY = re.compile(
    "(?:"
    + "|".join(
        re.escape(f)
        for f in sorted(LIGHT_FILLERS + AGGRESSIVE_FILLERS, key=len, reverse=True)
    )
    + ")+",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class GateThresholds:
    large_input_chars: int = 20
    large_input_max_output: int = 6
    min_ratio: float = 0.2
    medium_input_chars: int = 12
    medium_input_max_output: int = 3
    refusal_length_factor: float = 1.5
    refusal_length_floor: int = 24
    normalize_width: bool = False


def count_core_characters(text: str) -> int:
    """Count alphanumeric and ideographic characters."""
    return sum(1 for ch in text if ch.isalnum())


def strip_wrapper(text: str) -> str:
    """Drop a leading label like "cleaned:" and one pair of surrounding quotes."""
    result = _WRAPPER_PREFIX.sub("", text.strip(), count=1).strip()
    for opening, closing in _QUOTE_PAIRS:
        if len(result) >= 2 and result.startswith(opening) and result.endswith(closing):
            result = result[len(opening) : -len(closing)].strip()
            break
    return result


def is_filler_only(text: str) -> bool:
    core = "".join(ch for ch in text if ch.isalnum())
    if not core:
        return False
    return _FILLER_ONLY.fullmatch(core) is not None


class OutputGate:
    def __init__(
        self,
        thresholds: Optional[GateThresholds] = None,
        refusal_markers: Sequence[str] = REFUSAL_MARKERS,
    ):
        self.thresholds = thresholds or GateThresholds()
        self.refusal_markers = tuple(m.lower() for m in refusal_markers)

    def _normalize(self, text: str) -> str:
        if self.thresholds.normalize_width:
            return unicodedata.normalize("NFKC", text)
        return text

    def evaluate(self, original: str, output: str) -> Optional[str]:
        """Return the rejection reason, or None when the output is acceptable."""
        t = self.thresholds
        source = self._normalize(original)
        candidate = self._normalize(output)

        input_core = count_core_characters(source)
        output_core = count_core_characters(candidate)

        lowered_source = source.lower()
        lowered_candidate = candidate.lower()
        refusal_limit = max(input_core * t.refusal_length_factor, t.refusal_length_floor)
        for marker in self.refusal_markers:
            if (
                marker in lowered_candidate
                and marker not in lowered_source
                and output_core <= refusal_limit
            ):
                return f"refusal marker '{marker}'"

        if output_core == 0 and is_filler_only(source):
            return None

        if input_core >= t.large_input_chars and output_core <= t.large_input_max_output:
            return f"over-compressed ({input_core} -> {output_core} core chars)"
        if input_core > 0 and output_core / input_core < t.min_ratio:
            return f"over-compressed (ratio {output_core / input_core:.2f})"
        if (
            input_core >= t.medium_input_chars
            and output_core <= t.medium_input_max_output
        ):
            return f"over-compressed ({input_core} -> {output_core} core chars)"

        return None

    def check(self, original: str, output: str) -> str:
        """
        Strip wrappers from ``output`` and return it if it passes the gate.

        Raises:
            GatingRejected: If the output looks like a refusal or lost content.
        """
        candidate = strip_wrapper(output)
        reason = self.evaluate(original, candidate)
        if reason is not None:
            logger.info(f"Optimizer output rejected: {reason}")
            raise GatingRejected(reason)
        return candidate
