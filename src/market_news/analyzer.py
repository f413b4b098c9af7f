"""News impact analysis with an LLM.

One completion call per headline. The free-form answer goes through:
  1. JSON object extraction (fences, <think> tags, prose around the object)
  2. validation + normalization (impact label, clamped confidence)
  3. keyword classification when 1 or 2 fail
Every failure degrades to a Neutral result flagged ``failed``; ``analyze``
never raises.
"""

import json
import logging
import math
import random
import re
from collections.abc import Sequence

from .llm import CompletionClient
from .models import AnalysisResult, Impact
from .rounding import round_count, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
FALLBACK_KEYWORD_CONFIDENCE = 0.6
NO_REASONING = "No reasoning provided"
TECHNICAL_ERROR_REASONING = "Unable to analyze due to technical error. Please try again."
KEYWORD_REASONING = "Analysis based on text interpretation due to parsing error"

# Offsets applied to "round" confidences (multiples of 0.05)
JITTER_OFFSETS: tuple[float, ...] = (-0.03, -0.02, -0.01, 0.01, 0.02, 0.03, 0.04)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_ANALYSIS_PROMPT = """\
You are a financial analyst expert in Indian stock markets. Analyze the following news for its potential impact on the mentioned company's stock price.

News Headline: "{headline}"
{description_line}{stock_line}
Evaluate this news and respond in the following exact JSON format:
{{
  "impact": "[Positive/Negative/Neutral]",
  "confidence": [0.0 to 1.0],
  "reasoning": "[Brief 1-2 sentence explanation]"
}}

Guidelines:
- Positive: News likely to increase stock price (earnings beats, new contracts, positive guidance, etc.)
- Negative: News likely to decrease stock price (losses, scandals, regulatory issues, etc.)
- Neutral: News with minimal or unclear impact on stock price
- Confidence: Provide a precise confidence score between 0.0 and 1.0 with exactly 2 decimal places
  IMPORTANT: You must NOT use round numbers ending in 0 or 5 (like 0.70, 0.75, 0.80, 0.85, 0.90, 0.95)
  Required format: 0.XX where the last digit is any of 1-4 or 6-9
  Valid examples: 0.63, 0.67, 0.71, 0.74, 0.78, 0.82, 0.84, 0.87, 0.91, 0.94, 0.96, 0.98
  Invalid examples: 0.60, 0.65, 0.70, 0.75, 0.80, 0.85, 0.90, 0.95
- Keep reasoning concise and focused on financial impact

Respond only with the JSON object, no additional text."""


def build_prompt(headline: str, description: str = "", stock_symbols: Sequence[str] | None = None) -> str:
    description_line = f'News Description: "{description}"\n' if description else ""
    stock_line = (
        f"Relevant stocks mentioned: {', '.join(stock_symbols)}\n"
        if stock_symbols else ""
    )
    return _ANALYSIS_PROMPT.format(
        headline=headline,
        description_line=description_line,
        stock_line=stock_line,
    )


# ---------------------------------------------------------------------------
# Stage 1: JSON extraction
# ---------------------------------------------------------------------------

_THINK_TAGS = re.compile(r"<think>.*?</think>", re.DOTALL)
_CODE_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)
_GREEDY_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _matching_brace(text: str, start: int) -> int | None:
    """Index of the brace closing the object opened at ``start``."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def _clean(text: str) -> str:
    text = _THINK_TAGS.sub("", text).strip()
    fence = _CODE_FENCE.search(text)
    if fence and "{" in fence.group(1):
        text = fence.group(1).strip()
    return text


def extract_json_candidates(text: str) -> list[str]:
    """Substrings that may hold the answer object, most specific first.

    The first balanced top-level ``{...}``, then the greedy first-``{`` to
    last-``}`` span when it differs.
    """
    text = _clean(text)
    candidates: list[str] = []

    start = text.find("{")
    if start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            candidates.append(text[start:end + 1])

    greedy = _GREEDY_OBJECT.search(text)
    if greedy and greedy.group(0) not in candidates:
        candidates.append(greedy.group(0))
    return candidates


def extract_json_object(text: str) -> dict | None:
    """First candidate that parses as a JSON object, or None."""
    for candidate in extract_json_candidates(text):
        try:
            parsed = json.loads(candidate)
        except (ValueError, RecursionError):
            # JSONDecodeError, oversized integers, pathological nesting
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


# ---------------------------------------------------------------------------
# Stage 2: validation
# ---------------------------------------------------------------------------

def normalize_impact(raw) -> Impact:
    if not isinstance(raw, str):
        return Impact.NEUTRAL

    value = raw.lower().strip()
    if "pos" in value:
        return Impact.POSITIVE
    if "neg" in value:
        return Impact.NEGATIVE
    return Impact.NEUTRAL


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def coerce_confidence(raw) -> float:
    """Confidence as a float in [0, 1]; unusable values become 0.5."""
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_CONFIDENCE
    if math.isnan(value):
        return DEFAULT_CONFIDENCE
    return _clamp(value)


def deround_confidence(value: float, rng: random.Random) -> float:
    """Nudge multiples of 0.05 (other than 0.50) off the round value.

    Result is clamped to [0, 1] and rounded to two decimals.
    """
    percent = round_count(value * 100)
    if percent % 5 == 0 and percent != 50:
        adjusted = _clamp(value + rng.choice(JITTER_OFFSETS))
        logger.debug("Adjusted round confidence %.2f to %.2f", value, adjusted)
        value = adjusted
    return round_half_up(value, 2)


def validate_analysis(parsed: dict, rng: random.Random) -> AnalysisResult:
    confidence = deround_confidence(coerce_confidence(parsed.get("confidence")), rng)
    reasoning = parsed.get("reasoning")
    return AnalysisResult(
        impact=normalize_impact(parsed.get("impact")),
        confidence=confidence,
        reasoning=str(reasoning) if reasoning else NO_REASONING,
        failed=False,
    )


# ---------------------------------------------------------------------------
# Stage 3: keyword fallback
# ---------------------------------------------------------------------------

_POSITIVE_WORDS = ("positive", "bullish", "good")
_NEGATIVE_WORDS = ("negative", "bearish", "bad")


def classify_keywords(text: str) -> AnalysisResult:
    """Coarse classification of an unparseable answer. Always ``failed``."""
    lowered = text.lower()
    if any(word in lowered for word in _POSITIVE_WORDS):
        impact, confidence = Impact.POSITIVE, FALLBACK_KEYWORD_CONFIDENCE
    elif any(word in lowered for word in _NEGATIVE_WORDS):
        impact, confidence = Impact.NEGATIVE, FALLBACK_KEYWORD_CONFIDENCE
    else:
        impact, confidence = Impact.NEUTRAL, DEFAULT_CONFIDENCE

    return AnalysisResult(
        impact=impact,
        confidence=confidence,
        reasoning=KEYWORD_REASONING,
        failed=True,
    )


def parse_response(text: str, rng: random.Random | None = None) -> AnalysisResult:
    """Turn a raw LLM answer into an AnalysisResult."""
    parsed = extract_json_object(text)
    if parsed is None:
        logger.error("Failed to parse LLM response as a JSON object")
        logger.warning("Raw response (first 500 chars): %s", text[:500])
        return classify_keywords(text)
    return validate_analysis(parsed, rng or random.Random())


def failed_result(reasoning: str = TECHNICAL_ERROR_REASONING) -> AnalysisResult:
    return AnalysisResult(
        impact=Impact.NEUTRAL,
        confidence=DEFAULT_CONFIDENCE,
        reasoning=reasoning,
        failed=True,
    )


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class ImpactAnalyzer:
    """Classifies news impact through a completion client.

    Args:
        client: Completion client, owned for the analyzer's lifetime.
        rng: Source of de-rounding jitter; seed it for reproducible output.
    """

    def __init__(self, client: CompletionClient, rng: random.Random | None = None) -> None:
        self.client = client
        self.rng = rng or random.Random()

    async def analyze(
        self,
        headline: str,
        description: str = "",
        stock_symbols: Sequence[str] | None = None,
    ) -> AnalysisResult:
        logger.info("Analyzing news impact: %r", headline[:100])
        prompt = build_prompt(headline, description, stock_symbols)

        try:
            raw = await self.client.complete(prompt)
        except Exception:
            logger.exception("Error analyzing news with LLM")
            return failed_result()

        logger.debug("Raw LLM response: %s", raw[:500])
        try:
            analysis = parse_response(raw, self.rng)
        except Exception:
            logger.exception("Unexpected error parsing LLM response")
            analysis = failed_result()
        logger.info(
            "Analysis complete: %s (%d%%)%s",
            analysis.impact.value,
            round_count(analysis.confidence * 100),
            " [fallback]" if analysis.failed else "",
        )
        return analysis
