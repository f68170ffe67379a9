"""LLM provider abstraction via LiteLLM Router.

Provides:
- Gemini Flash as the primary model for short summaries
- The same model through OpenRouter as fallback when Gemini is unavailable
- Prompt injection detection and sanitization of untrusted text (scraped
  headlines reach the model verbatim)
"""

from __future__ import annotations

import re

import structlog
from litellm import Router

from src.nodal_point.config import Settings
from src.nodal_point.core.monitoring import track_llm_call

logger = structlog.get_logger(__name__)

PRIMARY_MODEL = "gemini/gemini-2.0-flash"
FALLBACK_MODEL = "openrouter/google/gemini-2.0-flash-001"

SIGNAL_ANALYST_PROMPT = (
    "You are an analyst for a commercial electricity broker in the ERCOT market. "
    "Summarize the news headline you are given in exactly one sentence, stating "
    "why it matters to a business buying power in Texas. Reply with the sentence only."
)

# ── Prompt Injection Detection ────────────────────────────────────────────────

_INJECTION_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "instruction_override",
        re.compile(
            r"ignore\s+(all\s+)?previous\s+instructions|"
            r"disregard\s+(all\s+)?(your\s+)?instructions|"
            r"forget\s+(all\s+)?(your\s+)?instructions",
            re.IGNORECASE,
        ),
    ),
    (
        "system_prompt_exfiltration",
        re.compile(
            r"(reveal|show|print|repeat)\s+(your\s+)?(system\s+prompt|instructions)|"
            r"repeat\s+everything\s+above",
            re.IGNORECASE,
        ),
    ),
    (
        "control_characters",
        re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]{3,}"),
    ),
]


def detect_prompt_injection(text: str) -> tuple[bool, str | None]:
    """Check text for common prompt injection patterns.

    Returns:
        Tuple of (is_injection, pattern_name).
    """
    for pattern_name, pattern in _INJECTION_PATTERNS:
        if pattern.search(text):
            logger.warning(
                "prompt_injection_detected",
                pattern=pattern_name,
                text_preview=text[:100],
            )
            return True, pattern_name
    return False, None


def sanitize_messages(messages: list[dict]) -> list[dict]:
    """Strip injection patterns from non-system messages.

    System messages are ours and never modified.
    """
    sanitized = []
    for msg in messages:
        content = msg.get("content", "")
        if msg.get("role") == "system" or not content:
            sanitized.append(msg)
            continue

        is_injection, _ = detect_prompt_injection(content)
        if is_injection:
            cleaned = content
            for _, pattern in _INJECTION_PATTERNS:
                cleaned = pattern.sub("[removed]", cleaned)
            sanitized.append({**msg, "content": cleaned})
        else:
            sanitized.append(msg)
    return sanitized


# ── LLM Service ──────────────────────────────────────────────────────────────


class LLMService:
    """Routes completions to Gemini, falling back to OpenRouter."""

    def __init__(self, settings: Settings) -> None:
        model_list = []

        if settings.GEMINI_API_KEY:
            model_list.append({
                "model_name": "signal",
                "litellm_params": {"model": PRIMARY_MODEL, "api_key": settings.GEMINI_API_KEY},
            })
        if settings.OPENROUTER_API_KEY:
            model_list.append({
                "model_name": "signal-fallback",
                "litellm_params": {
                    "model": FALLBACK_MODEL,
                    "api_key": settings.OPENROUTER_API_KEY,
                },
            })

        if not model_list:
            logger.warning("llm.not_configured")
            self.router = None
            return

        # With only one provider configured, it serves the primary group name
        if len(model_list) == 1:
            model_list[0]["model_name"] = "signal"
            fallbacks = []
        else:
            fallbacks = [{"signal": ["signal-fallback"]}]

        self.router = Router(
            model_list=model_list,
            fallbacks=fallbacks,
            num_retries=settings.LLM_MAX_RETRIES,
            timeout=settings.LLM_TIMEOUT,
            allowed_fails=3,
            cooldown_time=30,
        )

    @property
    def configured(self) -> bool:
        return self.router is not None

    async def completion(
        self,
        messages: list[dict],
        max_tokens: int = 256,
        temperature: float = 0.3,
    ) -> str:
        """Run one completion and return the text.

        Raises:
            RuntimeError: If no LLM API keys are configured.
        """
        if not self.router:
            raise RuntimeError("No LLM API keys configured")

        async with track_llm_call("signal"):
            response = await self.router.acompletion(
                model="signal",
                messages=sanitize_messages(messages),
                max_tokens=max_tokens,
                temperature=temperature,
            )
        return (response.choices[0].message.content or "").strip()

    async def analyze_signal(self, headline: str) -> str:
        """One-sentence broker-facing summary of a market headline."""
        return await self.completion(
            [
                {"role": "system", "content": SIGNAL_ANALYST_PROMPT},
                {"role": "user", "content": headline},
            ]
        )
