"""Analysis bridge: Investigation Result in, Diagnosis out."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod

from pcmedic.analysis.schema import MIN_CONFIDENCE, parse_reply
from pcmedic.core.errors import AnalysisError
from pcmedic.core.models import Diagnosis, InvestigationResult
from pcmedic.core.platform import current_platform, platform_label

logger = logging.getLogger(__name__)


class AnalysisBridge(ABC):
    """Turns merged findings into a diagnosis with fix proposals."""

    @abstractmethod
    def analyze(self, result: InvestigationResult, problem_type: str) -> Diagnosis:
        ...


class AnthropicAnalysisBridge(AnalysisBridge):
    """Asks Claude for a diagnosis.

    The reply is untrusted: it is parsed by :mod:`pcmedic.analysis.schema`
    and every fix is re-checked by the safety guard before it can run.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 16384,
        min_confidence: float = MIN_CONFIDENCE,
        platform_name: str | None = None,
    ):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model
        self.max_tokens = max_tokens
        self.min_confidence = min_confidence
        self.platform_name = platform_name or current_platform()
        self._client = None

    def _get_client(self):
        """Lazy-initialize the Anthropic client."""
        if self._client is None:
            if not self.api_key:
                raise AnalysisError(
                    "No API key configured. Set ANTHROPIC_API_KEY to run an analysis."
                )
            try:
                import anthropic
            except ImportError:
                raise ImportError(
                    "Analysis requires the anthropic package. "
                    "Install with: pip install pcmedic[ai]"
                ) from None
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def analyze(self, result: InvestigationResult, problem_type: str) -> Diagnosis:
        client = self._get_client()
        prompt = self._build_prompt(result, problem_type)
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            raise AnalysisError(f"Analysis request failed: {e}") from e

        text = "".join(
            getattr(block, "text", "") for block in getattr(response, "content", [])
        )
        if not text.strip():
            raise AnalysisError("Analysis reply was empty")
        logger.debug("Analysis reply: %d characters", len(text))
        return parse_reply(text, self.min_confidence)

    def _build_prompt(self, result: InvestigationResult, problem_type: str) -> str:
        data = json.dumps(result.to_dict(), indent=2, default=str)
        system = platform_label(self.platform_name)
        return f"""You are PCMedic's diagnostic engine for a {system} computer.
The user reported a "{problem_type}" problem. Read-only probes collected
the data below. Identify root causes and propose fixes.

INVESTIGATION DATA:
{data}

RULES:
- Base every conclusion on evidence in the data. If nothing is wrong, say so.
- Do not recommend network fixes when connectivity checks succeeded.
- Do not report disk problems when SMART health is good.
- Avoid extreme measures (OS reinstall, firmware or BIOS changes, formatting).
- Only mark a fix automatable if its commands actually change something.
  Read-only commands are diagnostics, not fixes.
- Commands must be concrete {system} shell commands, one per list element.

Respond with JSON only, in this shape:
{{
  "summary": "1-2 sentence overview in plain language",
  "issues": [
    {{
      "severity": "critical|warning|info",
      "priority": "immediate|high|medium|low",
      "confidence": 0.0,
      "actionable": true,
      "title": "Short title",
      "description": "What is wrong and why it matters"
    }}
  ],
  "fixes": [
    {{
      "id": "unique-fix-id",
      "title": "What will be done",
      "description": "Plain-language description",
      "whyThis": "What this fixes",
      "howLong": "e.g. 10 minutes",
      "needsRestart": false,
      "automatable": true,
      "riskLevel": "low|medium|high",
      "priority": "immediate|high|medium|low",
      "confidence": 0.0,
      "steps": ["Human-readable step for each command"],
      "commands": ["exact command for each step"]
    }}
  ]
}}
"""
