"""Analysis bridge and reply parsing."""

from pcmedic.analysis.bridge import AnalysisBridge, AnthropicAnalysisBridge
from pcmedic.analysis.schema import extract_json, parse_diagnosis, parse_fix_proposal, parse_reply

__all__ = [
    "AnalysisBridge",
    "AnthropicAnalysisBridge",
    "extract_json",
    "parse_diagnosis",
    "parse_fix_proposal",
    "parse_reply",
]
