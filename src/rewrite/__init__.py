"""
Message rewriting through the Anthropic API.
"""

from .client import (
    AnthropicRewriter,
    Rewriter,
    RewriteUnavailable,
    UnconfiguredRewriter,
    build_prompt,
)
from .service import InvalidRewriteRequest, RewriteResult, RewriteService, validate_request
from .tones import TONE_DESCRIPTIONS, Tone

__all__ = [
    "AnthropicRewriter",
    "Rewriter",
    "RewriteUnavailable",
    "UnconfiguredRewriter",
    "build_prompt",
    "InvalidRewriteRequest",
    "RewriteResult",
    "RewriteService",
    "validate_request",
    "TONE_DESCRIPTIONS",
    "Tone",
]
