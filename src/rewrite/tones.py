"""Tone catalogue offered to users."""

from enum import Enum
from typing import Dict, Optional


class Tone(str, Enum):
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    ASSERTIVE = "assertive"
    DIPLOMATIC = "diplomatic"
    CASUAL = "casual"
    EMPATHETIC = "empathetic"
    CONCISE = "concise"
    PERSUASIVE = "persuasive"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def description(self) -> str:
        return TONE_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Tone"]:
        """Look a tone up by id or label, ignoring case."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


TONE_DESCRIPTIONS: Dict[Tone, str] = {
    Tone.PROFESSIONAL: "Polished & corporate",
    Tone.FRIENDLY: "Warm & approachable",
    Tone.ASSERTIVE: "Direct & confident",
    Tone.DIPLOMATIC: "Tactful & balanced",
    Tone.CASUAL: "Relaxed & conversational",
    Tone.EMPATHETIC: "Understanding & caring",
    Tone.CONCISE: "Short & punchy",
    Tone.PERSUASIVE: "Compelling & convincing",
}
