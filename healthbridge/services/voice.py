"""
Voice-command triage.

A spoken command is matched case-insensitively against three keyword tiers in
precedence order; the first tier with any matching keyword decides the level.
The keyword set is English-only.
"""

from healthbridge.domain.models import DomainModel, EmergencyLevel

KEYWORD_TIERS: tuple[tuple[EmergencyLevel, tuple[str, ...], str], ...] = (
    (
        EmergencyLevel.CRITICAL,
        (
            "emergency",
            "help me",
            "urgent",
            "critical",
            "ambulance",
            "heart attack",
            "stroke",
            "can't breathe",
        ),
        "Voice emergency",
    ),
    (
        EmergencyLevel.URGENT,
        ("need help", "pain", "injured", "fell", "accident", "hurt"),
        "Voice request for help",
    ),
    (
        EmergencyLevel.MODERATE,
        ("assistance", "dizzy", "not feeling well", "sick"),
        "Voice assistance request",
    ),
)


class VoiceClassification(DomainModel):
    recognized: bool
    level: EmergencyLevel | None = None
    message: str
    keyword: str | None = None


def normalize_command(command: str) -> str:
    # Speech-to-text engines often emit typographic apostrophes.
    return command.replace("’", "'").lower().strip()


def classify_voice_command(command: str) -> VoiceClassification:
    text = normalize_command(command)
    for level, keywords, label in KEYWORD_TIERS:
        for keyword in keywords:
            if keyword in text:
                return VoiceClassification(
                    recognized=True,
                    level=level,
                    message=f'{label}: "{text}"',
                    keyword=keyword,
                )
    return VoiceClassification(recognized=False, message=f'Unrecognized command: "{text}"')
