import pytest

from healthbridge.domain.models import EmergencyLevel
from healthbridge.services.voice import classify_voice_command, normalize_command


class TestVoiceClassification:
    def test_critical_keywords(self) -> None:
        result = classify_voice_command("I need an ambulance, heart attack")
        assert result.recognized is True
        assert result.level is EmergencyLevel.CRITICAL
        assert result.message == 'Voice emergency: "i need an ambulance, heart attack"'

    def test_moderate_keywords(self) -> None:
        result = classify_voice_command("I feel dizzy")
        assert result.level is EmergencyLevel.MODERATE
        assert result.message == 'Voice assistance request: "i feel dizzy"'

    def test_urgent_keywords(self) -> None:
        result = classify_voice_command("  I FELL in the kitchen ")
        assert result.level is EmergencyLevel.URGENT
        assert result.keyword == "fell"
        assert result.message == 'Voice request for help: "i fell in the kitchen"'

    def test_unrecognized(self) -> None:
        result = classify_voice_command("banana")
        assert result.recognized is False
        assert result.level is None
        assert result.message == 'Unrecognized command: "banana"'

    def test_higher_tier_wins_when_several_match(self) -> None:
        # "pain" is urgent, "stroke" is critical
        assert classify_voice_command("pain, maybe a stroke").level is EmergencyLevel.CRITICAL
        # "hurt" is urgent, "sick" is moderate
        assert classify_voice_command("I feel sick and hurt").level is EmergencyLevel.URGENT

    @pytest.mark.parametrize("command", ["I can't breathe", "I can’t breathe"])
    def test_apostrophe_variants(self, command: str) -> None:
        assert classify_voice_command(command).level is EmergencyLevel.CRITICAL

    def test_normalize_command(self) -> None:
        assert normalize_command("  Help ME’ ") == "help me'"
