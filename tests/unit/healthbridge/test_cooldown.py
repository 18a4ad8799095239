from hypothesis import given
from hypothesis import strategies as st

from healthbridge.domain.models import UserHealthProfile
from healthbridge.services.cooldown import CooldownGate

MINUTE = 60_000
NOW = 1_700_000_000_000


class TestCooldownGate:
    def test_first_notification_is_always_allowed(self) -> None:
        gate = CooldownGate(lambda: NOW)
        assert gate.is_open(UserHealthProfile(user_id="u1"))

    def test_blocks_inside_window_and_opens_after(self) -> None:
        profile = UserHealthProfile(
            user_id="u1", last_notification=NOW - 5 * MINUTE, notification_cooldown_ms=15 * MINUTE
        )
        gate = CooldownGate(lambda: NOW)

        assert not gate.is_open(profile)
        assert gate.remaining_ms(profile) == 10 * MINUTE
        assert gate.is_open(profile, now=NOW + 11 * MINUTE)  # 16 minutes after the last one

    def test_window_boundary_is_exclusive(self) -> None:
        profile = UserHealthProfile(user_id="u1", last_notification=NOW, notification_cooldown_ms=MINUTE)
        gate = CooldownGate(lambda: NOW)
        assert not gate.is_open(profile, now=NOW + MINUTE)
        assert gate.is_open(profile, now=NOW + MINUTE + 1)

    def test_mark_notified_returns_updated_copy(self) -> None:
        profile = UserHealthProfile(user_id="u1")
        updated = CooldownGate(lambda: NOW).mark_notified(profile)
        assert updated.last_notification == NOW
        assert profile.last_notification is None

    @given(elapsed=st.integers(min_value=0, max_value=60 * MINUTE))
    def test_open_exactly_when_elapsed_exceeds_cooldown(self, elapsed: int) -> None:
        profile = UserHealthProfile(
            user_id="u1", last_notification=NOW, notification_cooldown_ms=15 * MINUTE
        )
        gate = CooldownGate(lambda: NOW + elapsed)
        assert gate.is_open(profile) is (elapsed > 15 * MINUTE)
