from datetime import timedelta

from assessments import timer
from tests.conftest import T0


def test_resume_charges_time_spent_away():
    # persisted 600s at T, resumed at T + 900s
    assert timer.remaining_seconds(600, T0, T0 + timedelta(seconds=900)) == 0
    assert timer.remaining_seconds(600, T0, T0 + timedelta(seconds=100)) == 500


def test_lobby_budget_does_not_run_down():
    assert timer.remaining_seconds(3600, None, T0 + timedelta(hours=5), started=False) == 3600


def test_clock_going_backwards_gives_no_extra_time():
    assert timer.remaining_seconds(600, T0, T0 - timedelta(seconds=50)) == 600


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def test_countdown_follows_the_wall_clock_not_the_tick_count():
    clock = FakeClock(T0)
    countdown = timer.Countdown(60, clock=clock)

    # one tick, but the tab was suspended for 45 seconds
    clock.advance(45)
    left, expired = countdown.tick()
    assert left == 15
    assert expired is False


def test_countdown_reports_expiry_once():
    clock = FakeClock(T0)
    countdown = timer.Countdown(2, clock=clock)
    clock.advance(3)

    assert countdown.tick() == (0, True)
    assert countdown.tick() == (0, False)
    assert countdown.expired
