from multibagger.infrastructure.llm.rate_limiter import RequestSpacingLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_requests_are_spaced_by_min_interval():
    clock = FakeClock()
    limiter = RequestSpacingLimiter(6.0, clock=clock, sleep=clock.sleep)

    assert limiter.acquire() == 0.0
    clock.now = 1.0
    assert limiter.acquire() == 5.0
    assert clock.now == 6.0
    assert limiter.acquire() == 6.0
    assert clock.sleeps == [5.0, 6.0]


def test_no_wait_after_interval_has_elapsed():
    clock = FakeClock()
    limiter = RequestSpacingLimiter(2.0, clock=clock, sleep=clock.sleep)
    limiter.acquire()
    clock.now = 10.0
    assert limiter.acquire() == 0.0
    assert clock.sleeps == []


def test_reset_forgets_last_request():
    clock = FakeClock()
    limiter = RequestSpacingLimiter(6.0, clock=clock, sleep=clock.sleep)
    limiter.acquire()
    limiter.reset()
    assert limiter.acquire() == 0.0
