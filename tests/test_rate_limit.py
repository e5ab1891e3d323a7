from datetime import date

from infinet_ai.services.rate_limit_service import IMAGE_TO_IMAGE, TEXT_TO_IMAGE, DailyLimiter


class _Clock:
    def __init__(self, day: date):
        self.day = day

    def __call__(self) -> date:
        return self.day


class TestDailyLimiter:
    def test_allows_until_limit(self):
        limiter = DailyLimiter({TEXT_TO_IMAGE: 2})

        assert limiter.check("whatsapp_1", TEXT_TO_IMAGE).allowed is True
        limiter.record("whatsapp_1", TEXT_TO_IMAGE)
        check = limiter.check("whatsapp_1", TEXT_TO_IMAGE)
        assert check.allowed is True
        assert check.remaining == 1

        limiter.record("whatsapp_1", TEXT_TO_IMAGE)
        check = limiter.check("whatsapp_1", TEXT_TO_IMAGE)
        assert check.allowed is False
        assert check.used == 2
        assert check.remaining == 0

    def test_kinds_and_users_are_counted_separately(self):
        limiter = DailyLimiter({TEXT_TO_IMAGE: 1, IMAGE_TO_IMAGE: 1})
        limiter.record("whatsapp_1", TEXT_TO_IMAGE)

        assert limiter.check("whatsapp_1", TEXT_TO_IMAGE).allowed is False
        assert limiter.check("whatsapp_1", IMAGE_TO_IMAGE).allowed is True
        assert limiter.check("whatsapp_2", TEXT_TO_IMAGE).allowed is True

    def test_counters_reset_on_a_new_day(self):
        clock = _Clock(date(2026, 3, 1))
        limiter = DailyLimiter({TEXT_TO_IMAGE: 1}, today=clock)
        limiter.record("web_a", TEXT_TO_IMAGE)
        assert limiter.check("web_a", TEXT_TO_IMAGE).allowed is False

        clock.day = date(2026, 3, 2)
        assert limiter.check("web_a", TEXT_TO_IMAGE).allowed is True

    def test_zero_or_missing_limit_means_unlimited(self):
        limiter = DailyLimiter({TEXT_TO_IMAGE: 0})
        for _ in range(10):
            limiter.record("web_a", TEXT_TO_IMAGE)
        assert limiter.check("web_a", TEXT_TO_IMAGE).allowed is True
        assert limiter.check("web_a", IMAGE_TO_IMAGE).allowed is True

    def test_first_record_of_a_day_drops_stale_counters(self):
        clock = _Clock(date(2026, 3, 1))
        limiter = DailyLimiter({TEXT_TO_IMAGE: 5}, today=clock)
        limiter.record("a", TEXT_TO_IMAGE)
        limiter.record("b", TEXT_TO_IMAGE)
        clock.day = date(2026, 3, 2)

        limiter.record("c", TEXT_TO_IMAGE)

        assert set(limiter._counts) == {("c", TEXT_TO_IMAGE)}
        assert limiter.cleanup() == 0

    def test_check_all_blocks_on_any_identity(self):
        limiter = DailyLimiter({TEXT_TO_IMAGE: 1})
        limiter.record_all(["web_s1", "ip_10.0.0.7"], TEXT_TO_IMAGE)

        assert limiter.check_all(["web_s2", "ip_10.0.0.7"], TEXT_TO_IMAGE).allowed is False
        assert limiter.check_all(["web_s2", "ip_10.0.0.8"], TEXT_TO_IMAGE).allowed is True
