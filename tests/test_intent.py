import pytest

from infinet_ai.services.intent_service import detect_booking_intent, is_booking_request


class TestBookingIntent:
    @pytest.mark.parametrize(
        "text",
        [
            "I'd like to book a consultation",
            "Can we schedule a meeting tomorrow?",
            "أريد حجز موعد",
        ],
    )
    def test_booking_requests(self, text):
        assert is_booking_request(text) is True
        assert detect_booking_intent(text) == {"intent": "booking", "type": "consultation"}

    @pytest.mark.parametrize("text", ["what is fiber?", "", None, "my notebook is slow"])
    def test_other_messages(self, text):
        assert is_booking_request(text) is False
        assert detect_booking_intent(text) is None
