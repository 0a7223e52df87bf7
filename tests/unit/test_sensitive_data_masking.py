import pytest

from config.settings import mask_sensitive_data

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    @pytest.mark.parametrize("key", ["otp", "code", "delivery_otp_code"])
    def test_otp_keys_masked(self, key):
        result = mask_sensitive_data(None, None, {"event": "test", key: "4821"})
        assert result[key] == "***MASKED***"

    def test_otp_in_free_text_masked(self):
        result = mask_sensitive_data(None, None, {"event": "test", "body": "otp=4821"})
        assert "4821" not in result["body"]

    def test_password_masked(self):
        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_token_masked(self):
        event_dict = {"event": "test", "header": "token=abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "abc123xyz" not in result["header"]

    def test_empty_secret_left_alone(self):
        result = mask_sensitive_data(None, None, {"event": "test", "otp": None})
        assert result["otp"] is None

    def test_non_sensitive_data_unchanged(self):
        event_dict = {
            "event": "order.otp_generated",
            "order_id": "ORD-20260301-ABC123",
            "status": "ready_for_pickup",
        }
        result = mask_sensitive_data(None, None, dict(event_dict))
        assert result == event_dict
