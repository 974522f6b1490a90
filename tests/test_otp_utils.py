from datetime import timedelta
import pytest
from craftlink.auth.utils import generate_otp, get_otp_expiry, is_otp_expired, mask_email, mask_phone
from craftlink.common.utils import now


def test_generate_otp_is_six_digits():
    for _ in range(50):
        code = generate_otp()
        assert len(code) == 6
        assert code.isdigit()


def test_generate_otp_custom_length():
    code = generate_otp(8)
    assert len(code) == 8 and code.isdigit()


def test_otp_expiry_is_ten_minutes_out():
    before = now()
    expiry = get_otp_expiry()
    after = now()
    assert before + timedelta(minutes=10) <= expiry <= after + timedelta(minutes=10)


def test_is_otp_expired_boundaries():
    assert is_otp_expired(now() + timedelta(seconds=1)) is False
    assert is_otp_expired(now() - timedelta(seconds=1)) is True


@pytest.mark.parametrize("email,masked", [
    ("user@example.com", "u**r@example.com"),
    ("ab@example.com", "a***@example.com"),
    ("a@example.com", "a***@example.com"),
    ("no-at-sign", "no-at-sign"),
])
def test_mask_email(email, masked):
    assert mask_email(email) == masked


@pytest.mark.parametrize("phone,masked", [
    ("9876543210", "98******10"),
    ("1234", "1234"),
    ("12345", "12*45"),
])
def test_mask_phone(phone, masked):
    assert mask_phone(phone) == masked
