import pytest

from app.services.payment_errors import MalformedReferenceError
from app.services.reference_tokens import (
    DonationRef,
    GiftOrderRef,
    PointsPurchaseRef,
    SubscriptionRef,
    decode_reference,
    encode_gift_reference,
    encode_points_reference,
    encode_reference,
    encode_subscription_reference,
)


def test_points_token_keeps_underscored_package_id():
    ref = decode_reference("points_42_package_1000_1700000000")
    assert ref == PointsPurchaseRef(user_id=42, package_id="package_1000", issued_at=1700000000)


def test_subscription_token():
    ref = decode_reference("sub_7_premium_yearly")
    assert ref == SubscriptionRef(user_id=7, plan_type="premium", billing_cycle="yearly")


def test_gift_token_keeps_full_custom_id():
    ref = decode_reference("gift_1700000000_abc123")
    assert ref == GiftOrderRef(custom_id="gift_1700000000_abc123")


def test_bare_number_is_donation():
    assert decode_reference("315") == DonationRef(donation_id=315)


def test_encoders_produce_decodable_tokens():
    points = encode_points_reference(42, "package_2500", 1700000123)
    assert points == "points_42_package_2500_1700000123"
    assert decode_reference(points).package_id == "package_2500"

    sub = encode_subscription_reference(9, "premium", "monthly")
    assert encode_reference(decode_reference(sub)) == sub

    gift = encode_gift_reference("1700000000_x9")
    assert decode_reference(gift) == GiftOrderRef(custom_id="gift_1700000000_x9")
    assert encode_reference(decode_reference("88")) == "88"


@pytest.mark.parametrize(
    "token",
    [
        "",
        "points_42_1700000000",
        "points_abc_package_100_1700000000",
        "points_42_package_100_notatime",
        "sub_7_premium",
        "sub_x_premium_monthly",
        "gift_",
        "gift",
        "donation-12",
        "12.5",
    ],
)
def test_malformed_tokens(token):
    with pytest.raises(MalformedReferenceError):
        decode_reference(token)


def test_malformed_reference_is_value_error():
    with pytest.raises(ValueError):
        decode_reference("points_1")
