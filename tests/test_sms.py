from unittest.mock import MagicMock, patch

import requests

from wardrobe_api.services.sms import MockSmsSender, TwilioSmsSender, get_sms_sender


def make_sender(**kwargs):
    options = dict(account_sid="AC123", auth_token="token", from_number="+15550001111", messaging_sid=None)
    options.update(kwargs)
    return TwilioSmsSender(**options)


def test_mock_sender_always_delivers():
    status = MockSmsSender().send_otp("+919876543210", "1234")

    assert status.delivered
    assert status.label == "delivered"


def test_default_sender_is_mock():
    assert isinstance(get_sms_sender(), MockSmsSender)


@patch("wardrobe_api.services.sms.requests.post")
def test_twilio_delivers(mock_post):
    mock_post.return_value = MagicMock(status_code=201)

    status = make_sender().send_otp("+919876543210", "1234")

    assert status.delivered
    args, kwargs = mock_post.call_args
    assert args[0] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert kwargs["auth"] == ("AC123", "token")
    assert kwargs["data"]["To"] == "+919876543210"
    assert kwargs["data"]["From"] == "+15550001111"
    assert "1234" in kwargs["data"]["Body"]


@patch("wardrobe_api.services.sms.requests.post")
def test_twilio_prefers_messaging_service(mock_post):
    mock_post.return_value = MagicMock(status_code=201)

    make_sender(messaging_sid="MG999").send_otp("+919876543210", "1234")

    data = mock_post.call_args.kwargs["data"]
    assert data["MessagingServiceSid"] == "MG999"
    assert "From" not in data


@patch("wardrobe_api.services.sms.requests.post")
def test_twilio_http_error_is_reported(mock_post):
    mock_post.return_value = MagicMock(status_code=400, text="invalid To")

    status = make_sender().send_otp("+919876543210", "1234")

    assert not status.delivered
    assert "400" in status.reason


@patch("wardrobe_api.services.sms.requests.post")
def test_twilio_transport_error_is_reported(mock_post):
    mock_post.side_effect = requests.ConnectionError("no route")

    status = make_sender().send_otp("+919876543210", "1234")

    assert not status.delivered
    assert "no route" in status.reason


@patch("wardrobe_api.services.sms.requests.post")
def test_twilio_without_credentials(mock_post):
    status = make_sender(account_sid=None).send_otp("+919876543210", "1234")

    assert not status.delivered
    mock_post.assert_not_called()


@patch("wardrobe_api.services.sms.requests.post")
def test_twilio_without_sender_identity(mock_post):
    status = make_sender(from_number=None).send_otp("+919876543210", "1234")

    assert not status.delivered
    mock_post.assert_not_called()
