import json

import pytest
import responses

from microsvc.errors import ServiceError, bad_request, internal_server_error
from microsvc.mailer import DEFAULT_ENDPOINT, Email, SendgridConfig, build_message

CONFIG = SendgridConfig(key="placeholder", email_from="sender@example.com")
ENDPOINT = "https://mail.example.com/send"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_build_message_defaults_reply_to():
    msg = build_message(CONFIG, "Alice", "to@example.com", "Hi", "plain", "<b>html</b>")
    assert msg["from"] == {"email": "sender@example.com", "name": "Alice"}
    assert msg["reply_to"] == {"email": "sender@example.com"}
    assert msg["subject"] == "Hi"
    assert msg["content"] == [
        {"type": "text/plain", "value": "plain"},
        {"type": "text/html", "value": "<b>html</b>"},
    ]
    assert msg["personalizations"] == [{"to": [{"email": "to@example.com"}]}]


def test_build_message_reply_to_and_html_only():
    msg = build_message(CONFIG, "Alice", "to@example.com", "Hi", html_body="<p>x</p>", reply_to="reply@example.com")
    assert msg["reply_to"] == {"email": "reply@example.com"}
    assert msg["content"] == [{"type": "text/html", "value": "<p>x</p>"}]


def test_missing_key_rejected():
    with pytest.raises(ValueError):
        Email(SendgridConfig(email_from="sender@example.com"))


def test_default_endpoint():
    assert Email(CONFIG).endpoint == DEFAULT_ENDPOINT


@pytest.mark.parametrize(
    "kwargs, detail",
    [
        ({"from_name": "", "to": "to@example.com", "subject": "s", "text_body": "b"}, "Missing from address"),
        ({"from_name": "A", "to": "", "subject": "s", "text_body": "b"}, "Missing to address"),
        ({"from_name": "A", "to": "to@example.com", "subject": "", "text_body": "b"}, "Missing subject"),
        ({"from_name": "A", "to": "to@example.com", "subject": "s"}, "Missing email body"),
    ],
)
def test_send_validation(kwargs, detail):
    with pytest.raises(ServiceError) as exc:
        Email(CONFIG, ENDPOINT).send(**kwargs)
    assert exc.value == bad_request("email.send.validation", detail)


def test_send_posts_message(mocked):
    mocked.post(ENDPOINT, status=202)
    Email(CONFIG, ENDPOINT).send("Alice", "to@example.com", "Hi", text_body="plain")
    request = mocked.calls[0].request
    assert request.headers["Authorization"] == "Bearer placeholder"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.body) == build_message(CONFIG, "Alice", "to@example.com", "Hi", "plain")


def test_send_failure_status(mocked):
    mocked.post(ENDPOINT, status=400, body="bad")
    with pytest.raises(ServiceError) as exc:
        Email(CONFIG, ENDPOINT).send("Alice", "to@example.com", "Hi", text_body="plain")
    assert exc.value == internal_server_error("email.sendemail", "Error sending email")


def test_send_connection_error(mocked):
    mocked.post(ENDPOINT, body=ConnectionError("refused"))
    with pytest.raises(ServiceError) as exc:
        Email(CONFIG, ENDPOINT).send("Alice", "to@example.com", "Hi", html_body="<p>x</p>")
    assert exc.value.code == 500