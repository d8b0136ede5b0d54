from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from appstate._redact import loggable, redact_for_log


class _Credentials(BaseModel):
    username: str
    password: str


@dataclass
class _Session:
    user_id: str
    access_token: str


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "username": "Leif",
        "password": "pw",
        "token": {"userId": "123"},
        "nested": {"api_key": "deadbeef"},
    }

    redacted = redact_for_log(payload)
    assert redacted["username"] == "Leif"
    assert redacted["password"] == "<redacted>"
    assert redacted["token"] == "<redacted>"
    assert redacted["nested"]["api_key"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_handles_models_and_dataclasses() -> None:
    assert redact_for_log(_Credentials(username="Leif", password="pw")) == {
        "username": "Leif",
        "password": "<redacted>",
    }
    assert redact_for_log(_Session(user_id="1", access_token="abc")) == {
        "user_id": "1",
        "access_token": "<redacted>",
    }


def test_redact_for_log_hides_unknown_objects() -> None:
    class NetworkService:
        pass

    assert redact_for_log(NetworkService()) == "<NetworkService>"
    assert redact_for_log(b"\x00\x01") == "<bytes:2b>"


def test_loggable_shows_type_only_when_disabled() -> None:
    assert loggable({"password": "pw"}, enabled=False) == "<dict>"
    assert loggable({"password": "pw"}, enabled=True) == {"password": "<redacted>"}
