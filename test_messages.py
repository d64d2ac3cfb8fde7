"""
Тесты разбора сообщений
"""

import pytest

from conftest import document_payload, make_message
from messages import MessageKind, classify_message, command_name, extract_urls


def test_classify_kinds():
    photo = [{"file_id": "p1", "file_unique_id": "up1", "width": 10, "height": 10}]
    sticker = {
        "file_id": "s1",
        "file_unique_id": "us1",
        "type": "regular",
        "width": 512,
        "height": 512,
        "is_animated": False,
        "is_video": False,
    }
    video = {"file_id": "v1", "file_unique_id": "uv1", "width": 1, "height": 1, "duration": 1, "mime_type": "video/mp4"}

    assert classify_message(make_message(text="/start")) is MessageKind.COMMAND
    assert classify_message(make_message(text="look https://x.org/a.mp4")) is MessageKind.TEXT
    assert classify_message(make_message(document=document_payload())) is MessageKind.DOCUMENT
    assert classify_message(make_message(video=video)) is MessageKind.DOCUMENT
    assert classify_message(make_message(photo=photo)) is MessageKind.PHOTO
    assert classify_message(make_message(sticker=sticker)) is MessageKind.STICKER
    assert classify_message(make_message(location={"latitude": 1.0, "longitude": 2.0})) is MessageKind.OTHER


def test_forwarded_message_uses_its_content():
    forwarded = make_message(
        document=document_payload(),
        forward_origin={"type": "hidden_user", "date": 0, "sender_user_name": "someone"},
    )

    assert classify_message(forwarded) is MessageKind.DOCUMENT


def test_document_wins_over_caption_text():
    message = make_message(document=document_payload(), caption="see https://example.com")

    assert classify_message(message) is MessageKind.DOCUMENT


@pytest.mark.parametrize(
    "text, expected",
    [
        ("no links here", []),
        ("https://a.com/x.mp4", ["https://a.com/x.mp4"]),
        ("two: http://a.com/1.mp4, and (https://b.org/2.webm).", ["http://a.com/1.mp4", "https://b.org/2.webm"]),
        ("www.example.com/v.mp4!", ["http://www.example.com/v.mp4"]),
        ("same https://a.com twice https://a.com", ["https://a.com", "https://a.com"]),
        ("https://en.wikipedia.org/wiki/Foo_(bar)", ["https://en.wikipedia.org/wiki/Foo_(bar)"]),
        ("(see https://en.wikipedia.org/wiki/Foo_(bar)).", ["https://en.wikipedia.org/wiki/Foo_(bar)"]),
    ],
)
def test_extract_urls(text, expected):
    assert extract_urls(text) == expected


def test_command_name():
    assert command_name("/start") == "start"
    assert command_name("/Hello@GifExportBot now") == "hello"
