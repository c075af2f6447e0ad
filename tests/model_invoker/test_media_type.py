import pytest

from correction_pipeline.model_invoker.media_type import detect_media_type, image_format, strip_data_url_prefix


@pytest.mark.parametrize(
    "payload,expected",
    [
        ("/9j/4AAQSkZJRg", "image/jpeg"),
        ("iVBORw0KGgo", "image/png"),
        ("R0lGODlhAQABAA", "image/gif"),
        ("UklGRiQAAABXRUJQ", "image/webp"),
        ("AAAAIGZ0eXBoZWlj", "image/jpeg"),
    ],
)
def test_detect_media_type(payload, expected):
    assert detect_media_type(payload) == expected


def test_strip_data_url_prefix():
    assert strip_data_url_prefix("data:image/png;base64,iVBORw0KGgo") == "iVBORw0KGgo"
    assert strip_data_url_prefix("iVBORw0KGgo") == "iVBORw0KGgo"


@pytest.mark.parametrize(
    "media_type,expected", [("image/jpeg", "jpeg"), ("image/jpg", "jpeg"), ("image/webp", "webp"), ("", "jpeg")]
)
def test_image_format(media_type, expected):
    assert image_format(media_type) == expected
