import pytest

from toonstudio.ai_generation import (
    decode_data_uri,
    encode_data_uri,
    guess_image_mime_type,
    save_data_uri,
    strip_data_uri_prefix,
)


def test_png_round_trip_is_byte_identical(png_bytes):
    uri = encode_data_uri(png_bytes)

    assert uri.startswith("data:image/png;base64,")
    decoded = decode_data_uri(uri)
    assert decoded.data == png_bytes
    assert decoded.mime_type == "image/png"


def test_round_trip_keeps_explicit_mime_type():
    jpeg = b"\xff\xd8\xff\xe0fake-jpeg"
    decoded = decode_data_uri(encode_data_uri(jpeg, "image/jpeg"))

    assert decoded.data == jpeg
    assert decoded.mime_type == "image/jpeg"
    assert decoded.extension == ".jpg"


def test_missing_mime_type_defaults_to_png():
    assert decode_data_uri("data:;base64,aGVsbG8=").mime_type == "image/png"


@pytest.mark.parametrize("value", ["not a uri", "data:image/png;base64,@@@@", "data:image/png,plain"])
def test_invalid_data_uri_raises(value):
    with pytest.raises(ValueError, match="Invalid image data"):
        decode_data_uri(value)


def test_strip_prefix_returns_payload():
    assert strip_data_uri_prefix("data:image/webp;base64,QUJD") == "QUJD"


def test_guess_mime_type_from_magic_bytes(png_bytes):
    assert guess_image_mime_type(png_bytes) == "image/png"
    assert guess_image_mime_type(b"GIF89a....") == "image/gif"
    assert guess_image_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"


def test_save_data_uri_adds_extension(tmp_path, png_bytes):
    path = save_data_uri(encode_data_uri(png_bytes), tmp_path / "out" / "cover")

    assert path.name == "cover.png"
    assert path.read_bytes() == png_bytes
