"""Tests for user code and opaque token generation."""
from connect_server.codes import USER_CODE_ALPHABET, new_opaque_token, new_user_code, preview


def test_user_code_shape():
    code = new_user_code("LINK", 4)
    prefix, _, body = code.partition("-")
    assert prefix == "LINK"
    assert len(body) == 4
    assert all(ch in USER_CODE_ALPHABET for ch in body)


def test_user_code_custom_prefix():
    assert new_user_code("WLVY", 6).startswith("WLVY-")
    assert len(new_user_code("WLVY", 6)) == len("WLVY-") + 6


def test_opaque_tokens_are_hex_and_distinct():
    tokens = {new_opaque_token(32) for _ in range(50)}
    assert len(tokens) == 50
    for t in tokens:
        assert len(t) == 64
        int(t, 16)


def test_preview_never_shows_whole_value():
    token = new_opaque_token(32)
    p = preview(token)
    assert token not in p
    assert p.startswith(token[:8])
    assert preview(None) == preview("")
