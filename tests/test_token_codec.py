import pytest

from blogshare.services import token_codec


def test_generated_tokens_are_valid_and_distinct():
    tokens = {token_codec.generate() for _ in range(50)}
    assert len(tokens) == 50
    assert all(token_codec.is_valid_format(t) for t in tokens)
    assert all(len(t) == 22 for t in tokens)


def test_small_byte_counts_still_produce_valid_tokens():
    assert token_codec.is_valid_format(token_codec.generate(1))


@pytest.mark.parametrize("token", [
    "",
    "short",
    "abc123",
    "x" * 15,
    "has spaces in the token!!",
    "../../etc/passwd-aaaaaaaa",
    "a" * 129,
    None,
    12345678901234567890,
])
def test_malformed_tokens_are_rejected(token):
    assert token_codec.is_valid_format(token) is False


def test_boundary_lengths_are_accepted():
    assert token_codec.is_valid_format("A" * 16)
    assert token_codec.is_valid_format("a-b_C" * 25 + "xyz")


def test_token_hint_never_reveals_full_token():
    t = token_codec.generate()
    assert token_codec.token_hint(t) != t
    assert token_codec.token_hint(None) == "<none>"
