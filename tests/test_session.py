import uuid

import pytest

from memorial.security import session as session_tokens
from memorial.security.session import SessionCodec

SECRET = "unit-test-secret-0123456789abcdef0123"


@pytest.fixture
def codec():
    return SessionCodec(SECRET)


def test_round_trip(codec):
    approver_id = str(uuid.uuid4())
    assert codec.verify(codec.issue(approver_id)) == approver_id


def test_token_shape(codec):
    approver_id = str(uuid.uuid4())
    token = codec.issue(approver_id)
    ident, signature = token.split(".", 1)
    assert ident == approver_id
    # 32-byte HMAC, unpadded base64url
    assert len(signature) == 43
    assert "=" not in signature and "+" not in signature and "/" not in signature


def test_every_single_character_mutation_is_invalid(codec):
    token = codec.issue(str(uuid.uuid4()))
    for i, char in enumerate(token):
        replacement = "A" if char != "A" else "B"
        mutated = token[:i] + replacement + token[i + 1:]
        assert codec.verify(mutated) is None, f"mutation at {i} accepted"


def test_other_secret_rejects(codec):
    token = codec.issue(str(uuid.uuid4()))
    assert SessionCodec("another-secret-entirely-0123456789").verify(token) is None


@pytest.mark.parametrize(
    "raw",
    [None, "", ".", "abc", "abc.", ".abc", "abc.!!!!", "abc.ä", "abc.def.ghi"],
)
def test_garbage_is_invalid_not_an_error(codec, raw):
    assert codec.verify(raw) is None


def test_truncated_or_extended_signature(codec):
    token = codec.issue(str(uuid.uuid4()))
    assert codec.verify(token[:-1]) is None
    assert codec.verify(token + "A") is None


def test_peek_reads_without_verifying(codec):
    approver_id = str(uuid.uuid4())
    forged = f"{approver_id}.not-a-real-signature"
    assert session_tokens.peek(forged) == approver_id
    assert codec.verify(forged) is None
    assert session_tokens.peek("no-separator") is None


def test_issue_rejects_separator_in_id(codec):
    with pytest.raises(ValueError):
        codec.issue("a.b")


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        SessionCodec("")
