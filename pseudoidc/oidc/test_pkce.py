import pytest

from pseudoidc.oidc.pkce import (
    UNRESERVED_CHARACTERS,
    code_challenge,
    constant_time_equals,
    generate_code_verifier,
    generate_nonce,
    generate_state,
)


def test_code_challenge_rfc7636_example():
    # RFC 7636 appendix B
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_code_verifier_alphabet_and_length():
    verifier = generate_code_verifier()
    assert 43 <= len(verifier) <= 128
    assert set(verifier) <= set(UNRESERVED_CHARACTERS)


@pytest.mark.parametrize("length", [42, 129])
def test_code_verifier_rejects_out_of_range_length(length):
    with pytest.raises(ValueError):
        generate_code_verifier(length)


def test_state_and_nonce_are_unique_and_long():
    states = {generate_state() for _ in range(50)}
    assert len(states) == 50
    # 32 random bytes encode to 43 characters
    assert all(len(state) >= 43 for state in states)
    assert generate_nonce() != generate_nonce()


def test_constant_time_equals():
    assert constant_time_equals("abc", "abc")
    assert not constant_time_equals("abc", "abd")
    assert not constant_time_equals("abc", None)
    assert not constant_time_equals(None, None)
    assert not constant_time_equals("", "")
    assert not constant_time_equals("5", 5)
    assert not constant_time_equals("abc", ["abc"])
