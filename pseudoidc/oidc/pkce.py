import base64
import hmac
import secrets
import string
from hashlib import sha256

# RFC 7636 section 4.1
UNRESERVED_CHARACTERS = string.ascii_letters + string.digits + "-._~"
CODE_VERIFIER_LENGTH = 64


def generate_state() -> str:
    """256 bits of entropy, URL safe."""
    return secrets.token_urlsafe(32)


def generate_nonce() -> str:
    return secrets.token_urlsafe(32)


def generate_code_verifier(length: int = CODE_VERIFIER_LENGTH) -> str:
    if not 43 <= length <= 128:
        raise ValueError("PKCE code verifier must be 43 to 128 characters long")
    return "".join(secrets.choice(UNRESERVED_CHARACTERS) for _ in range(length))


def code_challenge(code_verifier: str) -> str:
    """S256 challenge: BASE64URL(SHA256(verifier)) without padding."""
    digest = sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def constant_time_equals(expected: object, received: object) -> bool:
    if not isinstance(expected, str) or not isinstance(received, str):
        return False
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
