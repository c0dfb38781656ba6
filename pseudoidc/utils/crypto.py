import base64
import binascii
from hashlib import sha256

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

NONCE_SIZE = 12
TAG_SIZE = 16


class AESCipher(object):
    """
    Authenticated encryption (AES-GCM) of short strings such as cookie values.

    Any modification of the ciphertext makes `decrypt` return `None`.
    """

    def __init__(self, key: str):
        self.key = sha256(key.encode()).digest()

    def encrypt(self, raw: str) -> str:
        nonce = get_random_bytes(NONCE_SIZE)
        cipher = AES.new(self.key, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        ciphertext, tag = cipher.encrypt_and_digest(raw.encode("utf-8"))
        return base64.urlsafe_b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, enc: str) -> str | None:
        try:
            decoded_raw = base64.urlsafe_b64decode(enc.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError, ValueError):
            return None
        if len(decoded_raw) < NONCE_SIZE + TAG_SIZE:
            return None
        nonce = decoded_raw[:NONCE_SIZE]
        tag = decoded_raw[NONCE_SIZE : NONCE_SIZE + TAG_SIZE]
        cipher = AES.new(self.key, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        try:
            return cipher.decrypt_and_verify(
                decoded_raw[NONCE_SIZE + TAG_SIZE :], tag
            ).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
