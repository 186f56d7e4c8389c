import hashlib
import hmac
import secrets


def generate_code(length: int = 6) -> str:
    # uniform digits, leading zeros allowed
    return "".join(secrets.choice("0123456789") for _ in range(length))


def hash_code(code: str) -> str:
    # stable hash so records can be looked up by (email, code)
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def verify_code_hash(code: str, code_hash: str) -> bool:
    return hmac.compare_digest(hash_code(code), code_hash)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()
