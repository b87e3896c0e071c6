import hmac


def verify_secret(secret: str, expected: str) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(secret.encode(), expected.encode())
