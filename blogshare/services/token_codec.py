# blogshare/services/token_codec.py
import re
import secrets

# base64url-Alphabet, min. 16 Zeichen; Obergrenze = Spaltenbreite
TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")
DEFAULT_TOKEN_BYTES = 16  # ergibt 22 Zeichen


def is_valid_format(token) -> bool:
    """Reine Syntaxprüfung, kein DB-Zugriff."""
    if not isinstance(token, str):
        return False
    return TOKEN_RE.fullmatch(token) is not None


def generate(nbytes: int = DEFAULT_TOKEN_BYTES) -> str:
    # unter 12 Bytes würde die Mindestlänge unterschritten
    return secrets.token_urlsafe(max(nbytes, 12))


def token_hint(token) -> str:
    """Für Logs: nur ein kurzer Präfix, nie der ganze Token."""
    if not isinstance(token, str) or not token:
        return "<none>"
    return token[:6] + "…"
