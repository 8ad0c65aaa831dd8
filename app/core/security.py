# app/core/security.py
import time, hmac, hashlib, base64, json
from typing import Optional, Dict, Any

import bcrypt
from fastapi import HTTPException, Header, Request, Depends
from app.core.config import settings

from datetime import timedelta


# =========================
# Helpers internes JWT
# =========================
def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()

def _b64pad(s: str) -> str:
    return s + "=" * (-len(s) % 4)

def _sign(header: dict, payload: dict, secret: str) -> str:
    header_b64  = _b64url(json.dumps(header, separators=(",", ":"), default=str).encode())
    payload_b64 = _b64url(json.dumps(payload, separators=(",", ":"), default=str).encode())
    token = f"{header_b64}.{payload_b64}"
    sig = hmac.new(secret.encode(), token.encode(), hashlib.sha256).digest()
    return token + "." + _b64url(sig)

# =========================
# Création & vérification JWT
# =========================
def create_jwt(sub: str, exp_sec: int = 3600, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    payload = {"sub": sub, "exp": int(time.time()) + exp_sec}
    if extra_claims:
        for k, v in extra_claims.items():
            if k in ("sub", "exp"):
                continue
            payload[k] = v
    return _sign(header, payload, settings.JWT_SECRET)

def verify_jwt(token: str) -> dict:
    try:
        header_b64, payload_b64, sig_b64 = token.split(".")
        token_unsigned = f"{header_b64}.{payload_b64}"

        expected_sig = _b64url(hmac.new(
            settings.JWT_SECRET.encode(),
            token_unsigned.encode(),
            hashlib.sha256
        ).digest())

        if not hmac.compare_digest(expected_sig, sig_b64):
            raise ValueError("bad signature")

        payload = json.loads(base64.urlsafe_b64decode(_b64pad(payload_b64)).decode())
        if payload.get("exp", 0) < int(time.time()):
            raise ValueError("expired")

        return payload
    except (ValueError, TypeError, UnicodeDecodeError):
        raise HTTPException(status_code=401, detail="Token invalide ou expiré")


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Crée un JWT compatible avec verify_jwt().
    - 'data' doit contenir 'sub' (ou à défaut 'id', utilisé comme sub).
    - Durée par défaut : settings.ACCESS_TOKEN_EXPIRE_MINUTES (24h).
    """
    sub = data.get("sub") or data.get("id")
    if sub is None:
        raise ValueError("create_access_token: 'sub' ou 'id' est requis dans data")

    if expires_delta is not None:
        exp_sec = int(expires_delta.total_seconds())
    else:
        exp_sec = int(settings.ACCESS_TOKEN_EXPIRE_MINUTES) * 60

    extra = data.copy()
    extra.pop("sub", None)
    extra.pop("exp", None)

    return create_jwt(sub=str(sub), exp_sec=exp_sec, extra_claims=extra)


# =========================
# Mots de passe (bcrypt)
# =========================
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # hash mal formé en base
        return False


# =========================
# Adresse IP du client
# =========================
def get_client_ip(request: Request) -> str:
    """
    Ordre : X-Forwarded-For (1re entrée), X-Real-IP, puis l'adresse socket.
    Le préfixe IPv4-mappé "::ffff:" est retiré.
    """
    ip = ""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    if not ip:
        ip = (request.headers.get("x-real-ip") or "").strip()
    if not ip and request.client is not None:
        ip = request.client.host or ""
    if ip.startswith("::ffff:"):
        ip = ip[len("::ffff:"):]
    return ip


# =========================
# Dépendances FastAPI (auth)
# =========================
def get_current_payload(authorization: str = Header(default="")) -> dict:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Token manquant")
    token = authorization[7:]
    return verify_jwt(token)

def get_current_subject(payload: dict = Depends(get_current_payload)) -> str:
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token invalide (sub absent)")
    return sub
