# app/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from app.db.session import get_session
from app.db.models import User
from app.schemas import LoginIn, LoginOut, UserPublic, ClientIpOut
from app.core.security import create_access_token, verify_password, get_client_ip
from app.core.roles import get_current_user


router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("auth")


# ===============================
# Connexion
# ===============================
@router.post("/login", response_model=LoginOut)
async def login(body: LoginIn, request: Request, db: AsyncSession = Depends(get_session)):
    """
    Connexion par identifiant / mot de passe.
    Si l'utilisateur a une restriction IP active, l'IP du client doit
    correspondre exactement à allowed_ip.
    """
    username = (body.username or "").strip()
    if not username or not body.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Identifiants manquants")

    user = (await db.execute(select(User).where(User.username == username))).scalar_one_or_none()
    if not user or not verify_password(body.password, user.password_hash):
        logger.info("[login] refusé pour %s", username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Identifiants incorrects")

    if user.ip_restriction_enabled and user.allowed_ip:
        client_ip = get_client_ip(request)
        if client_ip != user.allowed_ip.strip():
            logger.warning("[login] IP %s refusée pour %s (autorisée: %s)", client_ip, username, user.allowed_ip)
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={
                    "detail": "Accès refusé : Votre adresse IP n'est pas autorisée",
                    "clientIp": client_ip,
                },
            )

    token = create_access_token({
        "sub": user.id,
        "id": user.id,
        "username": user.username,
        "role": user.role.value,
    })
    return LoginOut(token=token, user=UserPublic.model_validate(user))


@router.get("/me", response_model=UserPublic)
async def me(current_user: User = Depends(get_current_user)):
    return UserPublic.model_validate(current_user)


@router.get("/client-ip", response_model=ClientIpOut)
async def client_ip(request: Request):
    return ClientIpOut(ip=get_client_ip(request))
