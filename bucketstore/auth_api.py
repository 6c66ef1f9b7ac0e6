import logging

from fastapi import APIRouter, Depends, HTTPException

from bucketstore.dependencies import AuthSession
from bucketstore.models import AuthResponse, LoginRequest, MessageResponse, RegisterRequest, UserRecord
from bucketstore.repository import Repository
from bucketstore.security import PasswordHasher, TokenSigner

logger = logging.getLogger(__name__)


def build_router(
    *,
    repository: Repository,
    signer: TokenSigner,
    hasher: PasswordHasher,
    current_session,
) -> APIRouter:
    router = APIRouter(prefix="/auth", tags=["auth"])

    def issue_token(user: dict) -> str:
        token = signer.sign(user_id=user["user_id"], email=user["email"])
        repository.add_token(user["user_id"], token)
        return token

    @router.post("/register", response_model=AuthResponse, status_code=201)
    def register(payload: RegisterRequest):
        email = payload.email.lower()
        if repository.get_user_by_email(email):
            raise HTTPException(status_code=400, detail="user already exists")

        user = repository.create_user(
            full_name=payload.full_name.strip(),
            email=email,
            password_hash=hasher.hash(payload.password),
        )
        logger.info("registered user %s", user["user_id"])
        return AuthResponse(user=UserRecord(**user), token=issue_token(user))

    @router.post("/login", response_model=AuthResponse)
    def login(payload: LoginRequest):
        user = repository.get_user_by_email(payload.email.lower())
        if user is None or not hasher.verify(payload.password, user["password_hash"]):
            raise HTTPException(status_code=400, detail="unable to login")

        logger.info("user %s logged in", user["user_id"])
        return AuthResponse(user=UserRecord(**user), token=issue_token(user))

    @router.post("/logout", response_model=MessageResponse)
    def logout(session: AuthSession = Depends(current_session)):
        repository.remove_token(session.user_id, session.token)
        return MessageResponse(message="logged out")

    @router.post("/logoutall", response_model=MessageResponse)
    def logout_all(session: AuthSession = Depends(current_session)):
        revoked = repository.clear_tokens(session.user_id)
        logger.info("revoked %d sessions for user %s", revoked, session.user_id)
        return MessageResponse(message="all sessions logged out")

    @router.get("/me", response_model=UserRecord)
    def me(session: AuthSession = Depends(current_session)):
        return UserRecord(**session.user)

    return router
