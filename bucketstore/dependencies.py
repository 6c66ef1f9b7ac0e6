from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bucketstore.repository import Repository
from bucketstore.security import TokenSigner

SQLITE_MAX_INTEGER = 2**63 - 1


@dataclass
class AuthSession:
    user: dict
    token: str

    @property
    def user_id(self) -> str:
        return self.user["user_id"]


def page_window(page: int, page_size: int, max_page_size: int) -> tuple[int, int]:
    if page_size > max_page_size:
        raise HTTPException(status_code=400, detail=f"page_size must be <= {max_page_size}")
    offset = (page - 1) * page_size
    if offset > SQLITE_MAX_INTEGER:
        raise HTTPException(status_code=400, detail="page is out of range")
    return page_size, offset


def build_current_session(repository: Repository, signer: TokenSigner):
    bearer = HTTPBearer(auto_error=False)

    def unauthorized() -> HTTPException:
        return HTTPException(
            status_code=401,
            detail="please log in",
            headers={"WWW-Authenticate": "Bearer"},
        )

    def current_session(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> AuthSession:
        if credentials is None:
            raise unauthorized()
        token = credentials.credentials
        claims = signer.verify(token)
        if claims is None:
            raise unauthorized()

        user = repository.get_user(claims["sub"])
        if user is None or not repository.has_token(user["user_id"], token):
            raise unauthorized()
        return AuthSession(user=user, token=token)

    return current_session
