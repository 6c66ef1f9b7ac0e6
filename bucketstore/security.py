from datetime import datetime, timedelta, timezone
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext


class TokenSigner:
    def __init__(self, secret_key: str, *, algorithm: str = "HS256", ttl_seconds: int = 3600):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def sign(self, *, user_id: str, email: str) -> str:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        # jti keeps two tokens issued in the same second distinct
        claims = {"sub": user_id, "email": email, "exp": expires_at, "jti": uuid4().hex}
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> dict | None:
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if not claims.get("sub"):
            return None
        return claims


class PasswordHasher:
    def __init__(self):
        self.context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def hash(self, password: str) -> str:
        return self.context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        return self.context.verify(password, password_hash)
