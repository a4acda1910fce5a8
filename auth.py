from __future__ import annotations

import argparse
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from itsdangerous import BadSignature, URLSafeSerializer

from errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class TokenClaims:
    id: str
    nickname: str
    is_teacher: bool
    issuer: str = ""
    issued_at: int = 0


class TokenService:
    def __init__(
        self,
        secret_key: str,
        revoked_tokens: Iterable[str] = (),
        created_tokens_path: Optional[Path] = None,
    ) -> None:
        self.secret_key = secret_key
        self.revoked_tokens = set(revoked_tokens)
        self.created_tokens_path = created_tokens_path

    def _serializer(self) -> URLSafeSerializer:
        return URLSafeSerializer(self.secret_key, salt="auth-token")

    def issue(self, nickname: str, is_teacher: bool, issuer: str = "") -> str:
        claims = TokenClaims(
            id=str(uuid.uuid4()),
            nickname=nickname,
            is_teacher=is_teacher,
            issuer=issuer,
            # Backdated so clock skew never yields a token from the future.
            issued_at=int(time.time()) - 60,
        )
        token = self._serializer().dumps(
            {
                "id": claims.id,
                "nickname": claims.nickname,
                "isTeacher": claims.is_teacher,
                "iss": claims.issuer,
                "iat": claims.issued_at,
            }
        )
        self._record_created(claims)
        return token

    def generate_token(
        self, issuer: Optional[TokenClaims], nickname: str, is_teacher: bool
    ) -> str:
        if issuer is None:
            raise Unauthorized("issuer claims are empty")
        if not issuer.is_teacher:
            raise Forbidden("issuer is not a teacher")
        return self.issue(nickname, is_teacher, issuer=issuer.nickname)

    def check(self, authorization: Optional[str]) -> TokenClaims:
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise Unauthorized("auth header is invalid")

        token = authorization[len(BEARER_PREFIX) :]
        try:
            data = self._serializer().loads(token)
        except BadSignature as exc:
            raise Unauthorized("can't parse token") from exc
        if not isinstance(data, dict) or not data.get("id"):
            raise Unauthorized("token has no id")
        if not data.get("nickname"):
            raise Unauthorized("nickname is empty")

        claims = TokenClaims(
            id=str(data["id"]),
            nickname=str(data["nickname"]),
            is_teacher=bool(data.get("isTeacher", False)),
            issuer=str(data.get("iss", "")),
            issued_at=int(data.get("iat", 0)),
        )
        if claims.id in self.revoked_tokens:
            raise Forbidden(
                f"revoked token with nickname {claims.nickname} and id {claims.id}"
            )
        return claims

    def _record_created(self, claims: TokenClaims) -> None:
        if self.created_tokens_path is None:
            return
        line = f"{claims.issuer};{claims.nickname};{claims.id};{claims.is_teacher}\n"
        try:
            with open(self.created_tokens_path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as exc:
            logger.warning(
                f"Can't record created token in {self.created_tokens_path}: {exc}"
            )


def main() -> None:
    from config import get_settings

    parser = argparse.ArgumentParser(description="Issue a bootstrap teacher token")
    parser.add_argument("nickname")
    args = parser.parse_args()

    settings = get_settings()
    service = TokenService(
        settings.secret_key, created_tokens_path=settings.created_tokens_path
    )
    print(service.issue(args.nickname, is_teacher=True, issuer="cli"))


if __name__ == "__main__":
    main()
