import pytest

from auth import TokenClaims, TokenService
from errors import Forbidden, Unauthorized

SECRET = "test-secret"


def _teacher() -> TokenClaims:
    return TokenClaims(id="root", nickname="teacher", is_teacher=True)


def test_generated_token_checks_back(tmp_path) -> None:
    log = tmp_path / "created_tokens.csv"
    service = TokenService(SECRET, created_tokens_path=log)

    token = service.generate_token(_teacher(), "alice", is_teacher=False)
    claims = service.check(f"Bearer {token}")

    assert claims.nickname == "alice"
    assert claims.is_teacher is False
    assert claims.issuer == "teacher"
    assert log.read_text(encoding="utf-8") == f"teacher;alice;{claims.id};False\n"


def test_each_token_gets_its_own_user_id() -> None:
    service = TokenService(SECRET)
    first = service.check("Bearer " + service.issue("alice", False))
    second = service.check("Bearer " + service.issue("alice", False))
    assert first.id != second.id


def test_only_teachers_issue_tokens() -> None:
    service = TokenService(SECRET)
    student = TokenClaims(id="s", nickname="student", is_teacher=False)

    with pytest.raises(Forbidden):
        service.generate_token(student, "bob", is_teacher=False)
    with pytest.raises(Unauthorized):
        service.generate_token(None, "bob", is_teacher=False)


def test_check_rejects_missing_prefix_and_tampering() -> None:
    service = TokenService(SECRET)
    token = service.issue("alice", False)

    with pytest.raises(Unauthorized):
        service.check(token)
    with pytest.raises(Unauthorized):
        service.check(None)
    with pytest.raises(Unauthorized):
        service.check("Bearer x" + token)
    with pytest.raises(Unauthorized):
        TokenService("other-secret").check("Bearer " + token)


def test_revoked_token_is_forbidden() -> None:
    issuer = TokenService(SECRET)
    token = issuer.issue("alice", False)
    token_id = issuer.check("Bearer " + token).id

    with pytest.raises(Forbidden, match="revoked"):
        TokenService(SECRET, revoked_tokens=[token_id]).check("Bearer " + token)
