from __future__ import annotations

from datetime import timedelta

from gamehub.security import IdentityTokens


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def test_issued_token_verifies_to_account_id() -> None:
    tokens = IdentityTokens("secret")
    token = tokens.issue("65a0c0ffee")

    assert tokens.verify(token) == "65a0c0ffee"


def test_token_expires_after_one_hour() -> None:
    clock = FakeClock()
    tokens = IdentityTokens("secret", clock=clock)
    token = tokens.issue("account-1")

    clock.now += 3599
    assert tokens.verify(token) == "account-1"

    clock.now += 2
    assert tokens.verify(token) is None
    assert tokens.ttl == timedelta(hours=1)


def test_token_from_other_secret_is_rejected() -> None:
    token = IdentityTokens("secret-a").issue("account-1")

    assert IdentityTokens("secret-b").verify(token) is None


def test_tampered_or_empty_token_is_rejected() -> None:
    tokens = IdentityTokens("secret")
    token = tokens.issue("account-1")
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")

    assert tokens.verify(tampered) is None
    assert tokens.verify("") is None
    assert tokens.verify("not a token ü") is None


def test_missing_secret_generates_ephemeral_key() -> None:
    tokens = IdentityTokens.from_secret(None)

    assert tokens.verify(tokens.issue("account-1")) == "account-1"
