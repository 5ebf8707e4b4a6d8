"""Tests for TokenIssuer and VerificationLinkSigner."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest

from auth.exceptions import InvalidSignatureError, InvalidTokenError, TokenFailure
from auth.tokens import VerificationLinkSigner, email_hash
from auth.types import ActionToken, TokenPurpose

RESET = TokenPurpose.PASSWORD_RESET
TTL = timedelta(minutes=60)


class TestTokenIssuer:
    def test_issued_token_is_stored_as_digest(self, token_issuer, store):
        account_id = uuid4()
        token = token_issuer.issue(account_id, RESET, TTL)

        row = store.get_token(account_id, RESET)
        assert row.token_hash != token
        assert token not in row.token_hash

    def test_token_is_single_use(self, token_issuer):
        account_id = uuid4()
        token = token_issuer.issue(account_id, RESET, TTL)

        token_issuer.consume(account_id, RESET, token)

        with pytest.raises(InvalidTokenError) as exc_info:
            token_issuer.consume(account_id, RESET, token)
        assert exc_info.value.reason == TokenFailure.NOT_FOUND

    def test_reissue_invalidates_previous(self, token_issuer):
        account_id = uuid4()
        first = token_issuer.issue(account_id, RESET, TTL)
        second = token_issuer.issue(account_id, RESET, TTL)

        with pytest.raises(InvalidTokenError):
            token_issuer.consume(account_id, RESET, first)
        token_issuer.consume(account_id, RESET, second)

    def test_unknown_token_not_found(self, token_issuer):
        account_id = uuid4()
        token_issuer.issue(account_id, RESET, TTL)

        with pytest.raises(InvalidTokenError) as exc_info:
            token_issuer.consume(account_id, RESET, "guess")
        assert exc_info.value.reason == TokenFailure.NOT_FOUND

    def test_expired_token_is_rejected_and_spent(self, token_issuer, clock):
        account_id = uuid4()
        token = token_issuer.issue(account_id, RESET, TTL)
        clock.advance(minutes=60)

        with pytest.raises(InvalidTokenError) as exc_info:
            token_issuer.consume(account_id, RESET, token)
        assert exc_info.value.reason == TokenFailure.EXPIRED

        with pytest.raises(InvalidTokenError) as exc_info:
            token_issuer.consume(account_id, RESET, token)
        assert exc_info.value.reason == TokenFailure.NOT_FOUND

    def test_token_valid_just_before_expiry(self, token_issuer, clock):
        account_id = uuid4()
        token = token_issuer.issue(account_id, RESET, TTL)
        clock.advance(minutes=59, seconds=59)

        token_issuer.consume(account_id, RESET, token)

    def test_token_bound_to_account_and_purpose(self, token_issuer):
        account_id = uuid4()
        token = token_issuer.issue(account_id, RESET, TTL)

        with pytest.raises(InvalidTokenError):
            token_issuer.consume(uuid4(), RESET, token)
        with pytest.raises(InvalidTokenError):
            token_issuer.consume(account_id, TokenPurpose.EMAIL_VERIFY, token)

    def test_row_liveness(self, clock):
        row = ActionToken(
            account_id=uuid4(),
            purpose=RESET,
            token_hash="digest",
            issued_at=clock(),
            expires_at=clock() + TTL,
        )

        assert row.is_live(clock())
        assert not row.is_live(clock() + TTL)
        assert not row.model_copy(update={"consumed_at": clock()}).is_live(clock())


def link_parts(url: str) -> tuple[str, str, str, str]:
    parsed = urlparse(url)
    *_, account_id, hashed = parsed.path.split("/")
    query = parse_qs(parsed.query)
    return account_id, hashed, query["expires"][0], query["signature"][0]


class TestVerificationLinkSigner:
    def test_link_shape(self, link_signer, make_account):
        account = make_account()

        url = link_signer.create(account)

        assert url.startswith(f"https://app.test/api/email/verify/{account.id}/{email_hash(account.email)}?")
        account_id, hashed, expires, signature = link_parts(url)
        assert account_id == str(account.id)
        assert int(expires) > 0
        assert len(signature) == 64

    def test_fresh_link_verifies(self, link_signer, make_account):
        link_signer.verify(*link_parts(link_signer.create(make_account())))

    def test_tampered_hash_rejected(self, link_signer, make_account):
        account_id, _, expires, signature = link_parts(link_signer.create(make_account()))

        with pytest.raises(InvalidSignatureError):
            link_signer.verify(account_id, email_hash("other@example.com"), expires, signature)

    def test_tampered_expiry_rejected(self, link_signer, make_account):
        account_id, hashed, expires, signature = link_parts(link_signer.create(make_account()))

        with pytest.raises(InvalidSignatureError):
            link_signer.verify(account_id, hashed, str(int(expires) + 3600), signature)

    def test_expired_link_rejected(self, link_signer, make_account, clock, config):
        parts = link_parts(link_signer.create(make_account()))
        clock.advance(minutes=config.verification_link_expiry_minutes)

        with pytest.raises(InvalidSignatureError, match="expired"):
            link_signer.verify(*parts)

    @pytest.mark.parametrize("expires, signature", [(None, "sig"), ("123", None), ("123", "")])
    def test_unsigned_link_rejected(self, link_signer, expires, signature):
        with pytest.raises(InvalidSignatureError, match="Unsigned"):
            link_signer.verify(str(uuid4()), "hash", expires, signature)

    def test_malformed_expiry_rejected(self, link_signer):
        with pytest.raises(InvalidSignatureError, match="Malformed"):
            link_signer.verify(str(uuid4()), "hash", "soon", "sig")

    def test_other_key_rejects(self, link_signer, make_account, config, clock):
        other = VerificationLinkSigner("another-key", config, clock=clock)
        parts = link_parts(link_signer.create(make_account()))

        with pytest.raises(InvalidSignatureError):
            other.verify(*parts)

    def test_empty_key_rejected(self, config):
        with pytest.raises(ValueError):
            VerificationLinkSigner("", config)


def test_email_hash_ignores_case_and_whitespace():
    assert email_hash(" John@Example.com ") == email_hash("john@example.com")
