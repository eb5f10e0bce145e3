"""
Tests for the authorization predicates and chain runner.

Predicates are exercised directly against an AuthContext, without HTTP.
"""

from unittest.mock import patch

import pytest

from messagely.auth import (
    ALLOW,
    AuthContext,
    CORRECT_USER,
    CORRESPONDENT,
    Decision,
    LOGGED_IN,
    RECIPIENT,
    correct_user,
    correspondent,
    deny,
    identity_resolved,
    logged_in,
    recipient,
    run_chain,
)
from messagely.security import IdentityClaim, issue_token


def make_ctx(db, claim_username=None, **path_params):
    claim = IdentityClaim(username=claim_username) if claim_username else None
    return AuthContext(db=db, claim=claim, path_params={k: str(v) for k, v in path_params.items()})


class TestIdentityResolved:

    def test_attaches_claim_for_valid_token(self, db):
        ctx = AuthContext(db=db, token=issue_token("test1"))
        assert identity_resolved(ctx) == ALLOW
        assert ctx.claim.username == "test1"

    def test_never_denies_without_token(self, db):
        ctx = AuthContext(db=db)
        assert identity_resolved(ctx).allowed
        assert ctx.claim is None

    def test_never_denies_bad_token(self, db):
        ctx = AuthContext(db=db, token="forged")
        assert identity_resolved(ctx).allowed
        assert ctx.claim is None


class TestLoggedIn:

    def test_allows_with_claim(self, db):
        assert logged_in(make_ctx(db, "ghost")).allowed

    def test_denies_without_claim(self, db):
        assert not logged_in(make_ctx(db)).allowed

    def test_trusts_token_user_by_default(self, db):
        # No such user in the directory, but the claim is trusted as-is
        assert logged_in(make_ctx(db, "ghost")).allowed

    def test_revalidation_denies_unknown_user(self, db, seeded):
        ctx = make_ctx(db, "ghost")
        ctx.revalidate_user = True
        assert not logged_in(ctx).allowed

    def test_revalidation_allows_known_user(self, db, seeded):
        ctx = make_ctx(db, "test1")
        ctx.revalidate_user = True
        assert logged_in(ctx).allowed


class TestCorrectUser:

    def test_allows_matching_username(self, db):
        assert correct_user(make_ctx(db, "test1", username="test1")).allowed

    def test_denies_other_username(self, db):
        decision = correct_user(make_ctx(db, "test2", username="test1"))
        assert not decision.allowed

    def test_denies_without_claim(self, db):
        assert not correct_user(make_ctx(db, username="test1")).allowed


class TestCorrespondent:

    def test_sender_allowed(self, db, seeded):
        assert correspondent(make_ctx(db, "test1", id=seeded["m1"])).allowed

    def test_recipient_allowed(self, db, seeded):
        assert correspondent(make_ctx(db, "test2", id=seeded["m1"])).allowed

    def test_third_user_denied(self, db, seeded):
        assert not correspondent(make_ctx(db, "test3", id=seeded["m1"])).allowed

    def test_unknown_message_denied_not_raised(self, db, seeded):
        decision = correspondent(make_ctx(db, "test1", id=99999))
        assert decision == deny("message not found")

    def test_non_integer_id_denied(self, db, seeded):
        assert not correspondent(make_ctx(db, "test1", id="abc")).allowed

    def test_oversized_id_denied_not_raised(self, db, seeded):
        decision = correspondent(make_ctx(db, "test1", id=10**20))
        assert decision == deny("message not found")

    def test_denies_without_claim(self, db, seeded):
        assert not correspondent(make_ctx(db, id=seeded["m1"])).allowed

    def test_caches_loaded_message(self, db, seeded):
        ctx = make_ctx(db, "test1", id=seeded["m1"])
        correspondent(ctx)
        assert ctx.message_parties == ("test1", "test2")


class TestRecipient:

    def test_recipient_allowed(self, db, seeded):
        assert recipient(make_ctx(db, "test2", id=seeded["m1"])).allowed

    def test_sender_denied(self, db, seeded):
        assert not recipient(make_ctx(db, "test1", id=seeded["m1"])).allowed

    def test_third_user_denied(self, db, seeded):
        assert not recipient(make_ctx(db, "test3", id=seeded["m1"])).allowed

    def test_unknown_message_denied(self, db, seeded):
        assert not recipient(make_ctx(db, "test2", id=99999)).allowed

    def test_oversized_id_denied(self, db, seeded):
        assert recipient(make_ctx(db, "test2", id=10**20)) == deny("message not found")


class TestRunChain:

    def test_empty_chain_allows(self, db):
        ctx = AuthContext(db=db)
        assert run_chain(ctx, []) == ALLOW
        assert ctx.decision == ALLOW

    def test_decision_pending_before_run(self, db):
        assert AuthContext(db=db).decision is None

    def test_evaluates_in_order_and_short_circuits(self, db):
        calls = []

        def first(ctx):
            calls.append("first")
            return deny("first failed")

        def second(ctx):
            calls.append("second")
            return ALLOW

        ctx = AuthContext(db=db)
        decision = run_chain(ctx, [first, second])

        assert calls == ["first"]
        assert decision == Decision(allowed=False, reason="first failed")
        assert ctx.decision == decision

    def test_all_allow(self, db):
        ctx = AuthContext(db=db)
        assert run_chain(ctx, [lambda c: ALLOW, lambda c: ALLOW]).allowed

    def test_logged_in_chain_anonymous(self, db):
        ctx = AuthContext(db=db, token=None)
        assert run_chain(ctx, (identity_resolved, *LOGGED_IN)).reason == "no valid token"

    def test_correct_user_chain(self, db):
        ctx = AuthContext(db=db, token=issue_token("test1"), path_params={"username": "test1"})
        assert run_chain(ctx, (identity_resolved, *CORRECT_USER)).allowed

    def test_correspondent_chain_skips_lookup_when_anonymous(self, db, seeded):
        ctx = AuthContext(db=db, token=None, path_params={"id": str(seeded["m1"])})
        with patch("messagely.auth.get_message_parties") as lookup:
            decision = run_chain(ctx, (identity_resolved, *CORRESPONDENT))
        assert not decision.allowed
        lookup.assert_not_called()

    @pytest.mark.parametrize("username,allowed", [("test1", False), ("test2", True), ("test3", False)])
    def test_recipient_chain(self, db, seeded, username, allowed):
        ctx = AuthContext(db=db, token=issue_token(username), path_params={"id": str(seeded["m1"])})
        assert run_chain(ctx, (identity_resolved, *RECIPIENT)).allowed is allowed
