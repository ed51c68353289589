# tests/test_user_filter.py
from __future__ import annotations

import logging

import pytest

from providers.scrobble.events import Account
from providers.webhooks._user_filter import AuthorizationPolicy, is_authorized

ALICE = Account(name="alice", id="1", is_owner=True)
BOB = Account(name="bob", id="42", is_owner=False)
CAROL = Account(name="carol", id=None, is_owner=False)


def test_owner_only_allows_owner():
    assert is_authorized(ALICE, AuthorizationPolicy(owner_only=True))


def test_owner_only_is_exclusive():
    policy = AuthorizationPolicy(owner_only=True, allowed_users=("bob",), allowed_user_ids=("42",), allowed_user="bob")
    assert not is_authorized(BOB, policy)


def test_name_list():
    policy = AuthorizationPolicy(allowed_users=("alice", "bob"))
    assert is_authorized(BOB, policy)
    assert not is_authorized(CAROL, policy)


def test_name_match_is_exact():
    assert not is_authorized(BOB, AuthorizationPolicy(allowed_users=("Bob",)))


def test_id_list():
    policy = AuthorizationPolicy(allowed_user_ids=("42",))
    assert is_authorized(BOB, policy)
    assert not is_authorized(ALICE, policy)
    assert not is_authorized(CAROL, policy)


def test_single_user():
    policy = AuthorizationPolicy(allowed_user="carol")
    assert is_authorized(CAROL, policy)
    assert not is_authorized(BOB, policy)


def test_rules_are_alternatives():
    policy = AuthorizationPolicy(allowed_users=("alice",), allowed_user_ids=("42",), allowed_user="carol")
    assert is_authorized(ALICE, policy)
    assert is_authorized(BOB, policy)
    assert is_authorized(CAROL, policy)


def test_nothing_configured_denies_everyone():
    policy = AuthorizationPolicy()
    assert not policy.configured
    for acc in (ALICE, BOB, CAROL):
        assert not is_authorized(acc, policy)


def test_missing_account_denied():
    assert not is_authorized(None, AuthorizationPolicy(allowed_users=("alice",)))


def test_decision_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="plexrelay")
    is_authorized(BOB, AuthorizationPolicy(allowed_users=("alice",)))
    assert any("deny user='bob'" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "plex, expected",
    [
        ({"owner_only": True, "allowed_users": ["x"]}, "owner only"),
        ({"allowed_users": ["a", "b"]}, "users: a, b"),
        ({"allowed_user_ids": ["7"], "allowed_user": "z"}, "user ids: 7; user: z"),
        ({}, "none (every account is rejected)"),
    ],
)
def test_policy_from_config(plex, expected):
    assert AuthorizationPolicy.from_config({"plex": plex}).describe() == expected


def test_from_config_skips_blank_entries():
    policy = AuthorizationPolicy.from_config({"plex": {"allowed_users": ["", " alice "], "allowed_user_ids": [7]}})
    assert policy.allowed_users == ("alice",)
    assert policy.allowed_user_ids == ("7",)
