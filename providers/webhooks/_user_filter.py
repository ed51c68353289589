# providers/webhooks/_user_filter.py
# PlexRelay - decides which Plex accounts may scrobble
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from _logging import log as BASE_LOG
from providers.scrobble.events import Account

_LOG = BASE_LOG.child("USERS")


@dataclass(frozen=True)
class AuthorizationPolicy:
    owner_only: bool = False
    allowed_users: tuple[str, ...] = ()
    allowed_user_ids: tuple[str, ...] = ()
    allowed_user: str = ""

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> AuthorizationPolicy:
        px = cfg.get("plex") or {}
        return cls(
            owner_only=bool(px.get("owner_only")),
            allowed_users=tuple(str(x).strip() for x in (px.get("allowed_users") or []) if str(x).strip()),
            allowed_user_ids=tuple(str(x).strip() for x in (px.get("allowed_user_ids") or []) if str(x).strip()),
            allowed_user=str(px.get("allowed_user") or "").strip(),
        )

    @property
    def configured(self) -> bool:
        return bool(self.owner_only or self.allowed_users or self.allowed_user_ids or self.allowed_user)

    def describe(self) -> str:
        if self.owner_only:
            return "owner only"
        parts: list[str] = []
        if self.allowed_users:
            parts.append(f"users: {', '.join(self.allowed_users)}")
        if self.allowed_user_ids:
            parts.append(f"user ids: {', '.join(self.allowed_user_ids)}")
        if self.allowed_user:
            parts.append(f"user: {self.allowed_user}")
        return "; ".join(parts) if parts else "none (every account is rejected)"


def _decide(account: Account, policy: AuthorizationPolicy) -> tuple[bool, str]:
    # owner_only is exclusive: the lists below are never consulted when it is set.
    if policy.owner_only:
        return (True, "owner") if account.is_owner else (False, "owner-only")
    if policy.allowed_users and account.name in policy.allowed_users:
        return True, "name allow-list"
    if policy.allowed_user_ids and account.id is not None and str(account.id) in policy.allowed_user_ids:
        return True, "id allow-list"
    if policy.allowed_user and account.name == policy.allowed_user:
        return True, "single user"
    return False, "no rule matched"


def is_authorized(account: Account | None, policy: AuthorizationPolicy) -> bool:
    if account is None:
        _LOG.warn("deny: payload carries no account information")
        return False
    ok, rule = _decide(account, policy)
    verdict = "allow" if ok else "deny"
    _LOG.info(f"{verdict} user='{account.name}' id={account.id} owner={account.is_owner} rule={rule}")
    return ok
