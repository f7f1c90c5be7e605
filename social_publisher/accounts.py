"""Account lifecycle: OAuth connect, validation, token refresh, disconnect.

Refreshes are serialized per account so two concurrent callers never both
spend the same refresh token and invalidate each other's result.
"""

from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import structlog

from social_publisher.crypto import (
    generate_oauth_state,
    generate_pkce_pair,
    verify_oauth_state,
)
from social_publisher.errors import AuthError, NotFoundError, ValidationError
from social_publisher.models import Platform, SocialAccount, utcnow
from social_publisher.registry import PlatformRegistry
from social_publisher.store import Store

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuthorizationRequest:
    """Everything the caller must keep between redirect and callback."""
    platform: Platform
    url: str
    state: str
    code_verifier: str | None = None


class AccountManager:
    def __init__(
        self,
        store: Store,
        registry: PlatformRegistry,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._clock = clock or utcnow
        # Held weakly: a lock lives only while some caller is using it.
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    def _load(self, account_id: str) -> SocialAccount:
        account = self._store.get_account(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    # -- OAuth connect --

    def begin_connect(self, platform: Platform) -> AuthorizationRequest:
        client = self._registry.get(platform)
        state = generate_oauth_state()
        verifier, challenge = generate_pkce_pair() if client.requires_pkce else (None, None)
        return AuthorizationRequest(
            platform=client.platform,
            url=client.build_auth_url(state, challenge),
            state=state,
            code_verifier=verifier,
        )

    def complete_connect(
        self,
        user_id: str,
        request: AuthorizationRequest,
        code: str,
        returned_state: str,
    ) -> SocialAccount:
        """Exchange the callback code and store (or reconnect) the account."""
        if not verify_oauth_state(returned_state, request.state):
            raise ValidationError("OAuth state mismatch")
        client = self._registry.get(request.platform)
        tokens = client.exchange_code(code, request.code_verifier)
        user = client.get_user_info(tokens)

        existing = next(
            (
                a for a in self._store.accounts_for_user(user_id)
                if a.platform == client.platform and a.platform_user_id == user.id
            ),
            None,
        )
        if existing is not None:
            account = existing.with_tokens(tokens)
            account.platform_username = user.username
            account.is_active = True
        else:
            account = SocialAccount(
                user_id=user_id,
                platform=client.platform,
                platform_user_id=user.id,
                platform_username=user.username,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_at=tokens.expires_at,
            )
        self._store.save_account(account)
        logger.info(
            "account_connected",
            account_id=account.id, platform=account.platform.value,
            reconnected=existing is not None,
        )
        return account

    # -- lifecycle --

    def validate(self, account_id: str) -> bool:
        """Check the token with the platform; deactivate the account if rejected."""
        account = self._load(account_id)
        valid = self._registry.get(account.platform).validate_token(account)
        if not valid and account.is_active:
            self.deactivate(account_id, "token validation failed")
        return valid

    def disconnect(self, account_id: str) -> None:
        self.deactivate(account_id, "disconnected by user")

    def deactivate(self, account_id: str, reason: str) -> None:
        account = self._load(account_id)
        account.is_active = False
        self._store.save_account(account)
        logger.warning(
            "account_deactivated",
            account_id=account_id, platform=account.platform.value, reason=reason,
        )

    def refresh(self, account: SocialAccount) -> SocialAccount:
        """Refresh ``account``'s tokens, at most once per stale token.

        If another caller already replaced the access token while we waited
        for the lock, the stored account is returned as is.
        """
        with self._lock_for(account.id):
            current = self._load(account.id)
            if current.access_token != account.access_token:
                return current
            client = self._registry.get(current.platform)
            tokens = client.refresh_token(current)
            refreshed = current.with_tokens(tokens)
            self._store.save_account(refreshed)
            logger.info("token_refreshed", account_id=current.id, platform=current.platform.value)
            return refreshed

    def ensure_fresh(self, account: SocialAccount) -> SocialAccount:
        """Refresh an expired token before use, where the platform allows it.

        A failed refresh deactivates the account and re-raises.
        """
        if not account.is_expired(self._clock()):
            return account
        client = self._registry.get(account.platform)
        if not client.supports_refresh or not account.refresh_token:
            return account
        try:
            return self.refresh(account)
        except AuthError:
            self.deactivate(account.id, "token refresh rejected")
            raise

    def handle_auth_failure(self, account: SocialAccount) -> None:
        """React to a 401 from the platform.

        Refreshes where possible so the next scheduled run succeeds;
        otherwise the account is deactivated and must be reconnected.
        """
        client = self._registry.get(account.platform)
        if client.supports_refresh and account.refresh_token:
            try:
                self.refresh(account)
                return
            except AuthError as exc:
                logger.warning(
                    "token_refresh_failed",
                    account_id=account.id, platform=account.platform.value, error=str(exc),
                )
        self.deactivate(account.id, "platform rejected token")
