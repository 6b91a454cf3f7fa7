"""
Tests for the token issuer: code redemption, device polling, refresh rotation, revocation.
"""
import threading

import pytest

from connect_server.authorization_store import AuthorizationStore
from connect_server.errors import AuthorizationPending, ExpiredToken, InvalidGrant
from connect_server.flows import AuthorizationFlowManager
from connect_server.guard import AccessGuard
from connect_server.issuer import TokenIssuer
from connect_server.token_store import TokenStore


@pytest.fixture
def authorizations(clock):
    return AuthorizationStore(clock=clock)


@pytest.fixture
def tokens(clock):
    return TokenStore(clock=clock)


@pytest.fixture
def flows(authorizations):
    return AuthorizationFlowManager(authorizations, code_ttl=600)


@pytest.fixture
def issuer(authorizations, tokens):
    return TokenIssuer(authorizations, tokens, token_ttl=3600, refresh_ttl=7200)


@pytest.fixture
def guard(tokens):
    return AccessGuard(tokens, static_api_key=None)


def _confirmed_auth_code(flows, authorizations, scope="read:health_data", state="xyz123"):
    started = flows.start_redirect_flow("client-a", "https://app.example.com/cb", state, scope)
    flows.confirm(started.user_code)
    return authorizations.get(started.user_code).auth_code


def test_redirect_scenario_scope_and_guard(flows, authorizations, issuer, guard):
    code = _confirmed_auth_code(flows, authorizations, scope="read:health_data write:notes")
    pair = issuer.exchange_authorization_code(code)
    assert pair.scope == "read:health_data write:notes"
    assert pair.expires_in == 3600
    assert pair.to_response()["token_type"] == "Bearer"
    principal = guard.authenticate(pair.access_token)
    assert principal is not None
    assert principal.client_id == "client-a"
    assert principal.scope == "read:health_data write:notes"


def test_auth_code_redeems_once(flows, authorizations, issuer):
    code = _confirmed_auth_code(flows, authorizations)
    issuer.exchange_authorization_code(code)
    assert len(authorizations) == 0
    with pytest.raises(InvalidGrant):
        issuer.exchange_authorization_code(code)


def test_unconfirmed_auth_code_is_invalid_grant(flows, authorizations, issuer):
    started = flows.start_redirect_flow("client-a", "https://app.example.com/cb", None, "s")
    code = authorizations.get(started.user_code).auth_code
    with pytest.raises(InvalidGrant):
        issuer.exchange_authorization_code(code)
    # Still pending; the failed attempt does not consume it
    assert len(authorizations) == 1


def test_expired_auth_code_is_invalid_grant(flows, authorizations, issuer, clock):
    code = _confirmed_auth_code(flows, authorizations)
    clock.advance(601)
    with pytest.raises(InvalidGrant):
        issuer.exchange_authorization_code(code)


def test_missing_codes_are_invalid_grant(issuer):
    with pytest.raises(InvalidGrant):
        issuer.exchange_authorization_code(None)
    with pytest.raises(InvalidGrant):
        issuer.exchange_device_code("")
    with pytest.raises(InvalidGrant):
        issuer.refresh(None)


def test_concurrent_redemption_yields_one_success(flows, authorizations, issuer):
    code = _confirmed_auth_code(flows, authorizations)
    results = []
    barrier = threading.Barrier(8)

    def redeem():
        barrier.wait()
        try:
            results.append(issuer.exchange_authorization_code(code))
        except InvalidGrant:
            results.append(None)

    threads = [threading.Thread(target=redeem) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len([r for r in results if r is not None]) == 1


def test_concurrent_confirm_and_exchange(flows, authorizations, issuer):
    started = flows.start_redirect_flow("client-a", "https://app.example.com/cb", None, "s")
    code = authorizations.get(started.user_code).auth_code
    outcomes = []

    def exchange():
        try:
            outcomes.append(issuer.exchange_authorization_code(code))
        except InvalidGrant:
            outcomes.append(None)

    t1 = threading.Thread(target=lambda: flows.confirm(started.user_code))
    t2 = threading.Thread(target=exchange)
    t1.start()
    t2.start()
    t1.join()
    t2.join()
    if outcomes[0] is None:
        # Exchange ran first and saw an unconfirmed record; it must still be redeemable now
        assert issuer.exchange_authorization_code(code).access_token
    with pytest.raises(InvalidGrant):
        issuer.exchange_authorization_code(code)


def test_device_flow_pending_then_token_then_invalid(flows, issuer):
    started = flows.start_device_flow("desktop", "read:health_data", "http://testserver")
    with pytest.raises(AuthorizationPending):
        issuer.exchange_device_code(started.device_code)
    flows.confirm(started.user_code)
    pair = issuer.exchange_device_code(started.device_code)
    assert pair.client_id == "desktop"
    assert pair.refresh_token
    with pytest.raises(InvalidGrant):
        issuer.exchange_device_code(started.device_code)


def test_expired_device_code_is_expired_token_once(flows, issuer, authorizations, clock):
    started = flows.start_device_flow("desktop", "read:health_data", "http://testserver")
    flows.confirm(started.user_code)
    clock.advance(601)
    with pytest.raises(ExpiredToken):
        issuer.exchange_device_code(started.device_code)
    assert len(authorizations) == 0
    with pytest.raises(InvalidGrant):
        issuer.exchange_device_code(started.device_code)


def test_refresh_invalidates_old_access_token(flows, authorizations, issuer, guard):
    pair = issuer.exchange_authorization_code(_confirmed_auth_code(flows, authorizations))
    new = issuer.refresh(pair.refresh_token)
    assert new.access_token != pair.access_token
    assert new.refresh_token != pair.refresh_token
    assert new.scope == pair.scope
    assert guard.authenticate(pair.access_token) is None
    assert guard.authenticate(new.access_token) is not None
    with pytest.raises(InvalidGrant):
        issuer.refresh(pair.refresh_token)


def test_refresh_after_access_expiry_within_window(flows, authorizations, issuer, guard, clock):
    pair = issuer.exchange_authorization_code(_confirmed_auth_code(flows, authorizations))
    clock.advance(3601)
    assert guard.authenticate(pair.access_token) is None
    new = issuer.refresh(pair.refresh_token)
    assert guard.authenticate(new.access_token) is not None


def test_refresh_after_window_is_invalid_grant(flows, authorizations, issuer, clock):
    pair = issuer.exchange_authorization_code(_confirmed_auth_code(flows, authorizations))
    clock.advance(7201)
    with pytest.raises(InvalidGrant):
        issuer.refresh(pair.refresh_token)


def test_revoke(flows, authorizations, issuer, guard):
    pair = issuer.exchange_authorization_code(_confirmed_auth_code(flows, authorizations))
    assert issuer.revoke("not-a-token") is False
    assert issuer.revoke(None) is False
    assert issuer.revoke(pair.refresh_token) is True
    assert guard.authenticate(pair.access_token) is None
    assert issuer.revoke(pair.access_token) is False


def _confidential(client_id):
    return client_id == "client-a"


def test_bound_auth_code_needs_its_client(flows, authorizations, issuer):
    code = _confirmed_auth_code(flows, authorizations)
    with pytest.raises(InvalidGrant):
        issuer.exchange_authorization_code(code, None, _confidential)
    with pytest.raises(InvalidGrant):
        issuer.exchange_authorization_code(code, "client-b", _confidential)
    pair = issuer.exchange_authorization_code(code, "client-a", _confidential)
    assert pair.client_id == "client-a"


def test_public_client_code_redeems_without_client_id(flows, authorizations, issuer):
    code = _confirmed_auth_code(flows, authorizations)
    pair = issuer.exchange_authorization_code(code, None, lambda client_id: False)
    assert pair.client_id == "client-a"


def test_bound_device_code_needs_its_client(flows, issuer):
    started = flows.start_device_flow("client-a", "read:health_data", "http://testserver")
    flows.confirm(started.user_code)
    with pytest.raises(InvalidGrant):
        issuer.exchange_device_code(started.device_code, "client-b", _confidential)
    assert issuer.exchange_device_code(started.device_code, "client-a", _confidential).client_id == "client-a"


def test_bound_refresh_needs_its_client(flows, authorizations, issuer, guard):
    pair = issuer.exchange_authorization_code(_confirmed_auth_code(flows, authorizations))
    with pytest.raises(InvalidGrant):
        issuer.refresh(pair.refresh_token, None, _confidential)
    assert guard.authenticate(pair.access_token) is not None
    new = issuer.refresh(pair.refresh_token, "client-a", _confidential)
    assert guard.authenticate(pair.access_token) is None
    assert guard.authenticate(new.access_token) is not None
