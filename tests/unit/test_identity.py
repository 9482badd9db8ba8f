"""
Unit tests for p2p/services/identity.py and auth_service.py

Tests role -> permission mapping, explicit permission claims, and the JWT
round trip that feeds Identity.from_claims, including tokens minted by the
development token CLI.
"""

import pytest
from jose import JWTError

from p2p.errors import PermissionDeniedError
from p2p.services.auth_service import create_access_token, verify_access_token
from p2p.services.identity import Identity, Permission
from p2p.token_cli import issue_token


def test_role_grants_permissions():
    identity = Identity.for_user("u1", "Pat", "pat@example.com", role="procurement_officer")

    assert identity.has_permission(Permission.CREATE_PO)
    assert identity.has_permission(Permission.MANAGE_VENDORS)
    assert not identity.has_permission(Permission.APPROVE_PO)


def test_explicit_permissions_override_role():
    identity = Identity.for_user("u1", "Pat", "pat@example.com", role="ADMIN", permissions=["RECEIVE_GOODS"])

    assert identity.has_permission(Permission.RECEIVE_GOODS)
    assert not identity.has_permission(Permission.CREATE_PR)


def test_unknown_role_has_nothing():
    identity = Identity.for_user("u1", "X", "x@example.com", role="GUEST")
    with pytest.raises(PermissionDeniedError) as exc:
        identity.require(Permission.CREATE_PR, action="create", entity_type="purchase_requisitions")
    assert exc.value.attempted == "create"


def test_token_round_trip():
    token = create_access_token("u-req", "rita@example.com", "Rita Requester", role="REQUESTER")

    claims = verify_access_token(token)
    identity = Identity.from_claims(claims)
    user = identity.current_user()

    assert (user.id, user.name, user.email, user.role) == ("u-req", "Rita Requester", "rita@example.com", "REQUESTER")
    assert identity.has_permission(Permission.CREATE_PR)


def test_token_with_explicit_permissions():
    token = create_access_token(
        "u1", "ops@example.com", permissions=[Permission.RECEIVE_GOODS, "CREATE_PO"]
    )
    identity = Identity.from_claims(verify_access_token(token))

    assert identity.current_user().name == "ops@example.com"
    assert identity.has_permission(Permission.CREATE_PO)
    assert not identity.has_permission(Permission.APPROVE_PR)


def test_tampered_token_rejected():
    token = create_access_token("u1", "x@example.com", role="ADMIN")
    with pytest.raises(JWTError):
        verify_access_token(token[:-4] + "AAAA")


def test_cli_token_carries_role():
    token = issue_token(["u-fin", "fran@example.com", "--name", "Fran Finance", "--role", "FINANCE"])

    identity = Identity.from_claims(verify_access_token(token))
    assert identity.current_user().name == "Fran Finance"
    assert identity.has_permission(Permission.VIEW_REPORTS)
    assert not identity.has_permission(Permission.CREATE_PR)


def test_cli_token_with_repeated_permissions():
    token = issue_token(
        ["u-1", "una@example.com", "--permission", "CREATE_PR", "--permission", "RECEIVE_GOODS"]
    )

    identity = Identity.from_claims(verify_access_token(token))
    assert identity.current_user().name == "una@example.com"
    assert identity.has_permission(Permission.RECEIVE_GOODS)
    assert not identity.has_permission(Permission.APPROVE_PO)


def test_cli_rejects_unknown_role():
    with pytest.raises(SystemExit):
        issue_token(["u-1", "una@example.com", "--role", "GUEST"])
