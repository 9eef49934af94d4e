import pytest

from fleet_app_client.errors import RPCError, StatusCode, UnknownPermissionError
from fleet_app_client.models import Authorization
from fleet_app_client.permissions import Permission, ResourceType, Role, RoleAuthorization


def test_permission_codes_map_by_exact_value():
    assert Permission.from_code("read_robot") is Permission.READ_ROBOT
    assert Permission.from_code("write_fragment") is Permission.WRITE_FRAGMENT


def test_unknown_permission_code_is_a_hard_fault():
    with pytest.raises(UnknownPermissionError) as excinfo:
        Permission.from_code("READ_ROBOT")

    assert isinstance(excinfo.value, ValueError)
    assert excinfo.value.code == "READ_ROBOT"


def test_role_authorization_renders_authorization_message():
    grant = RoleAuthorization(
        role=Role.OWNER,
        resource_type=ResourceType.ORGANIZATION,
        resource_id="org-1",
        organization_id="org-1",
    )

    assert grant.to_message() == Authorization(
        authorization_type="role",
        authorization_id="organization_owner",
        resource_type="organization",
        resource_id="org-1",
        identity_id="",
        organization_id="org-1",
    )


def test_status_code_parsing():
    assert StatusCode.parse("not_found") is StatusCode.NOT_FOUND
    assert StatusCode.parse("TELEPORTED") is StatusCode.UNKNOWN


def test_rpc_error_from_payload():
    error = RPCError.from_payload({"code": "ALREADY_EXISTS", "message": "invite exists"})

    assert error.code is StatusCode.ALREADY_EXISTS
    assert error.message == "invite exists"
    assert str(error) == "ALREADY_EXISTS: invite exists"

    assert RPCError.from_payload(None).code is StatusCode.UNKNOWN
