"""
Procedure-call interface of the remote App Service.

`AppServiceStub` exposes each remote procedure as an attribute named
after it. Unary procedures are awaited with a request message and
return the decoded response message; `TailRobotPartLogs` returns a
`ResponseStream`.
"""
from fleet_app_client.client.connection import RPCConnection
from fleet_app_client import models


class AppServiceStub:
    """Client stub for the App Service, bound to one connection."""

    def __init__(self, connection: RPCConnection):
        self.ListOrganizations = connection.unary_unary("ListOrganizations", models.ListOrganizationsResponse)
        self.GetOrganization = connection.unary_unary("GetOrganization", models.GetOrganizationResponse)
        self.ListLocations = connection.unary_unary("ListLocations", models.ListLocationsResponse)
        self.GetLocation = connection.unary_unary("GetLocation", models.GetLocationResponse)
        self.ListRobots = connection.unary_unary("ListRobots", models.ListRobotsResponse)
        self.GetRobot = connection.unary_unary("GetRobot", models.GetRobotResponse)
        self.GetRobotParts = connection.unary_unary("GetRobotParts", models.GetRobotPartsResponse)
        self.GetRobotPart = connection.unary_unary("GetRobotPart", models.GetRobotPartResponse)
        self.UpdateRobotPart = connection.unary_unary("UpdateRobotPart", models.UpdateRobotPartResponse)
        self.GetRobotPartLogs = connection.unary_unary("GetRobotPartLogs", models.GetRobotPartLogsResponse)
        self.TailRobotPartLogs = connection.unary_stream("TailRobotPartLogs", models.TailRobotPartLogsResponse)
        self.ListAuthorizations = connection.unary_unary("ListAuthorizations", models.ListAuthorizationsResponse)
        self.CheckPermissions = connection.unary_unary("CheckPermissions", models.CheckPermissionsResponse)
        self.ListOrganizationMembers = connection.unary_unary(
            "ListOrganizationMembers", models.ListOrganizationMembersResponse)
        self.CreateOrganizationInvite = connection.unary_unary(
            "CreateOrganizationInvite", models.CreateOrganizationInviteResponse)
        self.ResendOrganizationInvite = connection.unary_unary(
            "ResendOrganizationInvite", models.ResendOrganizationInviteResponse)
        self.DeleteOrganizationInvite = connection.unary_unary(
            "DeleteOrganizationInvite", models.DeleteOrganizationInviteResponse)
        self.DeleteOrganizationMember = connection.unary_unary(
            "DeleteOrganizationMember", models.DeleteOrganizationMemberResponse)
        self.NewRobot = connection.unary_unary("NewRobot", models.NewRobotResponse)
        self.GetFragment = connection.unary_unary("GetFragment", models.GetFragmentResponse)
