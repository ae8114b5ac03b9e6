from typing import Literal, Optional

from pydantic import Field

from .model import APIModel

MembershipOp = Literal["add", "remove"]


class SystemUser(APIModel):
    id: str = Field(alias="_id")
    email: str = ""
    username: Optional[str] = None


class SystemUsersPage(APIModel):
    total_count: int = Field(default=0, alias="totalCount")
    results: list[SystemUser] = []


class PosixGroup(APIModel):
    id: int
    name: str


class UserGroupAttributes(APIModel):
    posix_groups: list[PosixGroup] = Field(default=[], alias="posixGroups")


class UserGroup(APIModel):
    id: str
    name: str
    attributes: Optional[UserGroupAttributes] = None


class UserGroupRequest(APIModel):
    name: str
    attributes: Optional[UserGroupAttributes] = None


class GraphObject(APIModel):
    id: str = ""
    type: str = ""


class GraphConnection(APIModel):
    to: GraphObject


class UserGroupMemberRequest(APIModel):
    op: MembershipOp
    type: Literal["user"] = "user"
    id: str


class GraphManagementRequest(APIModel):
    op: MembershipOp
    type: str
    id: str


class Application(APIModel):
    id: str = Field(alias="_id")
    display_name: str = Field(default="", alias="displayName")
    display_label: str = Field(default="", alias="displayLabel")


class ApplicationsPage(APIModel):
    total_count: int = Field(default=0, alias="totalCount")
    results: list[Application] = []
