"""ORM models; importing this package registers every table on Base.metadata."""
from groupvault.models.group import Ban, Group, GroupKind, GroupMember, MembershipDeparture  # noqa: F401
from groupvault.models.join_request import JoinRequest, JoinRequestStatus  # noqa: F401
from groupvault.models.message import Message  # noqa: F401
