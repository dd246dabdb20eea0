"""
Read-only access to groups and membership.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prayer_pipeline.exceptions import NotFoundError, PermissionDeniedError
from prayer_pipeline.models import Group, GroupMember

LEADER = "leader"


async def get_group(session: AsyncSession, group_id: int) -> Group:
    group = await session.get(Group, group_id)
    if group is None:
        raise NotFoundError("Group", group_id)
    return group


async def get_member_role(session: AsyncSession, group_id: int, user_id: int) -> Optional[str]:
    """Role of the user in the group, or None if not a member."""
    result = await session.execute(
        select(GroupMember.role).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def list_member_ids(session: AsyncSession, group_id: int) -> List[int]:
    result = await session.execute(
        select(GroupMember.user_id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.user_id)
    )
    return list(result.scalars().all())


async def require_member(session: AsyncSession, group_id: int, user_id: int) -> str:
    """
    Ensure the user belongs to the group.

    Returns:
        The member's role

    Raises:
        NotFoundError: If the group does not exist
        PermissionDeniedError: If the user is not a member
    """
    await get_group(session, group_id)
    role = await get_member_role(session, group_id, user_id)
    if role is None:
        raise PermissionDeniedError("You are not a member of this group")
    return role


async def require_creator_or_leader(
    session: AsyncSession, group_id: int, creator_id: int, user_id: int, action: str
) -> None:
    """Allow the author of a record or a leader of its group, as long as they are still a member."""
    role = await require_member(session, group_id, user_id)
    if user_id != creator_id and role != LEADER:
        raise PermissionDeniedError(f"Only the creator or a group leader can {action}")
