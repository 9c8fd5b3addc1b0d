"""
Change detection between consecutive profile snapshots.

``diff`` is a pure function: it never touches storage and never decides
whether to notify. It only reports which signals moved.
"""

from dataclasses import dataclass

from profile_monitor.history.schemas import Snapshot


@dataclass
class ChangeSet:
    """
    Signals produced by comparing a fresh snapshot to the stored one.

    Deltas are ``current - previous``; zero means no signal. For a first
    observation every field stays at its default and only ``changed`` and
    ``first_observation`` are set.
    """

    changed: bool = False
    first_observation: bool = False
    followers_delta: int = 0
    following_delta: int = 0
    posts_delta: int = 0
    verified_changed: bool = False
    private_changed: bool = False
    name_changed: bool = False
    avatar_changed: bool = False

    @property
    def signals(self) -> list[str]:
        """Names of the signals that fired, for logging."""
        names = []
        if self.followers_delta:
            names.append("followers")
        if self.following_delta:
            names.append("following")
        if self.posts_delta:
            names.append("posts")
        if self.verified_changed:
            names.append("verified")
        if self.private_changed:
            names.append("private")
        if self.name_changed:
            names.append("name")
        if self.avatar_changed:
            names.append("avatar")
        return names


def avatar_changed(current: Snapshot, previous: Snapshot) -> bool:
    """
    Whether the profile picture changed.

    A failed hash on either side carries no information and never signals.
    Two hashed avatars compare by content; a hash appearing or vanishing
    (``ok`` versus ``absent``) is a genuine change.
    """
    if "failed" in (current.avatar_hash_status, previous.avatar_hash_status):
        return False
    if current.avatar_hash_status != previous.avatar_hash_status:
        return True
    if current.avatar_hash_status == "ok":
        return current.avatar_hash != previous.avatar_hash
    return False


def diff(current: Snapshot, previous: Snapshot | None) -> ChangeSet:
    """Compare a fresh snapshot against the most recent stored one."""
    if previous is None:
        return ChangeSet(changed=True, first_observation=True)

    changes = ChangeSet(
        followers_delta=current.followers - previous.followers,
        following_delta=current.following - previous.following,
        posts_delta=current.posts - previous.posts,
        verified_changed=bool(current.is_verified) != bool(previous.is_verified),
        private_changed=bool(current.is_private) != bool(previous.is_private),
        name_changed=(current.display_name or "") != (previous.display_name or ""),
        avatar_changed=avatar_changed(current, previous),
    )
    changes.changed = bool(changes.signals)
    return changes
