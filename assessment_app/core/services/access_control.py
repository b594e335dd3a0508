"""Access control seam: who may act on which patient's data."""

from __future__ import annotations

from typing import Protocol


class AccessControlService(Protocol):
    def can_access_patient(self, actor: str | None, patient_id: int, action: str) -> bool:
        ...


class AllowAllAccessControl:
    """Grants every request. Suitable for single-operator deployments."""

    def can_access_patient(self, actor: str | None, patient_id: int, action: str) -> bool:
        return True


class StaticAccessControl:
    """Explicit grant table.

    ``superusers`` may act on any patient. Other actors need a grant for the
    patient; a grant with ``actions=None`` covers every action.
    """

    def __init__(self, superusers: set[str] | None = None) -> None:
        self._superusers: set[str] = set(superusers or ())
        self._grants: dict[tuple[str, int], set[str] | None] = {}

    def grant(self, actor: str, patient_id: int, actions: set[str] | None = None) -> None:
        self._grants[(actor, patient_id)] = set(actions) if actions is not None else None

    def revoke(self, actor: str, patient_id: int) -> None:
        self._grants.pop((actor, patient_id), None)

    def can_access_patient(self, actor: str | None, patient_id: int, action: str) -> bool:
        if actor is None:
            return False
        if actor in self._superusers:
            return True
        if (actor, patient_id) not in self._grants:
            return False
        actions = self._grants[(actor, patient_id)]
        return actions is None or action in actions
