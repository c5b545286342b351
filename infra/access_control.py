"""
In-memory role storage implementing the AccessController contract.

Roles form a shallow hierarchy: each role has an admin role whose holders may
grant it. ROOT_ROLE administers every role by default; ADMIN_ROLE is its own
admin so existing admins can onboard new ones.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Set

from core.assets import normalize_identity
from core.exceptions import CallerNotAdmin
from core.interfaces import ADMIN_ROLE, ROOT_ROLE, AccessController

logger = logging.getLogger(__name__)


class InMemoryAccessController(AccessController):

    def __init__(self, role_admins: Optional[Dict[str, str]] = None):
        self._members: Dict[str, Set[str]] = {}
        self._role_admins: Dict[str, str] = {ADMIN_ROLE: ADMIN_ROLE}
        if role_admins:
            self._role_admins.update(role_admins)
        self._bootstrapped: Dict[str, str] = {}

    def admin_role_of(self, role: str) -> str:
        return self._role_admins.get(role, ROOT_ROLE)

    def has_role(self, account: str, role: str) -> bool:
        return normalize_identity(account) in self._members.get(role, set())

    def members(self, role: str) -> Set[str]:
        return set(self._members.get(role, set()))

    def grant_role(self, actor: str, target: str, role: str) -> None:
        """
        Grant ``role`` to ``target``.

        Raises:
            CallerNotAdmin: ``actor`` holds neither ROOT_ROLE nor the role's admin role
        """
        if not (self.has_role(actor, ROOT_ROLE) or self.has_role(actor, self.admin_role_of(role))):
            raise CallerNotAdmin(normalize_identity(actor))
        self._add(target, role)
        logger.info(f"Role {role} granted to {normalize_identity(target)} by {normalize_identity(actor)}")

    def bootstrap_role(self, target: str, role: str) -> None:
        """
        Unchecked grant made while a bank initializes.

        Each role has one bootstrap holder. Repeating the same grant is a
        no-op, so several banks configured with the same deployer and admin
        can share a controller; any other holder must come through grant_role.
        """
        account = normalize_identity(target)
        holder = self._bootstrapped.get(role)
        if holder == account:
            logger.debug(f"Role {role} already bootstrapped for {account}")
            return
        if holder is not None:
            raise RuntimeError(f"Role {role} already bootstrapped for {holder}")
        self._bootstrapped[role] = account
        self._add(account, role)
        logger.info(f"Bootstrapped role {role} for {account}")

    def _add(self, target: str, role: str) -> None:
        self._members.setdefault(role, set()).add(normalize_identity(target))
