"""Actor identity resolved from the authenticated request.

The workflow trusts the ``(actor_id, role)`` pair produced here and
only checks that the role and assignment match the operation.

Role sources, in order:

* ``request.user.role`` (set by ``Auth0JSONWebTokenAuthentication``).
* Django group membership for local users: a user in the ``designer``
  group acts as a designer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from django.db import models
from rest_framework.exceptions import PermissionDenied


class ActorRole(models.TextChoices):
    CUSTOMER = "customer"
    MANAGER = "manager"
    DESIGNER = "designer"
    DELIVERY = "delivery"


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: str


def role_for_user(user: Any) -> Optional[str]:
    """Return the workflow role of *user*, or ``None`` if it has none."""
    role = getattr(user, "role", None)
    if role in ActorRole.values:
        return role
    groups = getattr(user, "groups", None)
    if groups is None:
        return None
    names = set(groups.values_list("name", flat=True))
    return next((value for value in ActorRole.values if value in names), None)


def actor_from_request(request: Any) -> Actor:
    """Build the calling ``Actor``.

    Raises:
        PermissionDenied: the authenticated user carries no workflow role.
    """
    user = request.user
    role = role_for_user(user)
    if role is None:
        raise PermissionDenied("No order workflow role is assigned to this user.")
    actor_id = getattr(user, "sub", None) or str(user.pk)
    return Actor(actor_id=actor_id, role=role)
