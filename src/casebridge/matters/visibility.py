"""
Document visibility policy.

Pure functions deciding which documents and matter updates a requester
may read. Firm staff reaching the matter see everything; clients only see
items explicitly flagged client_visible.
"""

from typing import Protocol, Sequence, TypeVar

from casebridge.db.orm import PrincipalRole


class ClientVisibleItem(Protocol):
    client_visible: bool


T = TypeVar("T", bound=ClientVisibleItem)


def is_visible(item: ClientVisibleItem, requesting_role: PrincipalRole) -> bool:
    if requesting_role == PrincipalRole.CLIENT:
        return bool(item.client_visible)
    return True


def filter_visible(items: Sequence[T], requesting_role: PrincipalRole) -> list[T]:
    return [item for item in items if is_visible(item, requesting_role)]
