"""Access scope resolution: identities to permissions and document predicates."""

import logging
from typing import Dict, FrozenSet, Optional, Set

from docstore_search.storage.document_repository import DocumentRepository
from docstore_search.storage.models import (
    AccessContext,
    Action,
    Document,
    OrganizationRole,
    Permission,
    Resource,
)
from docstore_search.storage.query import ScopePredicate
from docstore_search.utils.errors import AccessDeniedError


logger = logging.getLogger("docstore-search.access")


BASE_PERMISSIONS: FrozenSet[Permission] = frozenset({
    Permission(Action.READ, Resource.DOCUMENT),
    Permission(Action.WRITE, Resource.DOCUMENT),
    Permission(Action.READ, Resource.FOLDER),
    Permission(Action.WRITE, Resource.FOLDER),
})

ROLE_PERMISSIONS: Dict[OrganizationRole, FrozenSet[Permission]] = {
    OrganizationRole.OWNER: frozenset({
        Permission(Action.ADMIN, Resource.ORGANIZATION),
        Permission(Action.DELETE, Resource.DOCUMENT),
        Permission(Action.DELETE, Resource.FOLDER),
        Permission(Action.SHARE, Resource.DOCUMENT),
    }),
    OrganizationRole.ADMIN: frozenset({
        Permission(Action.ADMIN, Resource.ORGANIZATION),
        Permission(Action.DELETE, Resource.DOCUMENT),
        Permission(Action.DELETE, Resource.FOLDER),
        Permission(Action.SHARE, Resource.DOCUMENT),
    }),
    OrganizationRole.MANAGER: frozenset({
        Permission(Action.SHARE, Resource.DOCUMENT),
        Permission(Action.DELETE, Resource.DOCUMENT, owner_only=True),
    }),
}


def derive_permissions(role: Optional[OrganizationRole]) -> FrozenSet[Permission]:
    """Permissions of a recognized identity holding the given role."""
    return BASE_PERMISSIONS | ROLE_PERMISSIONS.get(role, frozenset())


def build_access_context(
    user_id: Optional[str],
    organization_id: Optional[str] = None,
    memberships: Optional[Dict[str, str]] = None
) -> AccessContext:
    """
    Build an AccessContext from already-loaded membership data.

    Args:
        user_id: Requesting identity
        organization_id: Active organization, if any
        memberships: organization_id -> role for the identity, or None when
            the identity is unknown

    Returns:
        AccessContext; unknown identities get no permissions and recognized=False
    """
    if not user_id or memberships is None:
        return AccessContext(
            user_id=user_id or "",
            organization_id=organization_id,
            recognized=False,
        )

    role: Optional[OrganizationRole] = None
    if organization_id and organization_id in memberships:
        role = OrganizationRole(memberships[organization_id])

    # With an active organization only that organization's documents are
    # listed; without one, every organization the identity belongs to is.
    if organization_id:
        member_orgs: Set[str] = {organization_id} if role is not None else set()
    else:
        member_orgs = set(memberships)

    return AccessContext(
        user_id=user_id,
        organization_id=organization_id,
        role=role,
        permissions=derive_permissions(role),
        recognized=True,
        member_organization_ids=frozenset(member_orgs),
        all_organization_ids=frozenset(memberships),
    )


class AccessService:
    """Resolves identities into access contexts and scope predicates."""

    def __init__(self, repository: DocumentRepository):
        """
        Initialize access service.

        Args:
            repository: Repository used to look up identities and memberships
        """
        self.repository = repository

    async def resolve_context(
        self,
        user_id: Optional[str],
        organization_id: Optional[str] = None
    ) -> AccessContext:
        """
        Resolve the per-request access context for an identity.

        Storage errors propagate; an unknown identity is not an error.
        """
        if not user_id:
            return build_access_context(None, organization_id)

        memberships = await self.repository.get_memberships(user_id)
        if memberships is None:
            logger.info(f"Unrecognized identity {user_id}, using empty scope")

        return build_access_context(user_id, organization_id, memberships)

    @staticmethod
    def search_scope(context: AccessContext) -> ScopePredicate:
        """
        Predicate for searchDocuments: the identity's own documents only.

        Narrower than listing scope on purpose. Shared and organization
        documents stay readable through listing and direct lookup.
        """
        if not context.recognized:
            return ScopePredicate.deny_all()
        return ScopePredicate.owner_only(context.user_id)

    @staticmethod
    def listing_scope(context: AccessContext) -> ScopePredicate:
        """Predicate for listDocuments: owned, shared with me, or my organization's."""
        if not context.recognized:
            return ScopePredicate.deny_all()
        return ScopePredicate.readable(context.user_id, context.member_organization_ids)

    @staticmethod
    def lookup_scope(context: AccessContext) -> ScopePredicate:
        """
        Predicate for direct lookup: owned, shared, public, or belonging to any
        organization the identity is a member of.

        Unlike listing, the active organization does not narrow this scope.
        """
        if not context.recognized:
            return ScopePredicate.deny_all()
        return ScopePredicate.readable(
            context.user_id,
            context.all_organization_ids,
            include_public=True
        )

    def can_access_document(self, document: Document, context: AccessContext) -> bool:
        return self.lookup_scope(context).matches(document)

    def ensure_can_access(self, document: Document, context: AccessContext) -> None:
        """
        Raises:
            AccessDeniedError: If the identity may not read the document
        """
        if not self.can_access_document(document, context):
            logger.info(f"Access denied: user={context.user_id}, document={document.id}")
            raise AccessDeniedError(f"Access denied to document {document.id}")
