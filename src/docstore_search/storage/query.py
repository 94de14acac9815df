"""
Composable access predicates and SQL filter building for document queries.

A ScopePredicate is evaluated two ways: rendered into a parameterized SQL
fragment for the storage layer, and evaluated in memory against a loaded
Document. Both renderings must agree.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Tuple

from docstore_search.storage.models import Document, DocumentFilters, Visibility


class ScopeKind(str, Enum):
    DENY_ALL = "deny_all"
    OWNER_ONLY = "owner_only"
    READABLE = "readable"
    READABLE_OR_PUBLIC = "readable_or_public"


@dataclass(frozen=True)
class ScopePredicate:
    """Boolean test a document must pass to be visible to an identity."""
    kind: ScopeKind
    user_id: Optional[str] = None
    organization_ids: FrozenSet[str] = frozenset()

    @classmethod
    def deny_all(cls) -> "ScopePredicate":
        return cls(kind=ScopeKind.DENY_ALL)

    @classmethod
    def owner_only(cls, user_id: Optional[str]) -> "ScopePredicate":
        if not user_id:
            return cls.deny_all()
        return cls(kind=ScopeKind.OWNER_ONLY, user_id=user_id)

    @classmethod
    def readable(
        cls,
        user_id: Optional[str],
        organization_ids: FrozenSet[str] = frozenset(),
        include_public: bool = False
    ) -> "ScopePredicate":
        if not user_id:
            return cls.deny_all()
        kind = ScopeKind.READABLE_OR_PUBLIC if include_public else ScopeKind.READABLE
        return cls(kind=kind, user_id=user_id, organization_ids=frozenset(organization_ids))

    def matches(self, document: Document) -> bool:
        """Evaluate the predicate against an in-memory document."""
        if self.kind == ScopeKind.DENY_ALL:
            return False

        if document.owner_id == self.user_id:
            return True

        if self.kind == ScopeKind.OWNER_ONLY:
            return False

        if self.user_id in document.shared_with:
            return True

        if (
            document.visibility == Visibility.ORGANIZATION
            and document.organization_id is not None
            and document.organization_id in self.organization_ids
        ):
            return True

        if self.kind == ScopeKind.READABLE_OR_PUBLIC:
            return document.visibility == Visibility.PUBLIC

        return False

    def to_sql(self, params: List[Any], alias: str = "d") -> str:
        """
        Render the predicate as a SQL fragment.

        Args:
            params: Positional parameter list; values are appended in place
            alias: Alias of the documents table in the enclosing query

        Returns:
            SQL boolean expression using $n placeholders
        """
        if self.kind == ScopeKind.DENY_ALL:
            return "FALSE"

        params.append(self.user_id)
        user_ref = f"${len(params)}"
        owner_clause = f"{alias}.user_id = {user_ref}"

        if self.kind == ScopeKind.OWNER_ONLY:
            return f"({owner_clause})"

        clauses = [
            owner_clause,
            (
                "EXISTS (SELECT 1 FROM document_shares s "
                f"WHERE s.document_id = {alias}.id AND s.shared_with = {user_ref})"
            ),
        ]

        if self.organization_ids:
            params.append(sorted(self.organization_ids))
            clauses.append(
                f"({alias}.visibility = 'ORGANIZATION' "
                f"AND {alias}.organization_id = ANY(${len(params)}::text[]))"
            )

        if self.kind == ScopeKind.READABLE_OR_PUBLIC:
            clauses.append(f"{alias}.visibility = 'PUBLIC'")

        return "(" + " OR ".join(clauses) + ")"


def build_where_clause(
    predicate: ScopePredicate,
    filters: Optional[DocumentFilters] = None,
    alias: str = "d",
    params: Optional[List[Any]] = None
) -> Tuple[str, List[Any]]:
    """
    Combine a scope predicate with structured filters.

    Returns:
        Tuple of (SQL boolean expression, positional parameters)
    """
    params = params if params is not None else []
    conditions = [predicate.to_sql(params, alias)]
    filters = filters or DocumentFilters()

    def bind(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    if filters.department:
        conditions.append(f"{alias}.department = {bind(filters.department)}")
    if filters.file_type:
        conditions.append(f"{alias}.file_type = {bind(filters.file_type)}")
    if filters.channel:
        conditions.append(f"{alias}.channel = {bind(filters.channel)}")
    if filters.folder_id:
        conditions.append(f"{alias}.folder_id = {bind(filters.folder_id)}")
    if filters.tags:
        conditions.append(f"{alias}.tags && {bind(list(filters.tags))}::text[]")
    if filters.visibility:
        values = [Visibility(v).value for v in filters.visibility]
        conditions.append(f"{alias}.visibility = ANY({bind(values)}::text[])")
    if filters.date_from:
        conditions.append(f"{alias}.created_at >= {bind(filters.date_from)}")
    if filters.date_to:
        conditions.append(f"{alias}.created_at <= {bind(filters.date_to)}")
    if filters.is_favorite is not None:
        conditions.append(f"{alias}.is_favorite = {bind(filters.is_favorite)}")

    return " AND ".join(conditions), params
