"""Data models for the document store search service."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Any, Dict, FrozenSet, Iterable


class Visibility(str, Enum):
    """Sharing scope of a document."""
    PRIVATE = "PRIVATE"
    ORGANIZATION = "ORGANIZATION"
    SHARED = "SHARED"
    PUBLIC = "PUBLIC"


class OrganizationRole(str, Enum):
    """Role of a member inside an organization."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class Action(str, Enum):
    READ = "READ"
    WRITE = "WRITE"
    DELETE = "DELETE"
    SHARE = "SHARE"
    ADMIN = "ADMIN"


class Resource(str, Enum):
    DOCUMENT = "DOCUMENT"
    FOLDER = "FOLDER"
    ORGANIZATION = "ORGANIZATION"
    USER = "USER"


class SearchMethod(str, Enum):
    """Ranking strategy actually used for a search."""
    SEMANTIC = "semantic"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class Permission:
    """A single permission granted to an identity."""
    action: Action
    resource: Resource
    owner_only: bool = False  # only applies to resources the identity owns


@dataclass(frozen=True)
class AccessContext:
    """Per-request access context. Recomputed for every request, never stored."""
    user_id: str
    organization_id: Optional[str] = None
    role: Optional[OrganizationRole] = None
    permissions: FrozenSet[Permission] = frozenset()
    recognized: bool = True
    # organizations whose ORGANIZATION-visible documents this identity may read
    member_organization_ids: FrozenSet[str] = frozenset()
    # every organization the identity belongs to, whatever the active one
    all_organization_ids: FrozenSet[str] = frozenset()

    @property
    def is_member(self) -> bool:
        """True when the identity belongs to the active organization."""
        return self.organization_id is not None and self.role is not None

    def has_permission(
        self,
        action: Action,
        resource: Resource,
        owner_id: Optional[str] = None
    ) -> bool:
        """Check whether a permission is granted, honoring owner-only grants."""
        for permission in self.permissions:
            if permission.action != action or permission.resource != resource:
                continue
            if not permission.owner_only or owner_id == self.user_id:
                return True
        return False


@dataclass
class Embedding:
    """Vector representation of a document's text."""
    document_id: str
    vector: List[float]
    content: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Deduplicate tags, dropping blanks. Order is not meaningful."""
    if not tags:
        return []
    return sorted({tag.strip() for tag in tags if tag and tag.strip()})


@dataclass
class Document:
    """Stored file metadata with eagerly loaded relations."""
    id: str
    filename: str
    owner_id: str
    file_type: str = ""
    channel: str = "WEB_UPLOAD"
    visibility: Visibility = Visibility.PRIVATE
    organization_id: Optional[str] = None
    department: Optional[str] = None
    extracted_text: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    is_favorite: bool = False
    folder_id: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    file_size: Optional[int] = None
    thumbnail_path: Optional[str] = None
    owner_name: Optional[str] = None
    organization_name: Optional[str] = None
    shared_with: FrozenSet[str] = frozenset()
    embeddings: List[Embedding] = field(default_factory=list)

    def __post_init__(self):
        self.visibility = Visibility(self.visibility)
        self.tags = normalize_tags(self.tags)
        self.shared_with = frozenset(self.shared_with or ())

    @property
    def has_embeddings(self) -> bool:
        return len(self.embeddings) > 0


@dataclass
class DocumentFilters:
    """Structured filters applied before any scoring."""
    department: Optional[str] = None
    file_type: Optional[str] = None
    channel: Optional[str] = None
    folder_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    visibility: List[Visibility] = field(default_factory=list)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    is_favorite: Optional[bool] = None

    def matches(self, document: Document) -> bool:
        """Evaluate the filters against an in-memory document."""
        if self.department and document.department != self.department:
            return False
        if self.file_type and document.file_type != self.file_type:
            return False
        if self.channel and document.channel != self.channel:
            return False
        if self.folder_id and document.folder_id != self.folder_id:
            return False
        # tags match when any requested tag is present
        if self.tags and not set(self.tags) & set(document.tags):
            return False
        if self.visibility and document.visibility not in self.visibility:
            return False
        if self.date_from or self.date_to:
            if document.created_at is None:
                return False
            if self.date_from and document.created_at < self.date_from:
                return False
            if self.date_to and document.created_at > self.date_to:
                return False
        if self.is_favorite is not None and document.is_favorite != self.is_favorite:
            return False
        return True


@dataclass
class SearchRequest:
    """A search invocation from the presentation layer."""
    query: Optional[str] = None
    filters: DocumentFilters = field(default_factory=DocumentFilters)
    limit: int = 50
    offset: int = 0
    use_semantic_search: bool = False

    @property
    def normalized_query(self) -> str:
        return (self.query or "").strip()


@dataclass
class ScoredDocument:
    """A candidate document with its ranking scores."""
    document: Document
    score: float
    keyword_score: float
    semantic_score: Optional[float] = None


@dataclass
class SearchResult:
    """Public projection of a ranked document."""
    id: str
    filename: str
    department: Optional[str]
    channel: str
    file_type: str
    file_size: Optional[int]
    tags: List[str]
    is_favorite: bool
    visibility: Visibility
    relevance_score: float
    text_preview: str
    processed_at: Optional[datetime]
    thumbnail_path: Optional[str]
    folder_id: Optional[str]
    owner_name: Optional[str]
    organization_name: Optional[str]
    can_edit: bool
    can_share: bool
    can_delete: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "department": self.department,
            "channel": self.channel,
            "fileType": self.file_type,
            "fileSize": self.file_size,
            "tags": list(self.tags),
            "isFavorite": self.is_favorite,
            "visibility": self.visibility.value,
            "relevanceScore": self.relevance_score,
            "textPreview": self.text_preview,
            "processedAt": self.processed_at.isoformat() if self.processed_at else None,
            "thumbnailPath": self.thumbnail_path,
            "folderId": self.folder_id,
            "ownerName": self.owner_name,
            "organizationName": self.organization_name,
            "canEdit": self.can_edit,
            "canShare": self.can_share,
            "canDelete": self.can_delete,
        }


@dataclass
class SearchResponse:
    """A page of ranked results plus search metadata."""
    results: List[SearchResult]
    total: int
    search_method: SearchMethod
    processing_time_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "total": self.total,
            "searchMethod": self.search_method.value,
            "processingTimeMs": self.processing_time_ms,
        }
