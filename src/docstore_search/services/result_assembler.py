"""Shapes ranked documents into public search results."""

from typing import List, Optional

from docstore_search.storage.models import (
    AccessContext,
    Document,
    ScoredDocument,
    SearchResult,
    Visibility,
)


PREVIEW_LENGTH = 200
PREVIEW_PLACEHOLDER = "No preview available"


def text_preview(text: Optional[str]) -> str:
    """First 200 characters of extracted text, or a placeholder."""
    if not text:
        return PREVIEW_PLACEHOLDER
    return text[:PREVIEW_LENGTH]


def can_edit(document: Document, context: AccessContext) -> bool:
    return document.owner_id == context.user_id


def can_delete(document: Document, context: AccessContext) -> bool:
    return document.owner_id == context.user_id


def can_share(document: Document, context: AccessContext) -> bool:
    return document.owner_id == context.user_id or document.visibility != Visibility.PRIVATE


def assemble_result(scored: ScoredDocument, context: AccessContext) -> SearchResult:
    """
    Build the public result for one ranked document.

    Capability flags are derived from the current context on every call.
    """
    document = scored.document

    return SearchResult(
        id=document.id,
        filename=document.filename,
        department=document.department,
        channel=document.channel,
        file_type=document.file_type,
        file_size=document.file_size,
        tags=list(document.tags),
        is_favorite=document.is_favorite,
        visibility=document.visibility,
        relevance_score=max(0.0, min(1.0, scored.score)),
        text_preview=text_preview(document.extracted_text),
        processed_at=document.processed_at,
        thumbnail_path=document.thumbnail_path,
        folder_id=document.folder_id,
        owner_name=document.owner_name,
        organization_name=document.organization_name,
        can_edit=can_edit(document, context),
        can_share=can_share(document, context),
        can_delete=can_delete(document, context),
    )


def assemble_results(page: List[ScoredDocument], context: AccessContext) -> List[SearchResult]:
    return [assemble_result(scored, context) for scored in page]
