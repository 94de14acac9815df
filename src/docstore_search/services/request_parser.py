"""Parsing and validation of search and listing requests from the HTTP layer."""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from docstore_search.storage.models import DocumentFilters, SearchRequest, Visibility
from docstore_search.utils.errors import InvalidRequestError


MAX_QUERY_LENGTH = 1000


def _pick(payload: Mapping[str, Any], *keys: str) -> Any:
    """First present key wins; camelCase names come before snake_case aliases."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    """ISO-8601 date or datetime; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"{field_name} must be an ISO-8601 date string")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidRequestError(f"{field_name} is not a valid ISO-8601 date: {value}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_bool(value: Any, field_name: str) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.lower() in ("false", "0", "no"):
        return False
    raise InvalidRequestError(f"{field_name} must be a boolean")


def parse_int(value: Any, field_name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidRequestError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise InvalidRequestError(f"{field_name} must be an integer")


def _parse_string_list(value: Any, field_name: str) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return [item.strip() for item in value if item.strip()]
    raise InvalidRequestError(f"{field_name} must be a list of strings")


def parse_visibility(value: Any) -> List[Visibility]:
    visibility = []
    for item in _parse_string_list(value, "visibility"):
        try:
            visibility.append(Visibility(item.upper()))
        except ValueError:
            valid = ", ".join(v.value for v in Visibility)
            raise InvalidRequestError(f"Invalid visibility: {item}. Must be one of: {valid}")
    return visibility


def _parse_optional_string(value: Any, field_name: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"{field_name} must be a string")
    return value


def parse_filters(payload: Mapping[str, Any]) -> DocumentFilters:
    return DocumentFilters(
        department=_parse_optional_string(_pick(payload, "department"), "department"),
        file_type=_parse_optional_string(_pick(payload, "fileType", "file_type"), "fileType"),
        channel=_parse_optional_string(_pick(payload, "channel"), "channel"),
        folder_id=_parse_optional_string(_pick(payload, "folderId", "folder_id"), "folderId"),
        tags=_parse_string_list(_pick(payload, "tags"), "tags"),
        visibility=parse_visibility(_pick(payload, "visibility")),
        date_from=parse_datetime(_pick(payload, "dateFrom", "date_from"), "dateFrom"),
        date_to=parse_datetime(_pick(payload, "dateTo", "date_to"), "dateTo"),
        is_favorite=parse_bool(_pick(payload, "isFavorite", "is_favorite"), "isFavorite"),
    )


def parse_search_request(payload: Any, default_limit: int = 50) -> SearchRequest:
    """
    Build a SearchRequest from a JSON body.

    Raises:
        InvalidRequestError: Malformed body, filters or pagination
    """
    if not isinstance(payload, Mapping):
        raise InvalidRequestError("Request body must be a JSON object")

    query = _pick(payload, "query")
    if query is not None and not isinstance(query, str):
        raise InvalidRequestError("query must be a string")
    if query and len(query) > MAX_QUERY_LENGTH:
        raise InvalidRequestError(f"query must be at most {MAX_QUERY_LENGTH} characters")

    use_semantic = parse_bool(
        _pick(payload, "useSemanticSearch", "use_semantic"),
        "useSemanticSearch"
    )

    return SearchRequest(
        query=query,
        filters=parse_filters(payload),
        limit=parse_int(_pick(payload, "limit"), "limit", default_limit),
        offset=parse_int(_pick(payload, "offset"), "offset", 0),
        use_semantic_search=bool(use_semantic),
    )


def parse_listing_params(
    params: Mapping[str, Any],
    default_limit: int = 50
) -> Tuple[DocumentFilters, int, int]:
    """
    Parse listing query parameters.

    Returns:
        Tuple of (filters, limit, offset)
    """
    filters = DocumentFilters(
        department=_parse_optional_string(_pick(params, "department"), "department"),
        folder_id=_parse_optional_string(_pick(params, "folderId", "folder_id"), "folderId"),
        visibility=parse_visibility(_pick(params, "visibility")),
    )

    limit = parse_int(_pick(params, "limit"), "limit", default_limit)
    offset = parse_int(_pick(params, "offset"), "offset", 0)

    return filters, limit, offset
