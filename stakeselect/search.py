from typing import Optional
from urllib.parse import quote

ENTITY_NAMESPACE = "Accounts"
NAME_FIELD = "Account_Name"
MATCH_MODE = "word"

# Zoho search parameter name per match mode
MATCH_MODE_PARAMS = {
    "word": "word",
    "email": "email",
    "phone": "phone",
    "criteria": "criteria",
}


def normalize_query(text: Optional[str]) -> str:
    return (text or "").strip()


def is_blank(text: Optional[str]) -> bool:
    return normalize_query(text) == ""


def build_search_params(query: str, match_mode: str = MATCH_MODE) -> dict[str, str]:
    """
    Returns the query-string parameters for a record search.
    query: raw text; it is trimmed before use.
    match_mode: one of MATCH_MODE_PARAMS; only "word" is used by the selector.
    """
    try:
        param = MATCH_MODE_PARAMS[match_mode]
    except KeyError:
        raise ValueError(f"Unsupported match mode: {match_mode!r}")
    return {param: normalize_query(query)}


def build_search_url(api_domain: str, entity: str = ENTITY_NAMESPACE) -> str:
    base = api_domain.rstrip("/")
    return f"{base}/crm/v2/{quote(entity, safe='')}/search"
