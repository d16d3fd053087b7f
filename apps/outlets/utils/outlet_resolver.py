# apps/outlets/utils/outlet_resolver.py

from django.conf import settings

from apps.utils.utils import normalize_text

# Hand-curated spellings per outlet. Declaration order breaks ties.
DEFAULT_KEYWORD_SYNONYMS = {
    "outlet_bonbin": ["bonbin", "outlet bonbin", "ragunan", "kebun binatang", "taman margasatwa"],
    "outlet_malioboro": ["malioboro", "jalan malioboro", "malboro", "maliboro", "monjali"],
    "outlet_glagahsari": ["glagahsari", "glagah sari"],
    "outlet_jakal_km14": ["jakal", "jalan kaliurang", "km14", "km 14"],
    "outlet_pogung": ["pogung"],
    "outlet_godean": ["godean"],
    "outlet_wates": ["wates", "jalan wates"],
    "outlet_wonosari": ["wonosari", "jalan wonosari"],
    "outlet_ahmad_dahlan": ["ahmad dahlan", "dahlan"],
}


def get_keyword_synonyms():
    return getattr(settings, "OUTLET_KEYWORD_SYNONYMS", None) or DEFAULT_KEYWORD_SYNONYMS


def _location_fields(*texts):
    return [t for t in (normalize_text(x) for x in texts) if t]


def matches_outlet(outlet, *texts) -> bool:
    """
    Name-based match of one outlet against free-text fields:
    exact name, name contained in a field, or alias contained in a field.
    """
    fields = _location_fields(*texts)
    name = normalize_text(outlet.name)
    alias = normalize_text(outlet.location_alias)
    for field in fields:
        if name and name in field:
            return True
        if alias and alias in field:
            return True
    return False


def resolve_outlet(
    outlets,
    *,
    outlet_id=None,
    shipping_location=None,
    pickup_location=None,
    shipping_area=None,
    keywords=None,
):
    """
    Best-effort mapping of an order's location fields to an outlet id.

    Precedence:
    1. An explicit outlet_id is authoritative and returned untouched.
    2. Exact (case-insensitive) match of a field with an outlet name.
    3. Outlet name or location alias contained in a field.
    4. Keyword synonyms table.

    Within a step the first outlet (in the given order) wins.
    Returns None when nothing matches; that is a normal outcome.
    """
    if outlet_id:
        return outlet_id

    fields = _location_fields(shipping_location, pickup_location, shipping_area)
    if not fields:
        return None

    outlets = list(outlets)

    for outlet in outlets:
        name = normalize_text(outlet.name)
        if name and name in fields:
            return outlet.id

    for outlet in outlets:
        if matches_outlet(outlet, *fields):
            return outlet.id

    known_ids = {outlet.id for outlet in outlets}
    synonyms = keywords if keywords is not None else get_keyword_synonyms()
    for candidate_id, words in synonyms.items():
        if candidate_id not in known_ids:
            continue
        for word in words:
            word = normalize_text(word)
            if word and any(word in field for field in fields):
                return candidate_id

    return None
