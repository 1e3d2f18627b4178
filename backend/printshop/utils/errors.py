from typing import Any, Dict, Iterable, Mapping


def field_errors_from(errors: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """Flatten pydantic ``ValidationError.errors()`` into ``{field: message}``.

    Locations use the wire (alias) names, so clients see ``recipientId``
    rather than ``recipient_id``. The first error per field wins.
    """
    out: Dict[str, str] = {}
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        key = ".".join(loc) or "__root__"
        out.setdefault(key, str(err.get("msg", "invalid")))
    return out
