from __future__ import annotations

from typing import Dict, Iterable, List, Union


PROFILE_FIELD_MAP: Dict[str, Union[str, List[str]]] = {
    "id": "id",
    "username": "username",
    "displayName": "name",
    "name": ["last_name", "first_name"],
    "url": "url",
}


def convert_profile_fields(profile_fields: Iterable[str]) -> str:
    """Translate normalized profile field names into provider field names.

    Unknown names are skipped. Names mapping to several provider fields expand
    in place, and the result is comma-joined.
    """
    fields: List[str] = []
    for name in profile_fields:
        mapped = PROFILE_FIELD_MAP.get(name)
        if mapped is None:
            continue
        if isinstance(mapped, list):
            fields.extend(mapped)
        else:
            fields.append(mapped)
    return ",".join(fields)
