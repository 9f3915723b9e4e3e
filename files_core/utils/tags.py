# files_core/utils/tags.py
from typing import Iterable, List, Optional, Union

SYNCED_TAG = "synced"


def split_tags(tags: Optional[Union[str, Iterable[str]]]) -> List[str]:
    """Split comma-joined tags (or a list) into trimmed, de-duplicated tags"""
    if not tags:
        return []
    if isinstance(tags, str):
        parts = tags.split(",")
    else:
        parts = [part for tag in tags for part in str(tag).split(",")]

    seen = []
    for part in parts:
        tag = part.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def normalize_tags(tags: Optional[Union[str, Iterable[str]]]) -> str:
    return ",".join(split_tags(tags))


def merge_tags(*groups: Optional[Union[str, Iterable[str]]]) -> str:
    """Union of several tag groups, keeping first-seen order"""
    merged: List[str] = []
    for group in groups:
        for tag in split_tags(group):
            if tag not in merged:
                merged.append(tag)
    return ",".join(merged)
