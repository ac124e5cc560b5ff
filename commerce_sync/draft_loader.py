"""Loading drafts from YAML or JSON files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List

import yaml


class DraftFileError(Exception):
    pass


def load_drafts(path: str | Path, kind) -> List[Any]:
    """Read a list of drafts, either as the document root or under a ``drafts`` key."""
    try:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise DraftFileError(f"Cannot read draft file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise DraftFileError(f"Draft file {path} is not valid YAML/JSON: {exc}") from exc

    if isinstance(raw, dict):
        declared_kind = raw.get("kind")
        if declared_kind is not None and declared_kind != kind.name:
            raise DraftFileError(f"Draft file declares kind '{declared_kind}', expected '{kind.name}'")
        raw = raw.get("drafts")
    if not isinstance(raw, list):
        raise DraftFileError("Draft file must contain a list of drafts")

    drafts: List[Any] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise DraftFileError(f"drafts[{index}] must be a mapping object")
        try:
            drafts.append(kind.draft_from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            raise DraftFileError(f"drafts[{index}] is malformed: {exc!r}") from exc
    return drafts
