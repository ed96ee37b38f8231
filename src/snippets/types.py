from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, get_args

Language = Literal["html", "css", "js"]

LANGUAGES: tuple[Language, ...] = get_args(Language)


def parse_language(raw: Any) -> Language | None:
    value = str(raw or "").strip().lower()
    if value in LANGUAGES:
        return value  # type: ignore[return-value]
    return None


@dataclass(frozen=True)
class SnippetFields:
    """The user-editable part of a snippet, as sent on create/update."""

    title: str
    language: Language
    code: str


@dataclass(frozen=True)
class SnippetRecord:
    id: str
    title: str
    language: Language
    code: str
    owner_id: str
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "language": self.language,
            "code": self.code,
            "user_id": self.owner_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> SnippetRecord:
        language = parse_language(row.get("language"))
        if language is None:
            raise ValueError(f"unsupported snippet language: {row.get('language')!r}")
        return cls(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            language=language,
            code=str(row.get("code") or ""),
            owner_id=str(row["user_id"]),
            created_at=str(row["created_at"])
            if row.get("created_at") is not None
            else None,
            updated_at=str(row["updated_at"])
            if row.get("updated_at") is not None
            else None,
        )
