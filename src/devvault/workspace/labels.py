"""Localized placeholder titles for tabs that have no content title yet."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ..services.repository import ItemType

__all__ = ["TabLabels", "labels_for_locale"]

_CATALOGS: Mapping[str, Mapping[str, str]] = {
    "en": {
        "new_tab": "New tab",
        "documentation": "Documentation",
        "untitled": "Untitled",
        "draft.snippet": "New snippet",
        "draft.note": "New note",
        "draft.config": "New config",
        "draft.link": "New link",
        "draft.documentation": "New document",
        "draft.fallback": "New item",
        "error.title_required": "Title cannot be empty.",
        "item.not_found": "Item not found",
        "close.confirm_title": "Close tab without saving?",
        "close.confirm_body": "Tab “{title}” has unsaved changes.",
    },
    "ru": {
        "new_tab": "Новая вкладка",
        "documentation": "Документация",
        "untitled": "Без названия",
        "draft.snippet": "Новый сниппет",
        "draft.note": "Новая заметка",
        "draft.config": "Новый конфиг",
        "draft.link": "Новая ссылка",
        "draft.documentation": "Новый документ",
        "draft.fallback": "Новый элемент",
        "error.title_required": "Заголовок не может быть пустым.",
        "item.not_found": "Элемент не найден",
        "close.confirm_title": "Закрыть вкладку без сохранения?",
        "close.confirm_body": "Во вкладке «{title}» есть несохраненные изменения.",
    },
}


@dataclass(frozen=True, slots=True)
class TabLabels:
    """Lookup for user-facing strings in one locale, falling back to English."""

    locale: str = "en"

    def get(self, key: str, **params: str) -> str:
        catalog = _CATALOGS.get(self.locale, _CATALOGS["en"])
        template = catalog.get(key) or _CATALOGS["en"].get(key, key)
        return template.format(**params) if params else template

    def new_tab(self) -> str:
        return self.get("new_tab")

    def documentation(self) -> str:
        return self.get("documentation")

    def draft_title(self, item_type: ItemType | str | None) -> str:
        if item_type is None:
            return self.get("draft.fallback")
        value = item_type.value if isinstance(item_type, ItemType) else str(item_type)
        key = f"draft.{value}"
        catalog = _CATALOGS.get(self.locale, _CATALOGS["en"])
        if key not in catalog:
            return self.get("draft.fallback")
        return self.get(key)

    def title_required(self) -> str:
        return self.get("error.title_required")


def labels_for_locale(locale: str | None) -> TabLabels:
    normalized = (locale or "en").strip().lower()
    if normalized not in _CATALOGS:
        normalized = "en"
    return TabLabels(locale=normalized)
