from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from src.session.context import ContextStore

Locale = Literal["en", "ar"]
Theme = Literal["light", "dark"]

LOCALE_COOKIE = "lang"
THEME_COOKIE = "theme"

_RTL_LOCALES = {"ar"}


@dataclass(frozen=True)
class UiPreferences:
    locale: Locale = "en"
    theme: Theme = "light"

    @property
    def direction(self) -> str:
        return "rtl" if self.locale in _RTL_LOCALES else "ltr"

    def to_dict(self) -> dict[str, str]:
        return {"locale": self.locale, "theme": self.theme, "direction": self.direction}


def parse_locale(raw: str | None) -> Locale | None:
    v = (raw or "").strip().lower()
    return v if v in ("en", "ar") else None  # type: ignore[return-value]


def parse_theme(raw: str | None) -> Theme | None:
    v = (raw or "").strip().lower()
    return v if v in ("light", "dark") else None  # type: ignore[return-value]


class PreferencesContext(ContextStore[UiPreferences]):
    def __init__(self, prefs: UiPreferences | None = None) -> None:
        super().__init__(prefs or UiPreferences())

    @classmethod
    def from_cookies(cls, cookies: Mapping[str, str]) -> PreferencesContext:
        # Unknown values fall back to defaults, like a missing cookie.
        return cls(
            UiPreferences(
                locale=parse_locale(cookies.get(LOCALE_COOKIE)) or "en",
                theme=parse_theme(cookies.get(THEME_COOKIE)) or "light",
            )
        )

    def toggle_theme(self) -> UiPreferences:
        current = self.get()
        return self.update(theme="dark" if current.theme == "light" else "light")

    def set_locale(self, locale: Locale) -> UiPreferences:
        if locale == self.get().locale:
            return self.get()
        return self.update(locale=locale)

    def cookies(self) -> dict[str, str]:
        prefs = self.get()
        return {LOCALE_COOKIE: prefs.locale, THEME_COOKIE: prefs.theme}
