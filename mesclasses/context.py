"""Application-wide preferences and navigation target.

One :class:`AppContext` is built when the server starts and kept on
``app.state``. Screens never change navigation themselves; they send a
command (:class:`NavigateToClass`, :class:`NavigateToSession`,
:class:`ClearNavigation`) and read the resulting target back.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

LANGUAGES = ("fr", "ar")
THEMES = ("light", "dark")


@dataclass(frozen=True)
class NavigateToClass:
    class_id: str
    cycle_id: Optional[str] = None


@dataclass(frozen=True)
class NavigateToSession:
    session_id: str


@dataclass(frozen=True)
class ClearNavigation:
    pass


NavigationCommand = Union[NavigateToClass, NavigateToSession, ClearNavigation]


class AppContext:
    def __init__(self, language: str = "fr", theme: str = "light"):
        self._language = "fr"
        self._theme = "light"
        self.set_language(language)
        self.set_theme(theme)
        self.active_tab = "dashboard"
        self.selected_cycle_id: Optional[str] = None
        self.selected_class_id: Optional[str] = None
        self.session_to_edit: Optional[str] = None

    @property
    def language(self) -> str:
        return self._language

    @property
    def theme(self) -> str:
        return self._theme

    def set_language(self, language: str) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        self._language = language

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unsupported theme: {theme}")
        self._theme = theme

    def dispatch(self, command: NavigationCommand) -> None:
        if isinstance(command, NavigateToClass):
            self.selected_cycle_id = command.cycle_id
            self.selected_class_id = command.class_id
            self.session_to_edit = None
            self.active_tab = "students"
        elif isinstance(command, NavigateToSession):
            self.session_to_edit = command.session_id
            self.active_tab = "sessions"
        elif isinstance(command, ClearNavigation):
            self.selected_cycle_id = None
            self.selected_class_id = None
            self.session_to_edit = None
            self.active_tab = "dashboard"
        else:
            raise TypeError(f"Unknown navigation command: {command!r}")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "theme": self.theme,
            "navigation": {
                "active_tab": self.active_tab,
                "selected_cycle_id": self.selected_cycle_id,
                "selected_class_id": self.selected_class_id,
                "session_to_edit": self.session_to_edit,
            },
        }
