"""Data models describing the target codebase (App Structure Provider output)."""

from dataclasses import dataclass, field
from typing import List, Optional

from .issue import Platform


@dataclass
class LifecycleInfo:
    """A lifecycle hook of a component and what it registers."""
    method: str
    has_cleanup: bool = False
    subscriptions: List[str] = field(default_factory=list)


@dataclass
class ComponentInfo:
    """A UI component, widget, view or screen."""
    name: str
    path: str
    type: str = "component"  # component, widget, view, cell, screen
    lifecycle: List[LifecycleInfo] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)


@dataclass
class ApiInfo:
    """A detected API call site."""
    endpoint: str
    method: str = "GET"
    path: str = ""
    error_handling: bool = False


@dataclass
class AppStructure:
    """Normalized description of a codebase, consumed read-only."""
    project_path: str
    platform: Platform
    language: str = ""
    screens: List[ComponentInfo] = field(default_factory=list)
    components: List[ComponentInfo] = field(default_factory=list)
    apis: List[ApiInfo] = field(default_factory=list)
    source_files: Optional[List[str]] = None  # Pre-classified files; walk when None

    @property
    def all_components(self) -> List[ComponentInfo]:
        return list(self.screens) + list(self.components)

    @classmethod
    def from_dict(cls, data: dict) -> "AppStructure":
        """Build from a provider's JSON payload."""

        def _component(raw: dict) -> ComponentInfo:
            return ComponentInfo(
                name=raw.get("name", ""),
                path=raw.get("path", ""),
                type=raw.get("type", "component"),
                lifecycle=[
                    LifecycleInfo(
                        method=l.get("method", ""),
                        has_cleanup=bool(l.get("has_cleanup", l.get("hasCleanup", False))),
                        subscriptions=list(l.get("subscriptions", [])),
                    )
                    for l in raw.get("lifecycle", [])
                ],
                dependencies=list(raw.get("dependencies", [])),
            )

        return cls(
            project_path=data.get("project_path") or data.get("projectPath", ""),
            platform=Platform(data["platform"]),
            language=data.get("language", ""),
            screens=[_component(s) for s in data.get("screens", [])],
            components=[_component(c) for c in data.get("components", [])],
            apis=[
                ApiInfo(
                    endpoint=a.get("endpoint", ""),
                    method=a.get("method", "GET"),
                    path=a.get("path", ""),
                    error_handling=bool(a.get("error_handling", a.get("errorHandling", False))),
                )
                for a in data.get("apis", [])
            ],
            source_files=data.get("source_files"),
        )
