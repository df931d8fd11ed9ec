"""Project registry — read-only set of airdrop projects loaded from JSON."""

import json
from collections.abc import Iterable, Iterator
from pathlib import Path

from loguru import logger
from pydantic import TypeAdapter

from src.models.project import Project, ProjectStatus

_PROJECT_LIST = TypeAdapter(list[Project])


class ProjectRegistry:
    """Immutable, id-ordered collection of projects."""

    def __init__(self, projects: Iterable[Project]) -> None:
        by_id: dict[str, Project] = {}
        for p in projects:
            if p.id in by_id:
                raise ValueError(f"Duplicate project id: {p.id}")
            by_id[p.id] = p
        self._projects = tuple(by_id[pid] for pid in sorted(by_id))

    @classmethod
    def from_file(cls, path: str | Path) -> "ProjectRegistry":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("projects", [])
        registry = cls(_PROJECT_LIST.validate_python(data))
        logger.info(f"[REGISTRY] Loaded {len(registry)} projects from {path}")
        return registry

    def __iter__(self) -> Iterator[Project]:
        return iter(self._projects)

    def __len__(self) -> int:
        return len(self._projects)

    def get(self, project_id: str) -> Project | None:
        for p in self._projects:
            if p.id == project_id:
                return p
        return None

    def active(self) -> list[Project]:
        """Projects worth evaluating eligibility for (everything but expired)."""
        return [p for p in self._projects if p.status != ProjectStatus.EXPIRED]
