"""The (project, sprint) pair that decides which tickets are loaded."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Scope:
    """What a partition is showing.

    sprint_id None means the whole project. generation increases every
    time the scope changes, so late results from an older scope can be
    recognised and dropped.
    """

    project_id: str
    sprint_id: str | None = None
    generation: int = 0

    def changed(self, project_id: str | None = None, sprint_id: str | None = None) -> "Scope":
        """Return the next scope, with a bumped generation."""
        return Scope(
            project_id=project_id if project_id is not None else self.project_id,
            sprint_id=sprint_id,
            generation=self.generation + 1,
        )

    def matches(self, generation: int) -> bool:
        return generation == self.generation
