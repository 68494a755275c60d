"""
Live environment variable store.

Holds the environment variables of a single execution or a whole
collection run. Scripts never touch the store directly: they get a
snapshot and their writes are applied here in one step once the script
has returned.
"""

from typing import Iterable

from ..schemas.environment import Variable


class EnvironmentStore:
    """Mutable list of environment variables with key-based access."""

    def __init__(self, variables: Iterable[Variable] | None = None):
        self._variables: list[Variable] = [v.model_copy() for v in variables or []]

    @property
    def variables(self) -> list[Variable]:
        """Current variables, in definition order."""
        return list(self._variables)

    def snapshot(self) -> list[Variable]:
        """Independent copies of the current variables."""
        return [v.model_copy() for v in self._variables]

    def get(self, key: str) -> str | None:
        """Effective value of the last enabled variable named ``key``."""
        for variable in reversed(self._variables):
            if variable.key == key and variable.enabled:
                return variable.effective_value
        return None

    def set(self, key: str, value: str) -> None:
        """
        Write ``value`` under ``key``.

        Updates every variable carrying the key so the new value is also
        the effective one; creates an enabled variable when none exists.
        """
        updated = False
        for index, variable in enumerate(self._variables):
            if variable.key == key:
                self._variables[index] = variable.model_copy(
                    update={"value": value, "current_value": value}
                )
                updated = True
        if not updated:
            self._variables.append(Variable(key=key, value=value, enabled=True))

    def apply(self, writes: dict[str, str]) -> None:
        """Apply a batch of script writes."""
        for key, value in writes.items():
            self.set(key, value)
