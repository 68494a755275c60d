"""
Pydantic schemas for variables.

Variables live in two scopes: collection variables shipped with a
collection and environment variables of the active environment.
Both are referenced in requests with the <<variable_name>> syntax.
"""

from pydantic import BaseModel


class Variable(BaseModel):
    """
    A single variable definition.

    The effective value is resolved with the precedence
    current_value > value > initial_value. Disabled variables take
    no part in substitution, and secret variables are never written
    into history records.
    """
    key: str
    value: str = ""
    current_value: str | None = None
    initial_value: str | None = None
    enabled: bool = True
    is_secret: bool = False

    @property
    def effective_value(self) -> str:
        if self.current_value:
            return self.current_value
        if self.value:
            return self.value
        return self.initial_value or ""
