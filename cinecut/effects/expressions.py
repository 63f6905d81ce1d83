"""Small expression tree rendered to ffmpeg's filter expression syntax.

Compilers build these nodes instead of concatenating strings so the values can
be evaluated in tests; ``render()`` produces the exact text handed to ffmpeg.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, Union

from cinecut.effects.timecode import format_number


@dataclass(frozen=True, slots=True)
class Literal:
    value: float

    def render(self) -> str:
        return format_number(self.value)

    def evaluate(self, env: Mapping[str, float]) -> float:
        return float(self.value)


@dataclass(frozen=True, slots=True)
class Symbol:
    """A variable provided by the filter at evaluation time (``on``, ``n``, ``t``, ``T``, ``PTS``)."""

    name: str

    def render(self) -> str:
        return self.name

    def evaluate(self, env: Mapping[str, float]) -> float:
        return float(env[self.name])


@dataclass(frozen=True, slots=True)
class Progress:
    """Linear 0..1 progress of ``variable`` between two frame indices."""

    variable: str
    start: int
    end: int

    def render(self) -> str:
        return f"({self.variable}-{format_number(self.start)})/{format_number(self.end - self.start)}"

    def evaluate(self, env: Mapping[str, float]) -> float:
        return (float(env[self.variable]) - self.start) / (self.end - self.start)


@dataclass(frozen=True, slots=True)
class EaseInOut:
    """Quadratic ease-in-out applied to a progress expression."""

    progress: "Expr"

    def render(self) -> str:
        p = self.progress.render()
        return f"if(lt({p},0.5),2*{p}*{p},1-pow(-2*{p}+2,2)/2)"

    def evaluate(self, env: Mapping[str, float]) -> float:
        p = self.progress.evaluate(env)
        if p < 0.5:
            return 2 * p * p
        return 1 - ((-2 * p + 2) ** 2) / 2


@dataclass(frozen=True, slots=True)
class Lerp:
    start_value: float
    end_value: float
    progress: "Expr"

    def render(self) -> str:
        v1 = format_number(self.start_value)
        v2 = format_number(self.end_value)
        return f"{v1}+({v2}-{v1})*{self.progress.render()}"

    def evaluate(self, env: Mapping[str, float]) -> float:
        return self.start_value + (self.end_value - self.start_value) * self.progress.evaluate(env)


@dataclass(frozen=True, slots=True)
class Between:
    """Inclusive range test, true (1) when ``start <= variable <= end``."""

    variable: str
    start: float
    end: float

    def render(self) -> str:
        return f"between({self.variable},{format_number(self.start)},{format_number(self.end)})"

    def evaluate(self, env: Mapping[str, float]) -> float:
        value = float(env[self.variable])
        return 1.0 if self.start <= value <= self.end else 0.0


@dataclass(frozen=True, slots=True)
class Product:
    left: "Expr"
    right: "Expr"

    def render(self) -> str:
        return f"{self.left.render()}*{self.right.render()}"

    def evaluate(self, env: Mapping[str, float]) -> float:
        return self.left.evaluate(env) * self.right.evaluate(env)


@dataclass(frozen=True, slots=True)
class Conditional:
    condition: "Expr"
    then: "Expr"
    otherwise: "Expr"

    def render(self) -> str:
        return f"if({self.condition.render()},{self.then.render()},{self.otherwise.render()})"

    def evaluate(self, env: Mapping[str, float]) -> float:
        if self.condition.evaluate(env) != 0:
            return self.then.evaluate(env)
        return self.otherwise.evaluate(env)


Expr = Union[Literal, Symbol, Progress, EaseInOut, Lerp, Between, Product, Conditional]


def piecewise(branches: Sequence[tuple[Expr, Expr]], default: Expr) -> Expr:
    """Nest ``(condition, value)`` branches so the first matching branch wins."""

    expression = default
    for condition, value in reversed(branches):
        expression = Conditional(condition=condition, then=value, otherwise=expression)
    return expression
