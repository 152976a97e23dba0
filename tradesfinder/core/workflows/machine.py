import enum
from collections.abc import Iterable

from pydantic import BaseModel

from tradesfinder.common.exceptions import InvalidTransitionError
from tradesfinder.common.logging import get_logger

logger = get_logger("workflows.machine")


class Actor(str, enum.Enum):
    """The caller's relationship to the entity being transitioned."""

    CUSTOMER = "CUSTOMER"
    TRADESPERSON = "TRADESPERSON"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"
    PUBLIC = "PUBLIC"


class Transition(BaseModel, frozen=True):
    action: str
    sources: frozenset[str]
    target: str
    actors: frozenset[Actor]


def _value(state: str | enum.Enum) -> str:
    return state.value if isinstance(state, enum.Enum) else state


def transition(
    action: str,
    sources: Iterable[str | enum.Enum],
    target: str | enum.Enum,
    *actors: Actor,
) -> Transition:
    return Transition(
        action=action,
        sources=frozenset(_value(s) for s in sources),
        target=_value(target),
        actors=frozenset(actors),
    )


class Workflow:
    """A fixed transition table for one entity's status field.

    ``fire`` is the only way a status moves; anything not listed in the
    table is rejected with InvalidTransitionError.
    """

    def __init__(self, entity: str, states: type[enum.Enum], transitions: list[Transition]):
        self.entity = entity
        self.states = frozenset(s.value for s in states)
        self._by_action: dict[str, list[Transition]] = {}

        for t in transitions:
            unknown = (t.sources | {t.target}) - self.states
            if unknown:
                raise ValueError(f"{entity} workflow references unknown states: {sorted(unknown)}")
            self._by_action.setdefault(t.action, []).append(t)

    @property
    def actions(self) -> list[str]:
        return sorted(self._by_action)

    def _match(self, current: str, action: str, actor: Actor) -> Transition | None:
        for t in self._by_action.get(action, []):
            if current in t.sources and actor in t.actors:
                return t
        return None

    def fire(self, current: str | enum.Enum, action: str, actor: Actor) -> str:
        # Actions outside the table (e.g. "reopen") are transitions it never permits
        current = _value(current)
        t = self._match(current, action, actor)
        if t is None:
            logger.info(
                "Rejected %s transition: action=%s from=%s actor=%s",
                self.entity,
                action,
                current,
                actor.value,
            )
            raise InvalidTransitionError(self.entity, current, action)
        return t.target

    def can_fire(self, current: str | enum.Enum, action: str, actor: Actor) -> bool:
        return self._match(_value(current), action, actor) is not None

    def allowed_actions(self, current: str | enum.Enum, actor: Actor) -> list[str]:
        current = _value(current)
        return [a for a in self.actions if self._match(current, a, actor) is not None]

    def is_terminal(self, state: str | enum.Enum) -> bool:
        state = _value(state)
        return not any(state in t.sources for ts in self._by_action.values() for t in ts)
