"""Pages and the vote/favorite/flag actions attached to them."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import StrEnum
from types import MappingProxyType
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hnkit.models.comment import Comment
from hnkit.models.item import TopLevelItem


class ActionKind(StrEnum):
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"
    UNVOTE = "unvote"
    UNDOWN = "undown"
    FAVORITE = "favorite"
    UNFAVORITE = "unfavorite"
    FLAG = "flag"
    UNFLAG = "unflag"


VOTE_DIRECTIONS: frozenset[ActionKind] = frozenset({ActionKind.UPVOTE, ActionKind.DOWNVOTE})

_INVERSES: dict[ActionKind, frozenset[ActionKind]] = {
    ActionKind.UPVOTE: frozenset({ActionKind.UNVOTE}),
    ActionKind.DOWNVOTE: frozenset({ActionKind.UNDOWN}),
    ActionKind.UNVOTE: VOTE_DIRECTIONS,
    ActionKind.UNDOWN: VOTE_DIRECTIONS,
    ActionKind.FAVORITE: frozenset({ActionKind.UNFAVORITE}),
    ActionKind.UNFAVORITE: frozenset({ActionKind.FAVORITE}),
    ActionKind.FLAG: frozenset({ActionKind.UNFLAG}),
    ActionKind.UNFLAG: frozenset({ActionKind.FLAG}),
}

# Value of the ``how`` query parameter the site expects for each vote kind.
_VOTE_HOW: dict[ActionKind, str] = {
    ActionKind.UPVOTE: "up",
    ActionKind.DOWNVOTE: "down",
    ActionKind.UNVOTE: "un",
    ActionKind.UNDOWN: "un",
}


def inverse_set(kind: ActionKind) -> frozenset[ActionKind]:
    """Kinds that become available right after ``kind`` succeeds."""
    return _INVERSES[kind]


class Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    url: str

    @property
    def is_vote_direction(self) -> bool:
        return self.kind in VOTE_DIRECTIONS

    def inverse_actions(self) -> frozenset[Action]:
        return frozenset(
            Action(kind=kind, url=_inverse_url(self, kind)) for kind in inverse_set(self.kind)
        )


def _inverse_url(action: Action, kind: ActionKind) -> str:
    """Rewrite the action URL so the inverse is executable without reloading the page."""
    parts = urlsplit(action.url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    if kind in _VOTE_HOW:
        query = [("how", _VOTE_HOW[kind]) if key == "how" else (key, v) for key, v in query]
    elif kind in (ActionKind.UNFAVORITE, ActionKind.UNFLAG):
        query = [*[(k, v) for k, v in query if k != "un"], ("un", "t")]
    else:
        query = [(k, v) for k, v in query if k != "un"]
    return urlunsplit(parts._replace(query=urlencode(query)))


class ActionSet:
    """Immutable set of actions valid for one item.

    Casting a vote clears every vote direction from the set before the
    inverse is added, so a voted item never offers a second vote.
    """

    __slots__ = ("_actions",)

    def __init__(self, actions: Iterable[Action] = ()) -> None:
        self._actions = frozenset(actions)

    def __contains__(self, action: object) -> bool:
        return action in self._actions

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ActionSet):
            return self._actions == other._actions
        if isinstance(other, (set, frozenset)):
            return self._actions == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._actions)

    def __repr__(self) -> str:
        return f"ActionSet({sorted(a.kind for a in self._actions)})"

    @property
    def kinds(self) -> frozenset[ActionKind]:
        return frozenset(a.kind for a in self._actions)

    def find(self, kind: ActionKind) -> Action | None:
        return next((a for a in self._actions if a.kind == kind), None)

    def apply(self, action: Action) -> ActionSet:
        """Return the set that is valid after ``action`` has been performed."""
        remaining = self._actions - {action}
        if action.is_vote_direction:
            remaining = remaining - _vote_directions(remaining)
        return ActionSet(remaining | action.inverse_actions())


def _vote_directions(actions: frozenset[Action]) -> frozenset[Action]:
    return frozenset(a for a in actions if a.is_vote_direction)


class Page(BaseModel):
    """An item together with its ordered comment tree and per-id actions."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    item: TopLevelItem
    children: tuple[Comment, ...] = ()
    actions: Mapping[int, ActionSet] = Field(default_factory=dict, validate_default=True)

    @field_validator("actions", mode="after")
    @classmethod
    def _freeze_actions(cls, value: Mapping[int, ActionSet]) -> Mapping[int, ActionSet]:
        return MappingProxyType(dict(value))

    def actions_for(self, item_id: int) -> ActionSet:
        return self.actions.get(item_id, ActionSet())

    def owner_of(self, action: Action) -> int | None:
        """Id of the item whose action set contains ``action``."""
        for item_id, actions in self.actions.items():
            if action in actions:
                return item_id
        return None

    def with_action_applied(self, item_id: int, action: Action) -> Page:
        actions = dict(self.actions)
        actions[item_id] = self.actions_for(item_id).apply(action)
        return self.model_copy(update={"actions": MappingProxyType(actions)})

    @property
    def comment_count(self) -> int:
        return sum(child.comment_count for child in self.children)
