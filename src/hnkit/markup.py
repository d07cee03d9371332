"""Extraction of order, shading, actions and comment rows from a rendered item page.

Every row of the item page is a ``tr.athing``: the first one is the item
itself, the rest are comments in display order. The item header lives in
``.fatitem``. Anything the parser cannot anchor on raises
``StructuralParseError``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from functools import cached_property
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import structlog
from bs4 import BeautifulSoup, Tag

from hnkit.errors import StructuralParseError
from hnkit.models.comment import CommentColor, FlatComment
from hnkit.models.page import Action, ActionKind, ActionSet

log = structlog.get_logger()

DEFAULT_BASE_URL = "https://news.ycombinator.com/"

_COLOR_CLASSES = {color.value: color for color in CommentColor}


def _strip_goto(url: str) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "goto"]
    return urlunsplit(parts._replace(query=urlencode(query)))


def _query_keys(href: str) -> set[str]:
    return {key for key, _ in parse_qsl(urlsplit(href).query, keep_blank_values=True)}


def _color_of(element: Tag | None) -> CommentColor:
    if element is None:
        return CommentColor.C00
    for css_class in element.get("class") or ():
        color = _COLOR_CLASSES.get(css_class)
        if color is not None:
            return color
    return CommentColor.C00


class MarkupParser:
    """Read-only view over one rendered item page."""

    def __init__(self, html: str, base_url: str = DEFAULT_BASE_URL) -> None:
        self.document = BeautifulSoup(html, "html.parser")
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"

    # ------------------------------------------------------------------
    # Anchors
    # ------------------------------------------------------------------

    @cached_property
    def fat_item(self) -> Tag:
        element = self.document.select_one(".fatitem")
        if element is None:
            raise StructuralParseError("Item page has no .fatitem header")
        return element

    @cached_property
    def rows(self) -> list[Tag]:
        rows = [row for row in self.document.select("tr.athing") if row.get("id", "").isdigit()]
        if not rows:
            raise StructuralParseError("Item page has no tr.athing rows")
        return rows

    @cached_property
    def item_id(self) -> int:
        return int(self.rows[0]["id"])

    @cached_property
    def comment_rows(self) -> list[Tag]:
        return self.rows[1:]

    def _row(self, item_id: int) -> Tag | None:
        return next((row for row in self.rows if row["id"] == str(item_id)), None)

    # ------------------------------------------------------------------
    # Ordering and shading
    # ------------------------------------------------------------------

    def true_comment_order(self) -> list[int]:
        """Comment ids in top-to-bottom document order."""
        return [int(row["id"]) for row in self.comment_rows]

    def comment_colors(self) -> dict[int, CommentColor]:
        colors: dict[int, CommentColor] = {}
        for row in self.comment_rows:
            text_el = row.select_one(".commtext")
            if text_el is None:
                continue
            colors[int(row["id"])] = _color_of(text_el)
        return colors

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def available_actions(self) -> dict[int, ActionSet]:
        """Actions offered for the item and each comment, keyed by id."""
        fat_item = self.fat_item
        actions: dict[int, ActionSet] = {}
        for row in self.rows:
            row_id = int(row["id"])
            container = fat_item if row_id == self.item_id else row
            found = [*self._vote_actions(row), *self._link_actions(container)]
            actions[row_id] = ActionSet(found)
        return actions

    def _vote_actions(self, row: Tag) -> list[Action]:
        actions: list[Action] = []
        for link in row.select(".votelinks a"):
            if "nosee" in (link.get("class") or ()):
                continue
            arrow = link.select_one(".votearrow")
            href = link.get("href")
            if arrow is None or not href or "nosee" in (arrow.get("class") or ()):
                continue
            # Logged-out pages render arrows without an auth token; they are not actionable.
            if "auth" not in _query_keys(href):
                continue
            title = arrow.get("title")
            if title == "upvote":
                kind = ActionKind.UPVOTE
            elif title == "downvote":
                kind = ActionKind.DOWNVOTE
            else:
                continue
            actions.append(Action(kind=kind, url=_strip_goto(urljoin(self.base_url, href))))
        return actions

    def _link_actions(self, container: Tag) -> list[Action]:
        actions: list[Action] = []

        unvote = container.select_one("[id^=unv] > a")
        if unvote is not None and unvote.get("href"):
            text = unvote.get_text(strip=True)
            kind = {"unvote": ActionKind.UNVOTE, "undown": ActionKind.UNDOWN}.get(text)
            if kind is not None:
                url = _strip_goto(urljoin(self.base_url, unvote["href"]))
                actions.append(Action(kind=kind, url=url))

        for link in container.select('a[href^="fave?"], a[href^="flag?"]'):
            href = link["href"]
            keys = _query_keys(href)
            if "auth" not in keys:
                continue
            undo = "un" in keys
            if href.startswith("fave?"):
                kind = ActionKind.UNFAVORITE if undo else ActionKind.FAVORITE
            else:
                kind = ActionKind.UNFLAG if undo else ActionKind.FLAG
            actions.append(Action(kind=kind, url=_strip_goto(urljoin(self.base_url, href))))
        return actions

    # ------------------------------------------------------------------
    # Rows for markup-only tree building
    # ------------------------------------------------------------------

    def flat_comments(self) -> list[FlatComment]:
        """Comment rows in document order with their indent depth.

        Rows without an author link are deleted or dead comments. They are
        skipped together with every reply nested below them, so a reply never
        moves under a comment it did not answer.
        """
        flat: list[FlatComment] = []
        skip_below: int | None = None
        for row in self.comment_rows:
            depth = self._depth(row)
            if skip_below is not None:
                if depth > skip_below:
                    continue
                skip_below = None

            author_el = row.select_one(".hnuser")
            if author_el is None:
                skip_below = depth
                continue

            text_el = row.select_one(".commtext")
            flat.append(
                FlatComment(
                    id=int(row["id"]),
                    author=author_el.get_text(strip=True),
                    text=text_el.decode_contents() if text_el is not None else "",
                    created_at=self._created_at(row),
                    depth=depth,
                    color=_color_of(text_el),
                )
            )
        return flat

    @staticmethod
    def _depth(row: Tag) -> int:
        indent_el = row.select_one("td.ind")
        if indent_el is None:
            raise StructuralParseError(f"Comment row {row['id']} has no indent cell")
        try:
            return max(int(indent_el.get("indent", "0")), 0)
        except ValueError:
            return 0

    @staticmethod
    def _created_at(row: Tag) -> datetime:
        # Title format: "2024-12-09T06:44:05 1733726645"
        age_el = row.select_one(".age")
        title = age_el.get("title", "") if age_el is not None else ""
        parts = title.split()
        if len(parts) >= 2 and parts[1].isdigit():
            return datetime.fromtimestamp(int(parts[1]), tz=UTC)
        if parts:
            try:
                return datetime.fromisoformat(parts[0]).replace(tzinfo=UTC)
            except ValueError:
                pass
        log.debug("comment_timestamp_missing", comment_id=row.get("id"))
        return datetime.now(UTC)

    # ------------------------------------------------------------------
    # Reply form
    # ------------------------------------------------------------------

    def reply_hmac(self) -> str | None:
        field = self.document.select_one("input[name=hmac]")
        if field is None:
            return None
        return field.get("value") or None
