"""Comment tree reconstruction.

Two sources describe the same thread and disagree. The search index has the
right nesting and text but stale sibling order and no shading; the rendered
page has the true top-to-bottom order, the shade of every comment and the
depth of each row, but no explicit tree.

``reconcile_comment_tree`` keeps the index's nesting and re-sorts it by the
page order. ``build_comment_tree`` rebuilds nesting from the page rows alone.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from hnkit.models.comment import Comment, CommentColor, FlatComment


def prune_deleted(comments: Sequence[Comment]) -> tuple[Comment, ...]:
    """Drop deleted comments (and with them their subtrees) at every level."""
    pruned: list[Comment] = []
    for comment in comments:
        if comment.is_deleted:
            continue
        children = prune_deleted(comment.children)
        if children != comment.children:
            comment = comment.model_copy(update={"children": children})
        pruned.append(comment)
    return tuple(pruned)


def reconcile_comment_tree(
    comments: Sequence[Comment],
    true_order: Sequence[int],
    colors: Mapping[int, CommentColor],
) -> tuple[Comment, ...]:
    """Re-sort every sibling list by page order and apply page shading.

    Ids missing from ``true_order`` sort after all ordered siblings and keep
    their original relative order. Comments without a known shade get
    ``CommentColor.C00``.
    """
    position = {comment_id: index for index, comment_id in enumerate(true_order)}
    return _reconcile(prune_deleted(comments), position, colors)


def _reconcile(
    comments: tuple[Comment, ...],
    position: Mapping[int, int],
    colors: Mapping[int, CommentColor],
) -> tuple[Comment, ...]:
    unordered = len(position)
    # sorted() is stable, so unknown ids keep their relative order at the tail.
    ordered = sorted(comments, key=lambda c: position.get(c.id, unordered))
    return tuple(
        comment.model_copy(
            update={
                "color": colors.get(comment.id, CommentColor.C00),
                "children": _reconcile(comment.children, position, colors),
            }
        )
        for comment in ordered
    )


@dataclass
class _Frame:
    flat: FlatComment
    depth: int
    children: list[Comment] = field(default_factory=list)

    def close(self) -> Comment:
        return Comment(
            id=self.flat.id,
            created_at=self.flat.created_at,
            author=self.flat.author,
            text=self.flat.text,
            color=self.flat.color,
            children=tuple(self.children),
        )


def build_comment_tree(flat_comments: Sequence[FlatComment]) -> tuple[Comment, ...]:
    """Rebuild nesting from rows in document order, in one linear pass.

    The stack holds the right edge of the tree: the path from the current root
    to the last placed row. A row at depth ``d`` closes every frame at depth
    ``>= d`` and attaches it to the frame below it (or to the roots), then
    becomes the new top. A row deeper than one level below the top is clamped
    to ``top + 1``, and the first row to 0, so later rows nest against the
    depth the row was actually placed at.
    """
    roots: list[Comment] = []
    stack: list[_Frame] = []

    def pop_and_attach() -> None:
        closed = stack.pop().close()
        if stack:
            stack[-1].children.append(closed)
        else:
            roots.append(closed)

    for flat in flat_comments:
        depth = min(flat.depth, stack[-1].depth + 1 if stack else 0)
        while stack and stack[-1].depth >= depth:
            pop_and_attach()
        stack.append(_Frame(flat=flat, depth=depth))

    while stack:
        pop_and_attach()

    return tuple(roots)
