"""Unit tests for hnkit.tree."""

from __future__ import annotations

from hnkit.models import Comment, CommentColor
from hnkit.tree import build_comment_tree, prune_deleted, reconcile_comment_tree


def _shape(comments: tuple[Comment, ...]) -> list:
    """Nested ``(id, [children...])`` pairs for compact assertions."""
    return [(c.id, _shape(c.children)) for c in comments]


# ---------------------------------------------------------------------------
# prune_deleted
# ---------------------------------------------------------------------------


class TestPruneDeleted:
    def test_drops_deleted_roots(self, comment) -> None:
        tree = (comment(1), comment(2, deleted=True), comment(3))
        assert _shape(prune_deleted(tree)) == [(1, []), (3, [])]

    def test_drops_deleted_subtree(self, comment) -> None:
        tree = (comment(1, comment(2, comment(3), deleted=True), comment(4)),)
        assert _shape(prune_deleted(tree)) == [(1, [(4, [])])]

    def test_untouched_comment_is_same_object(self, comment) -> None:
        leaf = comment(1)
        assert prune_deleted((leaf,))[0] is leaf


# ---------------------------------------------------------------------------
# reconcile_comment_tree
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_reorders_roots_by_page_order(self, comment) -> None:
        tree = (comment(3), comment(1), comment(2))
        result = reconcile_comment_tree(tree, [1, 2, 3], {})
        assert [c.id for c in result] == [1, 2, 3]

    def test_reorders_every_sibling_list(self, comment) -> None:
        tree = (comment(1, comment(12), comment(11)), comment(2, comment(22), comment(21)))
        order = [2, 21, 22, 1, 11, 12]
        assert _shape(reconcile_comment_tree(tree, order, {})) == [
            (2, [(21, []), (22, [])]),
            (1, [(11, []), (12, [])]),
        ]

    def test_unknown_ids_sort_last_in_original_order(self, comment) -> None:
        tree = (comment(9), comment(2), comment(8), comment(1))
        result = reconcile_comment_tree(tree, [1, 2], {})
        assert [c.id for c in result] == [1, 2, 9, 8]

    def test_applies_colors_at_every_depth(self, comment) -> None:
        tree = (comment(1, comment(2, comment(3))),)
        colors = {1: CommentColor.C5A, 3: CommentColor.CDD}
        result = reconcile_comment_tree(tree, [1, 2, 3], colors)
        assert result[0].color is CommentColor.C5A
        assert result[0].children[0].color is CommentColor.C00
        assert result[0].children[0].children[0].color is CommentColor.CDD

    def test_missing_color_resets_to_default(self, comment) -> None:
        shaded = comment(1).model_copy(update={"color": CommentColor.C88})
        result = reconcile_comment_tree((shaded,), [1], {})
        assert result[0].color is CommentColor.C00

    def test_prunes_deleted(self, comment) -> None:
        tree = (comment(1, comment(2, deleted=True)), comment(3, deleted=True))
        result = reconcile_comment_tree(tree, [1, 2, 3], {})
        assert _shape(result) == [(1, [])]
        assert sum(c.comment_count for c in result) == 1

    def test_does_not_move_comments_between_parents(self, comment) -> None:
        tree = (comment(1, comment(3)), comment(2))
        result = reconcile_comment_tree(tree, [3, 2, 1], {})
        assert _shape(result) == [(2, []), (1, [(3, [])])]

    def test_empty(self) -> None:
        assert reconcile_comment_tree((), [1, 2], {}) == ()

    def test_preserves_content(self, comment) -> None:
        original = comment(7)
        (result,) = reconcile_comment_tree((original,), [7], {})
        assert (result.author, result.text, result.created_at) == (
            original.author,
            original.text,
            original.created_at,
        )


# ---------------------------------------------------------------------------
# build_comment_tree
# ---------------------------------------------------------------------------


class TestBuildFromRows:
    def test_basic_nesting(self, flat) -> None:
        rows = [flat(1, 0), flat(2, 1), flat(3, 1), flat(4, 0)]
        assert _shape(build_comment_tree(rows)) == [(1, [(2, []), (3, [])]), (4, [])]

    def test_preserves_document_order(self, flat) -> None:
        rows = [flat(5, 0), flat(1, 0), flat(3, 0)]
        assert [c.id for c in build_comment_tree(rows)] == [5, 1, 3]

    def test_deep_then_shallow(self, flat) -> None:
        rows = [flat(1, 0), flat(2, 1), flat(3, 2), flat(4, 3), flat(5, 1), flat(6, 0)]
        assert _shape(build_comment_tree(rows)) == [
            (1, [(2, [(3, [(4, [])])]), (5, [])]),
            (6, []),
        ]

    def test_jump_of_several_levels_attaches_to_previous_row(self, flat) -> None:
        rows = [flat(1, 0), flat(2, 3), flat(3, 1)]
        assert _shape(build_comment_tree(rows)) == [(1, [(2, []), (3, [])])]

    def test_rows_after_a_jump_nest_against_clamped_depth(self, flat) -> None:
        rows = [flat(1, 0), flat(2, 3), flat(3, 2)]
        assert _shape(build_comment_tree(rows)) == [(1, [(2, [(3, [])])])]

    def test_first_row_not_at_root_depth(self, flat) -> None:
        rows = [flat(1, 2), flat(2, 3), flat(3, 0)]
        assert _shape(build_comment_tree(rows)) == [(1, [(2, [])]), (3, [])]

    def test_carries_row_fields(self, flat) -> None:
        (root,) = build_comment_tree([flat(1, 0, CommentColor.CAE)])
        assert root.author == "user1"
        assert root.text == "text 1"
        assert root.color is CommentColor.CAE
        assert not root.is_deleted

    def test_comment_count_matches_rows(self, flat) -> None:
        rows = [flat(1, 0), flat(2, 1), flat(3, 2), flat(4, 0)]
        assert sum(c.comment_count for c in build_comment_tree(rows)) == 4

    def test_empty(self) -> None:
        assert build_comment_tree([]) == ()
