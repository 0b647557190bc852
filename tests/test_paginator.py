"""Tests for hyper.data.paginator."""

from hyper.data import Paginator


class TestPageArithmetic:
    def test_pages_and_offset(self) -> None:
        page = Paginator(total=95, limit=10, page=3)
        assert page.pages == 10
        assert page.offset == 20

    def test_page_clamped_to_last(self) -> None:
        assert Paginator(total=25, limit=10, page=9).page == 3

    def test_page_clamped_to_first(self) -> None:
        assert Paginator(total=25, limit=10, page=-4).page == 1

    def test_empty_result_has_page_zero(self) -> None:
        page = Paginator(total=0, limit=10, page=2)
        assert page.page == 0
        assert page.pages == 0
        assert page.offset == 0

    def test_zero_limit(self) -> None:
        assert Paginator(total=10, limit=0).pages == 0

    def test_flags(self) -> None:
        middle = Paginator(total=30, limit=10, page=2)
        assert middle.has_links
        assert middle.has_previous
        assert middle.has_next
        assert not middle.has_items

        single = Paginator(total=5, limit=10)
        assert not single.has_links
        assert not single.has_previous
        assert not single.has_next


class TestItems:
    def test_slice(self) -> None:
        page = Paginator(total=7, limit=3, page=3).slice(list("abcdefg"))
        assert page.items == ("g",)
        assert page.has_items

    def test_with_items_copies(self) -> None:
        base = Paginator(total=2, limit=10)
        filled = base.with_items(["a", "b"])
        assert base.items == ()
        assert filled.items == ("a", "b")


class TestLinks:
    def test_window_with_gaps(self) -> None:
        assert Paginator(total=100, limit=10, page=5).links(1) == [1, None, 4, 5, 6, None, 10]

    def test_near_the_start(self) -> None:
        assert Paginator(total=100, limit=10, page=1).links(2) == [1, 2, 3, None, 10]

    def test_adjacent_edges_have_no_gap(self) -> None:
        assert Paginator(total=50, limit=10, page=3).links(1) == [1, 2, 3, 4, 5]

    def test_single_page_has_no_links(self) -> None:
        assert Paginator(total=3, limit=10).links() == []
