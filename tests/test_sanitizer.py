"""Tests for hyper.validation.sanitizer: typed access to input values."""

import pytest

from hyper.validation import Sanitizer


class TestStrings:
    def test_email_drops_invalid_characters(self) -> None:
        clean = Sanitizer({"email": " ada (at) <lovelace>@example.com", "blank": "()"})
        assert clean.email("email") == "adaatlovelace@example.com"
        assert clean.email("blank") is None
        assert clean.email("missing") is None

    def test_url_drops_invalid_characters(self) -> None:
        assert Sanitizer({"u": "https://example.com/a bé"}).url("u") == "https://example.com/ab"

    def test_text_strips_tags(self) -> None:
        clean = Sanitizer({"bio": "<b>Hello</b> <script>x</script>world"})
        assert clean.text("bio") == "Hello xworld"
        assert clean.text("bio", strip_tags=False) == "<b>Hello</b> <script>x</script>world"

    def test_html_escapes(self) -> None:
        assert Sanitizer({"c": "<a href='x'>&</a>"}).html("c") == "&lt;a href=&#39;x&#39;&gt;&amp;&lt;/a&gt;"

    def test_lists_are_not_scalars(self) -> None:
        clean = Sanitizer({"tags": ["a", "b"]})
        assert clean.text("tags") is None
        assert clean.email("tags") is None


class TestNumbers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("42", 42), ("-7", -7), ("1,234", 1234), ("12abc", 12), (5, 5), (True, 1), ("abc", None), ("", None)],
    )
    def test_number(self, value, expected) -> None:
        assert Sanitizer({"n": value}).number("n") == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("3.5", 3.5), ("$1999.99", 1999.99), (2, 2.0), ("x", None)],
    )
    def test_float(self, value, expected) -> None:
        assert Sanitizer({"f": value}).float("f") == expected

    def test_missing_number(self) -> None:
        assert Sanitizer().number("n") is None
        assert Sanitizer().float("f") is None


class TestBoolean:
    @pytest.mark.parametrize("value", ["1", "true", "ON", "yes", True])
    def test_true(self, value) -> None:
        assert Sanitizer({"b": value}).boolean("b") is True

    @pytest.mark.parametrize("value", ["0", "false", "off", "No", "", False])
    def test_false(self, value) -> None:
        assert Sanitizer({"b": value}).boolean("b") is False

    def test_unknown_is_none(self) -> None:
        assert Sanitizer({"b": "maybe"}).boolean("b") is None
        assert Sanitizer().boolean("b") is None


class TestStructured:
    def test_ip(self) -> None:
        clean = Sanitizer({"v4": "10.0.0.1", "v6": "2001:DB8::1", "bad": "999.1.1.1"})
        assert clean.ip("v4") == "10.0.0.1"
        assert clean.ip("v6") == "2001:db8::1"
        assert clean.ip("bad") is None

    def test_array(self) -> None:
        clean = Sanitizer({"ids": ["1", "2"], "one": "3"})
        assert clean.array("ids", int) == [1, 2]
        assert clean.array("ids") == ["1", "2"]
        assert clean.array("one", int) == []
        assert clean.array("missing") == []

    def test_date(self) -> None:
        clean = Sanitizer({"d": "2024-02-29", "bad": "2023-02-29", "loose": "2024-2-9", "eu": "09/02/2024"})
        assert clean.date("d") == "2024-02-29"
        assert clean.date("bad") is None
        assert clean.date("loose") is None
        assert clean.date("eu", "%d/%m/%Y") == "09/02/2024"


class TestAccess:
    def test_get_set_all(self) -> None:
        clean = Sanitizer({"a": "1", "none": None})
        clean.set("b", 2)
        assert clean.get("a") == "1"
        assert clean.get("none", "x") == "x"
        assert clean.get("missing") is None
        assert clean.all() == {"a": "1", "none": None, "b": 2}
        assert "b" in clean

    def test_copies_input(self) -> None:
        data = {"a": "1"}
        Sanitizer(data).set("a", "2")
        assert data == {"a": "1"}
