"""Tests for hyper.routing.pattern: template compilation and matching."""

from hyper.routing.pattern import compile_pattern, match


class TestLiteral:
    def test_exact_match(self) -> None:
        assert match("/users", "/users") == {}

    def test_anchored_both_ends(self) -> None:
        assert match("/users", "/users/") is None
        assert match("/users", "/api/users") is None

    def test_regex_characters_are_literal(self) -> None:
        assert match("/a.b", "/a.b") == {}
        assert match("/a.b", "/axb") is None


class TestPlaceholders:
    def test_named_segment(self) -> None:
        assert match("/users/{id}", "/users/42") == {"id": "42"}

    def test_segment_charset(self) -> None:
        assert match("/posts/{slug}", "/posts/hello-world_2") == {"slug": "hello-world_2"}
        assert match("/posts/{slug}", "/posts/a.b") is None

    def test_segment_is_required(self) -> None:
        assert match("/users/{id}", "/users/") is None

    def test_several_names(self) -> None:
        params = match("/users/{user}/posts/{post}", "/users/7/posts/9")
        assert params == {"user": "7", "post": "9"}


class TestOptional:
    def test_optional_present(self) -> None:
        assert match("/posts/{page?}", "/posts/3") == {"page": "3"}

    def test_optional_absent_yields_empty_string(self) -> None:
        assert match("/posts/{page?}", "/posts") == {"page": ""}

    def test_optional_flags(self) -> None:
        compiled = compile_pattern("/a/{x}/{y?}")
        assert compiled.names == ("x", "y")
        assert compiled.optional == (False, True)


class TestWildcard:
    def test_captures_rest_of_path(self) -> None:
        assert match("/assets/*", "/assets/css/site.css") == {0: "css/site.css"}

    def test_matches_empty_rest(self) -> None:
        assert match("/assets/*", "/assets/") == {0: ""}

    def test_mixed_names_and_wildcard_bind_by_position(self) -> None:
        compiled = compile_pattern("/files/{bucket}/*")
        assert compiled.positional
        assert match(compiled, "/files/photos/2024/cat.jpg") == {0: "photos", 1: "2024/cat.jpg"}


class TestCompileCache:
    def test_same_template_compiles_once(self) -> None:
        assert compile_pattern("/cached/{id}") is compile_pattern("/cached/{id}")

    def test_regex_is_anchored(self) -> None:
        compiled = compile_pattern("/x/{id}")
        assert compiled.regex.pattern.startswith("^")
        assert compiled.regex.pattern.endswith("$")
