"""
Unit tests for input sanitization.
"""

import pytest

from docqa.sanitize import sanitize_filename, sanitize_input, strip_html


class TestStripHtml:

    def test_removes_tags(self):
        assert strip_html("<p>Hello <b>world</b></p>") == "Hello world"

    def test_removes_script_tags_keeps_text(self):
        assert strip_html("<script>alert(1)</script>") == "alert(1)"

    def test_plain_text_unchanged(self):
        assert strip_html("5 > 3 and 2 < 4") == "5 > 3 and 2 < 4"


class TestSanitizeInput:

    def test_trims_whitespace(self):
        assert sanitize_input("  What is the policy?  ") == "What is the policy?"

    def test_strips_html(self):
        assert sanitize_input("<i>What</i> is <b>PTO</b>?") == "What is PTO?"

    @pytest.mark.parametrize("value", ["", "   ", "<b></b>", "<br/> \n"])
    def test_empty_after_cleaning(self, value):
        assert sanitize_input(value) is None

    @pytest.mark.parametrize("value", [None, 42, ["question"], {"q": "x"}])
    def test_non_string(self, value):
        assert sanitize_input(value) is None


class TestSanitizeFilename:

    def test_plain_name_unchanged(self):
        assert sanitize_filename("handbook.pdf") == "handbook.pdf"

    def test_path_separators_replaced(self):
        assert "/" not in sanitize_filename("docs/handbook.pdf")
        assert "\\" not in sanitize_filename("C:\\docs\\handbook.pdf")

    def test_traversal_removed(self):
        name = sanitize_filename("../../etc/passwd")

        assert ".." not in name
        assert "/" not in name

    def test_null_bytes_removed(self):
        assert sanitize_filename("notes\0.txt") == "notes.txt"

    def test_surrounding_whitespace_trimmed(self):
        assert sanitize_filename("  notes.md ") == "notes.md"
