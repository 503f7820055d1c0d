"""
Tests for identifier helpers.
"""

from csbindgen.naming import ensure_not_keyword, mangle, sanitize, strip_member_prefix


class TestSanitize:
    """Test identifier cleanup."""

    def test_invalid_characters(self):
        assert sanitize("Urho3D::Node") == "Urho3D_Node"
        assert sanitize("3D") == "_3D"

    def test_keywords(self):
        assert ensure_not_keyword("object") == "object_"
        assert ensure_not_keyword("Node") == "Node"

    def test_member_prefix(self):
        assert strip_member_prefix("m_brightness") == "Brightness"
        assert strip_member_prefix("range_") == "Range"


class TestMangle:
    """Test C symbol names for qualified C++ names."""

    def test_scopes(self):
        assert mangle("Urho3D::Node") == "Urho3D_Node"

    def test_underscores_stay_distinct(self):
        assert mangle("A::B_C") == "A_B_1C"
        assert mangle("A_B::C") == "A_1B_C"
        assert mangle("A::B_C") != mangle("A_B::C")

    def test_other_characters(self):
        assert mangle("operator==") == "operator_0_0"
