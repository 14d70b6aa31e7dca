import pytest

from engine.errors import ConfigError, ValidationError
from handlers.onboarding import parse_choice
from handlers.profile import parse_filters
from runtime import build_store
from store.sqlite_store import SqliteStore
from texts_ui import t


@pytest.mark.parametrize("text,expected", [
    ("21 30", (21, 30, None, False)),
    ("21 30 Mumbai", (21, 30, "Mumbai", False)),
    ("21 30 New York verified", (21, 30, "New York", True)),
    ("18 99 any verified", (18, 99, None, True)),
    ("25 25 -", (25, 25, None, False)),
])
def test_parse_filters(text, expected):
    assert parse_filters(text) == expected


@pytest.mark.parametrize("text", ["", "21", "a b", "30 21", "10 30", "18 120"])
def test_parse_filters_rejects(text):
    with pytest.raises(ValidationError):
        parse_filters(text)


def test_parse_choice_understands_both_languages():
    assert parse_choice(t("en", "gender_male")) == "male"
    assert parse_choice(t("ru", "gender_female")) == "female"
    assert parse_choice(t("en", "pref_any")) is None
    assert parse_choice(t("ru", "pref_any"), allow_any=True) == "any"
    assert parse_choice("dunno", allow_any=True) is None


def test_build_store_selects_exactly_one_backend():
    assert isinstance(build_store("sqlite"), SqliteStore)
    with pytest.raises(ConfigError):
        build_store("mysql")
