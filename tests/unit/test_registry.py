from __future__ import annotations

import pytest

from export_validator.constants import STRUCTURED_EXTENSIONS
from export_validator.registry import GENERIC_EXPORT_TYPE, ExportProfile, ExportProfileRegistry


def test_default_registry_lists_builtin_types() -> None:
    registry = ExportProfileRegistry.default()

    assert registry.list() == ["generic", "google-takeout", "telegram", "twitter-archive"]
    assert len(registry) == 4
    assert "telegram" in registry
    assert registry.get("telegram") is not None
    assert registry.get("slack") is None


def test_builtin_output_names() -> None:
    registry = ExportProfileRegistry.default()

    outputs = {profile.type: profile.output_name for profile in registry.profiles()}

    assert outputs == {
        "generic": "generic-export",
        "google-takeout": "google-takeout",
        "telegram": "telegram-export",
        "twitter-archive": "twitter-archive",
    }


def test_twitter_archive_also_decodes_js() -> None:
    registry = ExportProfileRegistry.default()

    twitter = registry.get_or_default("twitter-archive")

    assert ".js" in twitter.extensions
    assert ".js" not in registry.get_or_default("telegram").extensions


def test_unknown_type_falls_back_to_generic() -> None:
    registry = ExportProfileRegistry.default()

    assert registry.get_or_default("slack").type == GENERIC_EXPORT_TYPE
    assert registry.get_or_default(None).type == GENERIC_EXPORT_TYPE


def test_fallback_requires_a_generic_profile() -> None:
    registry = ExportProfileRegistry(
        [ExportProfile(type="only", name="Only", description="", output_name="only")]
    )
    with pytest.raises(LookupError):
        registry.get_or_default("other")


def test_config_entries_override_and_extend_builtins() -> None:
    registry = ExportProfileRegistry.from_config(
        {
            "telegram": {"output_name": "tg", "extensions": ["json", ".HTML"]},
            "slack": {"name": "Slack", "description": "Workspace export"},
        }
    )

    telegram = registry.get_or_default("telegram")
    assert telegram.output_name == "tg"
    assert telegram.name == "Telegram Export"
    assert telegram.extensions == frozenset({".json", ".html"})

    slack = registry.get_or_default("slack")
    assert slack.output_name == "slack"
    assert slack.name == "Slack"
    assert slack.extensions == STRUCTURED_EXTENSIONS
    assert registry.list() == [
        "generic",
        "google-takeout",
        "slack",
        "telegram",
        "twitter-archive",
    ]


def test_profile_to_dict_is_sorted() -> None:
    profile = ExportProfile(
        type="x", name="X", description="d", output_name="x-out", extensions=frozenset({"csv"})
    )
    assert profile.to_dict() == {
        "type": "x",
        "name": "X",
        "description": "d",
        "output_name": "x-out",
        "extensions": [".csv"],
    }


@pytest.mark.parametrize(
    "kwargs",
    [
        {"type": "Bad"},
        {"name": " "},
        {"output_name": "../escape"},
        {"extensions": frozenset()},
        {"extensions": frozenset({" "})},
    ],
)
def test_invalid_profiles_are_rejected(kwargs: dict[str, object]) -> None:
    values: dict[str, object] = {
        "type": "ok",
        "name": "Ok",
        "description": "",
        "output_name": "ok",
    }
    values.update(kwargs)
    with pytest.raises(ValueError):
        ExportProfile(**values)  # type: ignore[arg-type]


def test_module_reloads_with_builtin_profiles() -> None:
    import importlib

    from export_validator import registry as registry_module

    reloaded = importlib.reload(registry_module)

    assert reloaded.ExportProfileRegistry.default().list() == [
        "generic",
        "google-takeout",
        "telegram",
        "twitter-archive",
    ]
