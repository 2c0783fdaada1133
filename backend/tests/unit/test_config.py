"""Tests for settings and repository options."""

import pytest

from mongorepo.config import RepositoryOptions, Settings
from mongorepo.exceptions import InvalidArgumentError, InvalidPointerError
from mongorepo.pointers import Pointer


def test_defaults() -> None:
    options = RepositoryOptions(collection="widgets")
    assert options.id == "_id"
    assert options.descriptive_name == "Domain model"
    assert options.timestamp_on_create == ()
    assert options.timestamp_on_update == ()


def test_pointer_expressions_are_resolved_once() -> None:
    options = RepositoryOptions.from_options(
        {
            "collection": "widgets",
            "timestamp_on_create": ["#/dateCreatedUtc", "#/dateUpdatedUtc"],
            "timestamp_on_update": [Pointer.create("dateUpdatedUtc")],
        }
    )
    assert [p.dotted for p in options.timestamp_on_create] == ["dateCreatedUtc", "dateUpdatedUtc"]
    assert options.timestamp_on_update == (Pointer.create("#/dateUpdatedUtc"),)


def test_identity_accessor_callable() -> None:
    def accessor(model):
        return model["key"]

    options = RepositoryOptions(collection="widgets", id=accessor)
    assert options.id is accessor


@pytest.mark.parametrize(
    "options",
    [
        {},
        {"collection": ""},
        {"collection": 5},
        {"collection": "widgets", "descriptive_name": "  "},
        {"collection": "widgets", "id": ""},
        {"collection": "widgets", "unknown": True},
    ],
)
def test_invalid_options(options: dict) -> None:
    with pytest.raises(InvalidArgumentError):
        RepositoryOptions.from_options(options)


def test_invalid_pointer_surfaces_as_pointer_error() -> None:
    with pytest.raises(InvalidPointerError):
        RepositoryOptions.from_options({"collection": "widgets", "timestamp_on_create": ["#nope"]})


def test_non_mapping_options() -> None:
    with pytest.raises(InvalidArgumentError):
        RepositoryOptions.from_options("widgets")


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("MONGODB_URL", "mongodb://db.internal:27017")
    monkeypatch.setenv("MONGODB_DATABASE", "inventory")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)
    assert settings.mongodb_url == "mongodb://db.internal:27017"
    assert settings.mongodb_database == "inventory"
    assert settings.log_level == "DEBUG"


def test_yaml_repositories(tmp_path) -> None:
    config_path = tmp_path / "repositories.yaml"
    config_path.write_text(
        """
repositories:
  widgets:
    collection: widgets
    descriptive_name: Widget
    timestamp_on_create: ["#/created", "#/updated"]
    timestamp_on_update: ["#/updated"]
  gadgets:
    collection: gadgets
    id: sku
"""
    )
    settings = Settings(_env_file=None, config_path=config_path)
    settings.load_yaml_config()

    widgets = settings.repository_options("widgets")
    assert widgets.descriptive_name == "Widget"
    assert [p.dotted for p in widgets.timestamp_on_update] == ["updated"]
    assert settings.repository_options("gadgets").id == "sku"

    with pytest.raises(InvalidArgumentError):
        settings.repository_options("missing")


def test_missing_yaml_file_keeps_defaults(tmp_path) -> None:
    settings = Settings(_env_file=None, config_path=tmp_path / "absent.yaml")
    settings.load_yaml_config()
    assert settings.repositories == {}
