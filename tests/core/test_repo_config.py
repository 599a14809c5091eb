"""Tests for repository configuration resolution."""

from pathlib import Path

import pytest

from stacked.core.config import (
    load_pyproject_config,
    resolve_repo_config,
    write_base_branch_to_pyproject,
)
from stacked.core.errors import ConfigError
from stacked.core.git.fake import FakeGit
from stacked.core.store.sqlite import SqlRelationshipStore


def test_pyproject_section_wins(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.stack]\nbase_branch = "develop"\nremote = "upstream"\n', encoding="utf-8"
    )
    store = SqlRelationshipStore.in_memory()
    store.set_base_branch("main")

    config = resolve_repo_config(FakeGit(), store, tmp_path)

    assert config.base_branch == "develop"
    assert config.remote == "upstream"


def test_store_meta_is_used_without_pyproject(tmp_path: Path) -> None:
    store = SqlRelationshipStore.in_memory()
    store.set_base_branch("trunk")
    git = FakeGit(trunk_branch="main", branch_remotes={"trunk": "fork"})

    config = resolve_repo_config(git, store, tmp_path)

    assert config.base_branch == "trunk"
    assert config.remote == "fork"


def test_detected_trunk_is_recorded(tmp_path: Path) -> None:
    store = SqlRelationshipStore.in_memory()

    config = resolve_repo_config(FakeGit(trunk_branch="master"), store, tmp_path)

    assert config.base_branch == "master"
    assert config.remote == "origin"
    assert store.get_base_branch() == "master"


def test_pyproject_without_stack_section(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n', encoding="utf-8")

    config = load_pyproject_config(tmp_path)

    assert config.base_branch is None
    assert config.remote is None


def test_write_base_branch_keeps_existing_content(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        '# project file\n[project]\nname = "x"\n\n[tool.stack]\nremote = "upstream"\n',
        encoding="utf-8",
    )

    write_base_branch_to_pyproject(tmp_path, "develop")

    text = pyproject.read_text(encoding="utf-8")
    assert text.startswith("# project file\n")
    assert 'name = "x"' in text
    config = load_pyproject_config(tmp_path)
    assert config.base_branch == "develop"
    assert config.remote == "upstream"


def test_write_base_branch_creates_file(tmp_path: Path) -> None:
    write_base_branch_to_pyproject(tmp_path, "main")

    assert load_pyproject_config(tmp_path).base_branch == "main"


def test_malformed_pyproject_names_the_file(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("[tool.stack\nbase_branch = \n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid TOML in .*pyproject.toml"):
        load_pyproject_config(tmp_path)

    with pytest.raises(ConfigError, match="Invalid TOML in .*pyproject.toml"):
        write_base_branch_to_pyproject(tmp_path, "develop")

    assert pyproject.read_text(encoding="utf-8") == "[tool.stack\nbase_branch = \n"
