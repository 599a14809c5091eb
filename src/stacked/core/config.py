"""Repository-level configuration.

The base branch and remote come from, in order:
1. [tool.stack] in the repository's pyproject.toml
2. repo_meta in the stack database
3. trunk detection through git, persisted to repo_meta on first use
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomlkit
import tomlkit.exceptions

from stacked.core.errors import ConfigError
from stacked.core.git.abc import Git
from stacked.core.store.abc import RelationshipStore

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"


@dataclass(frozen=True)
class PyprojectStackConfig:
    """Values found under [tool.stack]; None when unset."""

    base_branch: str | None
    remote: str | None


@dataclass(frozen=True)
class RepoConfig:
    base_branch: str
    remote: str


def load_pyproject_config(repo_root: Path) -> PyprojectStackConfig:
    """Read [tool.stack] from pyproject.toml if present; otherwise return empty values.

    Example:
      [tool.stack]
      base_branch = "main"
      remote = "upstream"
    """
    pyproject_path = repo_root / "pyproject.toml"
    if not pyproject_path.exists():
        return PyprojectStackConfig(base_branch=None, remote=None)

    try:
        data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {pyproject_path}: {e}") from e
    section = data.get("tool", {}).get("stack", {})
    base_branch = section.get("base_branch")
    remote = section.get("remote")
    return PyprojectStackConfig(
        base_branch=str(base_branch) if base_branch is not None else None,
        remote=str(remote) if remote is not None else None,
    )


def resolve_repo_config(git: Git, store: RelationshipStore, repo_root: Path) -> RepoConfig:
    """Resolve the base branch and remote for repo_root."""
    pyproject = load_pyproject_config(repo_root)

    base_branch = pyproject.base_branch
    if base_branch is None:
        base_branch = store.get_base_branch()
    if base_branch is None:
        base_branch = git.get_trunk_branch(repo_root)
        logger.debug("Detected trunk branch %s; recording it as the base branch", base_branch)
        store.set_base_branch(base_branch)

    remote = pyproject.remote
    if remote is None:
        remote = git.get_remote_for_branch(repo_root, base_branch) or DEFAULT_REMOTE

    return RepoConfig(base_branch=base_branch, remote=remote)


def write_base_branch_to_pyproject(repo_root: Path, base_branch: str) -> None:
    """Write the base branch to [tool.stack] in pyproject.toml.

    Creates the file or table when missing. Existing formatting and comments
    are preserved by tomlkit.
    """
    pyproject_path = repo_root / "pyproject.toml"

    if pyproject_path.exists():
        with pyproject_path.open("r", encoding="utf-8") as f:
            try:
                doc = tomlkit.load(f)
            except tomlkit.exceptions.ParseError as e:
                raise ConfigError(f"Invalid TOML in {pyproject_path}: {e}") from e
    else:
        doc = tomlkit.document()

    if "tool" not in doc:
        doc["tool"] = tomlkit.table()  # type: ignore[index]

    if "stack" not in doc["tool"]:  # type: ignore[operator]
        doc["tool"]["stack"] = tomlkit.table()  # type: ignore[index]

    doc["tool"]["stack"]["base_branch"] = base_branch  # type: ignore[index]

    with pyproject_path.open("w", encoding="utf-8") as f:
        tomlkit.dump(doc, f)
