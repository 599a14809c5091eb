"""Code-hosting provider subpackage (GitHub via the gh CLI)."""

from stacked.core.github.abc import GitHub
from stacked.core.github.fake import FakeGitHub
from stacked.core.github.real import RealGitHub
from stacked.core.github.types import MergeStatus, PullRequestInfo
