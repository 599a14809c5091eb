"""Git operations subpackage.

This subpackage provides abstractions over git operations with support for
testing via fakes.
"""

from stacked.core.git.abc import Git, RewriteResult, RewriteStatus
from stacked.core.git.fake import FakeGit
from stacked.core.git.real import RealGit
