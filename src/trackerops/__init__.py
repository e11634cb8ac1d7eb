"""trackerops - GitHub tracker housekeeping.

Normalizes milestone titles to ``M<n>``, keeps labels in line with a
catalog, bulk-assigns issues and seeds a tracker from a roadmap file.

from trackerops import GitHubRestClient, MilestoneNormalizer, NormalizeOptions

with GitHubRestClient(token=token, repo="owner/repo") as client:
    outcome = MilestoneNormalizer(client, NormalizeOptions(apply=False)).run()
print(len(outcome.plan or ()))
"""

from __future__ import annotations

from .config import TrackerConfig, load_config
from .github_rest import GitHubAPIError, GitHubRestClient
from .milestones import MilestoneNormalizer, NormalizeOptions, classify_title, plan_changes
from .models import ApplyResult, ChangePlan, ChangePlanEntry, Classification, MilestoneRecord

# Keep in sync with pyproject.toml
__version__ = "0.3.0"

__all__ = [
    "ApplyResult",
    "ChangePlan",
    "ChangePlanEntry",
    "Classification",
    "GitHubAPIError",
    "GitHubRestClient",
    "MilestoneNormalizer",
    "MilestoneRecord",
    "NormalizeOptions",
    "TrackerConfig",
    "__version__",
    "classify_title",
    "load_config",
    "plan_changes",
]
