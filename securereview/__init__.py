"""
SecureReview - AI Security Review for Pull Requests

A GitHub Action script that sends the changed hunks of a pull request to a
chat completion endpoint for a security review and keeps a single comment
on the PR up to date with the result.
"""

__version__ = "1.0.0"

# Import main components for easier access
from securereview.budget import ReviewBudget, TimeBudgetExceeded
from securereview.config import ConfigurationError, MissingPullRequestContext, ReviewConfig
from securereview.github_action_audit import (
    ChatCompletionClient,
    GitHubActionClient,
    QuotaExceeded,
    UpstreamError,
    main
)

__all__ = [
    "ChatCompletionClient",
    "ConfigurationError",
    "GitHubActionClient",
    "MissingPullRequestContext",
    "QuotaExceeded",
    "ReviewBudget",
    "ReviewConfig",
    "TimeBudgetExceeded",
    "UpstreamError",
    "main"
]
