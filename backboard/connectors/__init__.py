"""Connector interfaces and implementations."""

from .github_gh import GithubGhClient, GithubGhReviewSource, GithubPull, PullPage

__all__ = ["GithubGhClient", "GithubGhReviewSource", "GithubPull", "PullPage"]
