from .github import Fork, GitHubClient, HostError, PullRequest, SourceHost

__all__ = ["Fork", "GitHubClient", "HostError", "PullRequest", "SourceHost"]
