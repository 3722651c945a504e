from .git import Author, Commit, Git, GitError

__all__ = ["Author", "Commit", "Git", "GitError"]
