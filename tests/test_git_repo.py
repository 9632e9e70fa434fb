"""Tests for the git clone cache against real local repositories."""
import shutil
import subprocess
import tarfile

import pytest

from vuln_pkg.errors import GitCheckoutError, GitCloneError
from vuln_pkg.git_repo import GitRepoCache, sanitize_repo_url
from vuln_pkg.progress import drain

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(*args, cwd):
    result = subprocess.run(
        ["git", "-c", "user.email=test@example.com", "-c", "user.name=Test User", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def commit_file(repo, name, content, message):
    (repo / name).parent.mkdir(parents=True, exist_ok=True)
    (repo / name).write_text(content)
    git("add", name, cwd=repo)
    git("commit", "-m", message, cwd=repo)
    return git("rev-parse", "HEAD", cwd=repo)


@pytest.fixture
def origin(tmp_path):
    repo = tmp_path / "origin"
    repo.mkdir()
    git("init", cwd=repo)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=repo)
    commit_file(repo, "Dockerfile", "FROM alpine\n", "initial")
    commit_file(repo, "docker/Dockerfile", "FROM busybox\n", "nested dockerfile")
    return repo


@pytest.fixture
def cache(tmp_path):
    return GitRepoCache(tmp_path / "repos")


def sync(cache, url, ref=None):
    return drain(cache.sync(url, ref), lambda event: None)


def test_sanitize_repo_url():
    name = sanitize_repo_url("https://github.com/user/vuln-app.git")

    assert name.startswith("https_github_com_user_vuln-app_git-")
    assert name == sanitize_repo_url("https://github.com/user/vuln-app.git")


def test_similar_urls_get_separate_clones(cache):
    dotted = cache.repo_path("https://github.com/org/my.app")
    underscored = cache.repo_path("https://github.com/org/my_app")

    assert dotted != underscored


def test_clone_without_ref_records_head(cache, origin):
    head = git("rev-parse", "HEAD", cwd=origin)

    commit = sync(cache, str(origin))

    assert commit == head
    assert (cache.repo_path(str(origin)) / "Dockerfile").exists()


def test_ref_falls_back_to_remote_branch(cache, origin):
    git("checkout", "-b", "feature", cwd=origin)
    feature = commit_file(origin, "feature.txt", "x", "feature work")
    git("checkout", "main", cwd=origin)

    commit = sync(cache, str(origin), "feature")

    clone = cache.repo_path(str(origin))
    assert commit == feature
    assert git("rev-parse", "HEAD", cwd=clone) == feature
    assert subprocess.run(["git", "symbolic-ref", "-q", "HEAD"], cwd=clone).returncode != 0


def test_second_sync_fetches_new_refs(cache, origin):
    sync(cache, str(origin))
    git("checkout", "-b", "later", cwd=origin)
    later = commit_file(origin, "later.txt", "y", "later work")

    assert sync(cache, str(origin), "later") == later


def test_unknown_ref(cache, origin):
    with pytest.raises(GitCheckoutError):
        sync(cache, str(origin), "does-not-exist")


def test_clone_failure(cache, tmp_path):
    with pytest.raises(GitCloneError):
        sync(cache, str(tmp_path / "nowhere"))


def test_archive_excludes_git_dir(cache, origin):
    sync(cache, str(origin))

    buf = cache.archive(cache.repo_path(str(origin)))

    with tarfile.open(fileobj=buf) as tar:
        names = tar.getnames()
    assert "Dockerfile" in names
    assert "docker/Dockerfile" in names
    assert not any(name == ".git" or name.startswith(".git/") for name in names)


def test_clone_tracking_another_remote_is_replaced(cache, origin, tmp_path):
    other = tmp_path / "other"
    other.mkdir()
    git("init", cwd=other)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=other)
    other_head = commit_file(other, "Dockerfile", "FROM debian\n", "other repo")
    # a clone of `other` squatting where `origin` belongs
    git("clone", str(other), str(cache.repo_path(str(origin))), cwd=tmp_path)

    commit = sync(cache, str(origin))

    clone = cache.repo_path(str(origin))
    assert commit == git("rev-parse", "HEAD", cwd=origin)
    assert commit != other_head
    assert git("remote", "get-url", "origin", cwd=clone) == str(origin)
