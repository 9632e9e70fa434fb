"""Local clone cache for git-sourced applications."""
import hashlib
import io
import re
import shutil
import subprocess
import tarfile
from pathlib import Path
from typing import Optional

from .errors import GitCheckoutError, GitCloneError
from .logger import get_logger
from .progress import Progress, ProgressStream

logger = get_logger(__name__)


def sanitize_repo_url(url: str) -> str:
    """Filesystem-safe directory name for a repository URL, unique per URL."""
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", url).strip("_")
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:12]
    return f"{slug}-{digest}"


class GitRepoCache:
    """Clones repositories once under `repos_dir` and fetches on reuse."""

    def __init__(self, repos_dir: Path):
        self.repos_dir = Path(repos_dir)

    def repo_path(self, url: str) -> Path:
        return self.repos_dir / sanitize_repo_url(url)

    def sync(self, url: str, ref: Optional[str] = None) -> ProgressStream[str]:
        """
        Clone or fetch `url`, then detach HEAD at `ref`.

        Yields git's progress lines and returns the checked-out commit hash.
        """
        path = self.repo_path(url)

        if (path / ".git").exists() and self._origin_url(path) != url:
            logger.warning(f"Cached clone at {path} does not track {url}, recloning")
            shutil.rmtree(path)

        if (path / ".git").exists():
            yield Progress("git", f"Fetching updates for {url}")
            yield from self._stream(["git", "-C", str(path), "fetch", "--tags", "--progress", "origin"], url)
        else:
            self.repos_dir.mkdir(parents=True, exist_ok=True)
            yield Progress("git", f"Cloning {url}")
            yield from self._stream(["git", "clone", "--progress", url, str(path)], url)

        if ref:
            commit = self.resolve_ref(path, ref)
            self._checkout(path, ref, commit)
            yield Progress("git", f"Checked out {ref} at {commit[:12]}")
        else:
            commit = self._rev_parse(path, "HEAD")
            if commit is None:
                raise GitCheckoutError("HEAD", "repository has no commits")

        return commit

    def resolve_ref(self, path: Path, ref: str) -> str:
        """Resolve `ref` to a commit, falling back to the remote-tracking branch."""
        for candidate in (ref, f"origin/{ref}"):
            commit = self._rev_parse(path, candidate)
            if commit:
                return commit
        raise GitCheckoutError(ref, "not found locally or as origin/" + ref)

    def archive(self, path: Path) -> io.BytesIO:
        """Tar the working tree (without .git) as an in-memory build context."""
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            for entry in sorted(Path(path).iterdir()):
                if entry.name == ".git":
                    continue
                tar.add(str(entry), arcname=entry.name, filter=_strip_git_dirs)
        buf.seek(0)
        return buf

    def _rev_parse(self, path: Path, rev: str) -> Optional[str]:
        result = subprocess.run(
            ["git", "-C", str(path), "rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def _origin_url(self, path: Path) -> Optional[str]:
        result = subprocess.run(
            ["git", "-C", str(path), "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def _checkout(self, path: Path, ref: str, commit: str):
        result = subprocess.run(
            ["git", "-C", str(path), "checkout", "--force", "--detach", commit],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            logger.error(f"git checkout of {commit} failed in {path}")
            raise GitCheckoutError(ref, result.stderr.strip() or f"exit code {result.returncode}")

    def _stream(self, cmd: list[str], url: str) -> ProgressStream[None]:
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
        except OSError as e:
            raise GitCloneError(url, str(e)) from e

        tail = []
        with process:
            for line in process.stdout:
                line = line.strip()
                if not line:
                    continue
                tail = (tail + [line])[-5:]
                yield Progress("git", line)
            returncode = process.wait()

        if returncode != 0:
            raise GitCloneError(url, "; ".join(tail) or f"exit code {returncode}")


def _strip_git_dirs(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
    if ".git" in Path(info.name).parts:
        return None
    return info
