"""Image acquisition: pull, build from Dockerfile, build from git."""
import io
import posixpath
import tarfile
import time
from typing import BinaryIO, Optional

import docker
from docker.errors import APIError, ImageNotFound

from .errors import ContextFetchError, DaemonError, DockerfileFetchError, ImageBuildError
from .git_repo import GitRepoCache
from .logger import get_logger
from .models import BaseApp, DockerfileApp, GitApp, PrebuiltApp
from .progress import Progress, ProgressStream
from .remote import fetch_bytes, fetch_text

logger = get_logger(__name__)

DOCKERFILE = "Dockerfile"
DOCKERFILE_MODE = 0o644


def dockerfile_context(dockerfile: str) -> io.BytesIO:
    """Build context holding only the Dockerfile."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        _add_dockerfile(tar, dockerfile)
    buf.seek(0)
    return buf


def merge_context(context_archive: bytes, dockerfile: str) -> io.BytesIO:
    """
    Re-pack a remote build context with `dockerfile` injected at its root.

    Any Dockerfile already in the archive is dropped so the fetched one
    always wins. Compressed archives are accepted.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=io.BytesIO(context_archive), mode="r:*") as src, tarfile.open(
        fileobj=buf, mode="w"
    ) as dst:
        for member in src:
            if posixpath.normpath(member.name) == DOCKERFILE:
                continue
            if member.isfile():
                dst.addfile(member, src.extractfile(member))
            else:
                dst.addfile(member)
        _add_dockerfile(dst, dockerfile)
    buf.seek(0)
    return buf


def _add_dockerfile(tar: tarfile.TarFile, dockerfile: str):
    data = dockerfile.encode("utf-8")
    info = tarfile.TarInfo(name=DOCKERFILE)
    info.size = len(data)
    info.mode = DOCKERFILE_MODE
    info.mtime = int(time.time())
    tar.addfile(info, io.BytesIO(data))


class ImageManager:
    def __init__(self, client: docker.DockerClient, repo_cache: GitRepoCache, namespace: str = "vuln-pkg"):
        self.client = client
        self.repo_cache = repo_cache
        self.namespace = namespace

    def exists(self, image: str) -> bool:
        try:
            self.client.images.get(image)
            return True
        except ImageNotFound:
            return False
        except APIError as e:
            if e.status_code == 404:
                return False
            raise DaemonError(f"inspecting image {image}", e) from e

    def pull(self, image: str) -> ProgressStream[None]:
        yield Progress("pull", f"Pulling image: {image}")
        try:
            for frame in self.client.api.pull(image, stream=True, decode=True):
                if frame.get("error"):
                    raise DaemonError(f"pulling image {image}", RuntimeError(frame["error"]))
                status = frame.get("status")
                if status:
                    layer = frame.get("id")
                    yield Progress("pull", f"{layer}: {status}" if layer else status)
        except APIError as e:
            raise DaemonError(f"pulling image {image}", e) from e

    def build(self, context: BinaryIO, tag: str, dockerfile: Optional[str] = None) -> ProgressStream[None]:
        """
        Stream a build of `context` tagged `tag`.

        An error frame anywhere in the stream aborts with ImageBuildError;
        the build only counts as done once the stream ends cleanly.
        """
        yield Progress("build", f"Building image: {tag}")
        try:
            frames = self.client.api.build(
                fileobj=context,
                custom_context=True,
                tag=tag,
                dockerfile=dockerfile,
                rm=True,
                decode=True,
            )
            for frame in frames:
                if "error" in frame or "errorDetail" in frame:
                    message = frame.get("error") or frame.get("errorDetail", {}).get("message", "unknown error")
                    logger.debug(f"Build of {tag} failed: {message}")
                    raise ImageBuildError(tag, str(message).strip())
                text = frame.get("stream") or frame.get("status")
                if text and text.strip():
                    yield Progress("build", text.strip())
        except APIError as e:
            raise DaemonError(f"building image {tag}", e) from e

    def build_from_dockerfile(self, dockerfile: str, tag: str) -> ProgressStream[None]:
        yield from self.build(dockerfile_context(dockerfile), tag)

    def build_from_dockerfile_url(self, url: str, context_url: Optional[str], tag: str) -> ProgressStream[None]:
        yield Progress("build", f"Fetching Dockerfile from {url}")
        dockerfile = fetch_text(url, DockerfileFetchError)

        if not context_url:
            yield from self.build_from_dockerfile(dockerfile, tag)
            return

        yield Progress("build", f"Fetching build context from {context_url}")
        archive = fetch_bytes(context_url, ContextFetchError)
        try:
            context = merge_context(archive, dockerfile)
        except tarfile.TarError as e:
            raise ContextFetchError(context_url, f"not a tar archive ({e})") from e
        yield from self.build(context, tag)

    def build_from_git(
        self, repo: str, ref: Optional[str], dockerfile_path: Optional[str], tag: str
    ) -> ProgressStream[str]:
        """Sync the cached clone, build its tree and return the commit hash used."""
        commit = yield from self.repo_cache.sync(repo, ref)
        context = self.repo_cache.archive(self.repo_cache.repo_path(repo))
        dockerfile = posixpath.normpath(dockerfile_path) if dockerfile_path else None
        yield from self.build(context, tag, dockerfile=dockerfile)
        return commit

    def acquire(self, app: BaseApp) -> ProgressStream[Optional[str]]:
        """
        Make the app's effective image available locally.

        Prebuilt images are pulled only when missing; built images are
        (re)built every time. Returns the git commit for git apps.
        """
        tag = app.effective_image(self.namespace)

        if isinstance(app, PrebuiltApp):
            if self.exists(tag):
                yield Progress("pull", f"Image {tag} already exists")
                return None
            yield from self.pull(tag)
            return None

        if isinstance(app, DockerfileApp):
            if app.dockerfile is not None:
                yield from self.build_from_dockerfile(app.dockerfile, tag)
            else:
                yield from self.build_from_dockerfile_url(app.dockerfile_url, app.context_url, tag)
            return None

        if isinstance(app, GitApp):
            return (yield from self.build_from_git(app.repo, app.ref, app.dockerfile_path, tag))

        raise TypeError(f"Unsupported application kind: {type(app).__name__}")

