"""Git implementation of the source-control client."""

from __future__ import annotations

from pathlib import Path

from romprep.io.runner import RunResult, run_argv
from romprep.vcs.client import CloneResult, PickResult


# Phrases git prints when a pick (or its continuation) would record no change.
_EMPTY_MARKERS = (
    "the previous cherry-pick is now empty",
    "nothing to commit",
    "nothing added to commit",
)

_CHECKOUT_CHUNK = 200

# Index stage holding each side of an unmerged path.
_SIDE_STAGES = {"ours": "2", "theirs": "3"}


def _git(repo: Path, *args: str) -> RunResult:
    return run_argv(["git", "-C", str(repo), *args], check=False)


def _mentions_empty(result: RunResult) -> bool:
    text = (result.stdout + "\n" + result.stderr).lower()
    return any(marker in text for marker in _EMPTY_MARKERS)


class GitClient:
    """Runs git against one working tree via ``git -C <path>``."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _run(self, *args: str) -> RunResult:
        return _git(self.path, *args)

    def has_uncommitted_changes(self) -> bool:
        status = self._run("status", "--porcelain")
        return status.ok and bool(status.stdout.strip())

    def stage_all(self) -> bool:
        return self._run("add", "-A").ok

    def stage_file(self, rel_path: str) -> bool:
        return self._run("add", "--", rel_path).ok

    def commit(self, message: str, allow_empty: bool = False) -> bool:
        args = ["commit", "--no-verify", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        return self._run(*args).ok

    def remotes(self) -> list[str]:
        listing = self._run("remote")
        if not listing.ok:
            return []
        return [line.strip() for line in listing.stdout.splitlines() if line.strip()]

    def add_remote(self, name: str, url: str) -> bool:
        return self._run("remote", "add", name, url).ok

    def fetch(self, remote: str) -> tuple[bool, str]:
        result = self._run("fetch", remote)
        return result.ok, result.output

    def _pick_in_progress(self) -> bool:
        head = self._run("rev-parse", "-q", "--verify", "CHERRY_PICK_HEAD")
        return head.ok

    def _nothing_staged(self) -> bool:
        return self._run("diff", "--cached", "--quiet").ok

    def _pick_result(self, result: RunResult) -> PickResult:
        if result.ok:
            return PickResult(success=True, message=result.output)
        conflicts = self.list_conflicted_files()
        if conflicts:
            return PickResult(success=False, conflict_files=conflicts, message=result.output)
        empty = _mentions_empty(result) or (self._pick_in_progress() and self._nothing_staged())
        return PickResult(success=False, empty=empty, message=result.output)

    def cherry_pick(self, commit: str, allow_empty: bool = True) -> PickResult:
        args = ["cherry-pick"]
        if allow_empty:
            args.append("--allow-empty")
        args.append(commit)
        return self._pick_result(self._run(*args))

    def list_conflicted_files(self) -> list[str]:
        listing = self._run("diff", "--name-only", "--diff-filter=U")
        if not listing.ok:
            return []
        return sorted({line.strip() for line in listing.stdout.splitlines() if line.strip()})

    def checkout_side(self, rel_path: str, side: str) -> bool:
        """Take one side of a conflicted path whole.

        When that side deleted the path there is nothing to check out, so the
        path is removed from the index and the working tree instead.
        """
        stage = _SIDE_STAGES[side]
        if self._run("checkout", f"--{side}", "--", rel_path).ok:
            return True
        listing = self._run("ls-files", "-u", "--", rel_path)
        if not listing.ok:
            return False
        stages = {line.split()[2] for line in listing.stdout.splitlines() if line.strip()}
        if not stages or stage in stages:
            return False
        return self._run("rm", "-q", "--", rel_path).ok

    def continue_cherry_pick(self) -> PickResult:
        return self._pick_result(self._run("-c", "core.editor=true", "cherry-pick", "--continue"))

    def skip_cherry_pick(self) -> bool:
        return self._run("cherry-pick", "--skip").ok

    def abort_cherry_pick(self) -> bool:
        return self._run("cherry-pick", "--abort").ok


def _checkout_best_effort(dest: Path) -> list[str]:
    """Check out HEAD; on failure fall back to per-path checkout and return missing paths."""
    if _git(dest, "checkout", "-f", "HEAD").ok:
        return []

    listing = _git(dest, "ls-tree", "-r", "--name-only", "HEAD")
    if not listing.ok:
        return ["<tree listing unavailable>"]
    paths = [line for line in listing.stdout.splitlines() if line]

    missing: list[str] = []
    for start in range(0, len(paths), _CHECKOUT_CHUNK):
        chunk = paths[start : start + _CHECKOUT_CHUNK]
        if _git(dest, "checkout", "HEAD", "--", *chunk).ok:
            continue
        for rel in chunk:
            if not _git(dest, "checkout", "HEAD", "--", rel).ok:
                missing.append(rel)
    return missing


def git_clone(
    url: str,
    dest: Path,
    *,
    ref: str | None = None,
    depth: int | None = None,
    partial: bool = False,
) -> CloneResult:
    """Clone ``url`` into ``dest``.

    ``partial`` clones metadata only (blobless, no checkout) and then checks
    files out best-effort: paths whose blobs cannot be fetched are reported
    in ``missing_paths`` while the clone itself still counts as a success.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    argv = ["git", "clone"]
    if depth is not None:
        argv.extend(["--depth", str(depth)])
    if ref:
        argv.extend(["--branch", ref])
    if partial:
        argv.extend(["--filter=blob:none", "--no-checkout"])
    argv.extend([url, str(dest)])

    result = run_argv(argv, check=False)
    if not result.ok:
        return CloneResult(success=False, message=result.output or f"git clone exited {result.returncode}")
    if not partial:
        return CloneResult(success=True, message=result.output)
    missing = _checkout_best_effort(dest)
    return CloneResult(success=True, message=result.output, missing_paths=missing)
