"""
Sync Engine - mirrors changed workspace files onto the shadow branch.

One cycle:
1. Ensure the branch exists, creating it from the default branch head.
2. Diff every changed path against the branch's current content.
3. Upload changed files as blobs and commit them in a single tree on top of
   the branch head, then fast-forward the branch.
4. With nothing to upload, apply deletions one file at a time.

Errors propagate to the caller. Nothing is drained here, so a failed cycle
is retried in full by the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from emverify.adapters.workspace import LocalWorkspace
from emverify.core.domain.entities import BlobEntry
from emverify.core.ports.config_provider import SyncConfig
from emverify.core.ports.git_host import ConflictError, GitHostPort, NotFoundError

from .content import content_matches
from .tracker import ChangeTracker


@dataclass
class SyncResult:
    """
    Result of one sync cycle.

    Attributes:
        dry_run: Whether this was a dry-run (no writes made).
        branch: The shadow branch synced to.
        branch_created: Whether this cycle created the branch.
        commit_sha: The commit the branch was advanced to, if any.
        blobs_created: Number of blobs uploaded.
        uploaded: Relative paths included in the commit as new content.
        unchanged: Relative paths skipped because remote content matched.
        deleted: Relative paths removed from the branch.
        already_absent: Deletion candidates the branch did not have.
        skipped: Paths outside the workspace root, ignored.
        deferred_deletions: Absolute paths of deletions postponed to the next
            cycle (only when deletions are not combined with uploads).
        mutations: Number of remote write calls issued.
    """

    dry_run: bool = False
    branch: str = ""
    branch_created: bool = False
    commit_sha: str | None = None
    blobs_created: int = 0

    uploaded: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    already_absent: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    deferred_deletions: list[str] = field(default_factory=list)

    mutations: int = 0

    @property
    def changed(self) -> bool:
        """Whether the branch moved (or would move, for a dry-run)."""
        return bool(self.uploaded or self.deleted)

    def summary(self) -> str:
        """
        Generate a human-readable summary of the sync result.

        Returns:
            Multi-line summary string.
        """
        lines = []

        if self.dry_run:
            lines.append("DRY RUN - No changes made")

        if not self.changed:
            lines.append(f"✓ Branch {self.branch} already up to date")
        elif self.commit_sha:
            lines.append(f"✓ Synced to {self.branch} at {self.commit_sha[:7]}")
        else:
            lines.append(f"✓ Synced to {self.branch}")

        if self.branch_created:
            lines.append(f"  Branch created: {self.branch}")
        lines.append(f"  Files uploaded: {len(self.uploaded)}")
        lines.append(f"  Files unchanged: {len(self.unchanged)}")
        lines.append(f"  Files deleted: {len(self.deleted)}")

        if self.deferred_deletions:
            lines.append(f"  Deletions deferred to next sync: {len(self.deferred_deletions)}")

        if self.skipped:
            lines.append("")
            lines.append("Skipped (outside workspace):")
            for path in self.skipped[:5]:
                lines.append(f"  • {path}")
            if len(self.skipped) > 5:
                lines.append(f"  ... and {len(self.skipped) - 5} more")

        return "\n".join(lines)


class SyncEngine:
    """
    Turns a change set into at most one commit on the shadow branch.

    The branch is only ever fast-forwarded. If it moved between reading its
    head and updating the ref, the update fails with ConflictError and the
    next cycle recomputes against the new head.
    """

    def __init__(
        self,
        host: GitHostPort,
        workspace: LocalWorkspace,
        config: SyncConfig | None = None,
    ):
        self.host = host
        self.workspace = workspace
        self.config = config or SyncConfig()
        self.logger = logging.getLogger("SyncEngine")

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    # -------------------------------------------------------------------------
    # Branch
    # -------------------------------------------------------------------------

    def branch_exists(self, branch: str) -> bool:
        try:
            self.host.get_ref(branch)
        except NotFoundError:
            return False
        return True

    def ensure_branch(self, branch: str) -> bool:
        """
        Create the branch from the default branch head if it is missing.

        Returns:
            True if this call created the branch.
        """
        if self.branch_exists(branch):
            return False

        default_branch = self.host.get_default_branch()
        head = self.host.get_ref(default_branch)
        try:
            self.host.create_ref(branch, head)
        except ConflictError:
            # Another client created it between our lookup and create
            self.logger.debug(f"Branch {branch} was created concurrently")
            return False

        self.logger.info(f"Created branch {branch} from {default_branch}")
        return True

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    def _targets(self, paths: Iterable[str | Path], result: SyncResult) -> dict[str, str]:
        """Map relative path -> absolute path, deduplicated."""
        targets: dict[str, str] = {}
        for path in paths:
            relative = self.workspace.relative_path(path)
            if relative is None:
                self.logger.warning(f"Skipping {path}: outside workspace {self.workspace.root}")
                result.skipped.append(str(path))
                continue
            targets.setdefault(relative, str(self.workspace.resolve(path)))
        return targets

    def sync(self, paths: Iterable[str | Path], branch: str | None = None) -> SyncResult:
        """
        Sync changed paths to the shadow branch.

        Args:
            paths: Changed files (absolute, or relative to the workspace root)
            branch: Branch to sync to (default: configured branch)

        Returns:
            SyncResult describing what was written.

        Raises:
            GitHostError: On any remote failure. Nothing is retried here.
        """
        branch = branch or self.config.branch
        result = SyncResult(dry_run=self.dry_run, branch=branch)

        targets = self._targets(paths, result)
        if not targets:
            return result

        # Step 1: make sure there is something to diff against
        read_ref = branch
        if self.dry_run:
            if not self.branch_exists(branch):
                read_ref = self.host.get_default_branch()
                self.logger.info(f"[DRY-RUN] Would create branch {branch} from {read_ref}")
        else:
            result.branch_created = self.ensure_branch(branch)
            if result.branch_created:
                result.mutations += 1

        # Step 2: diff
        uploads: list[tuple[str, bytes]] = []
        deletions: list[str] = []
        remote_existing: set[str] = set()

        for relative in sorted(targets):
            if self.workspace.is_directory(relative):
                self.logger.debug(f"Skipping directory: {relative}")
                continue

            local = self.workspace.read_bytes(relative)
            remote = self.host.get_file(relative, read_ref)

            if local is None and remote is None:
                removed = self._removed_folder_files(relative, read_ref, targets)
                if removed:
                    self.logger.info(f"Folder {relative} was deleted: {len(removed)} files")
                    deletions.extend(removed)
                    remote_existing.update(removed)
                    continue

            if local is None:
                deletions.append(relative)
                if remote is not None:
                    remote_existing.add(relative)
                continue

            if content_matches(local, remote.content if remote else None):
                self.logger.debug(f"Unchanged: {relative}")
                result.unchanged.append(relative)
                continue

            uploads.append((relative, local))

        if self.dry_run:
            result.uploaded = [relative for relative, _ in uploads]
            result.deleted = [d for d in deletions if d in remote_existing]
            result.already_absent = [d for d in deletions if d not in remote_existing]
            self.logger.info(
                f"[DRY-RUN] Would upload {len(result.uploaded)} and delete "
                f"{len(result.deleted)} files on {branch}"
            )
            return result

        # Step 3: one commit for all uploads
        if uploads:
            entries = []
            for relative, content in uploads:
                sha = self.host.create_blob(content)
                result.blobs_created += 1
                result.mutations += 1
                entries.append(BlobEntry(relative, sha, self.workspace.file_mode(relative)))
                result.uploaded.append(relative)

            if self.config.combine_deletions:
                for relative in deletions:
                    if relative in remote_existing:
                        entries.append(BlobEntry(relative, None))
                        result.deleted.append(relative)
                    else:
                        result.already_absent.append(relative)
            else:
                result.deferred_deletions = [str(self.workspace.resolve(d)) for d in deletions]

            result.commit_sha = self._commit(branch, entries, result)
            self.logger.info(
                f"Committed {len(entries)} entries to {branch} at {result.commit_sha[:7]}"
            )
            return result

        # Step 4: deletions only, one request per file
        for relative in deletions:
            self._delete(relative, branch, result)

        return result

    def _removed_folder_files(
        self, relative: str, ref: str, targets: dict[str, str]
    ) -> list[str]:
        """Files under a deleted folder that the branch still has."""
        return [
            child
            for child in self.host.list_files(relative, ref)
            if child not in targets and not self.workspace.exists(child)
        ]

    def _commit(self, branch: str, entries: list[BlobEntry], result: SyncResult) -> str:
        head = self.host.get_branch_head(branch)
        tree = self.host.create_tree(head.tree_sha, entries)
        commit = self.host.create_commit(self.config.commit_message, tree, [head.commit_sha])
        self.host.update_ref(branch, commit)
        result.mutations += 3
        return commit

    def _delete(self, relative: str, branch: str, result: SyncResult) -> None:
        # The delete precondition must be the sha as of right now
        current = self.host.get_file(relative, branch)
        if current is None:
            self.logger.debug(f"Already absent on {branch}: {relative}")
            result.already_absent.append(relative)
            return

        self.host.delete_file(relative, current.sha, self.config.commit_message, branch)
        result.mutations += 1
        result.deleted.append(relative)

    def sync_tracked(self, tracker: ChangeTracker) -> SyncResult:
        """
        Sync everything the tracker has recorded, draining it on success.

        The always-included files are added to any non-empty change set.
        """
        pending = tracker.pending
        if not pending:
            return SyncResult(dry_run=self.dry_run, branch=self.config.branch)

        paths: set[str] = set(pending)
        for extra in self.config.always_include:
            if self.workspace.exists(extra):
                paths.add(str(self.workspace.resolve(extra)))

        result = self.sync(paths)

        if not self.dry_run:
            tracker.drain()
            if result.deferred_deletions:
                tracker.record_all(result.deferred_deletions)

        return result
