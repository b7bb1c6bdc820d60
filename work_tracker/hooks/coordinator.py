"""
Write-coordinator: runs hooks around every Work mutation.

Before-hooks run sequentially on the live Work item and may change it before
it is persisted; a failure there aborts the write when the dispatcher does
not continue on error. After-hooks run concurrently on snapshots once the
document is on disk; their failures are logged and never undo the write.
"""

from pathlib import Path
from typing import List, Optional

import structlog

from ..errors import HookFailureError, ValidationFailureError
from ..gitinfo import capture_git_context, latest_commit
from ..models import Schedule, Work
from ..services.updates import UpdatesJournal
from ..store import EntityStore
from .dispatcher import HookDispatcher
from .events import HookContext, HookResult, HookType
from .handlers import register_default_hooks

logger = structlog.get_logger(__name__)

PROGRESS_MILESTONES = (25, 50, 75, 100)


class WorkWriter:
    """Persists Work items through the store with hook dispatch around each write."""

    def __init__(
        self,
        store: EntityStore,
        dispatcher: Optional[HookDispatcher] = None,
        journal: Optional[UpdatesJournal] = None,
        register_defaults: bool = True,
    ):
        self.store = store
        self.dispatcher = dispatcher or HookDispatcher()
        self.journal = journal
        if register_defaults:
            register_default_hooks(self.dispatcher)

    def _log_failures(self, results: List[HookResult]) -> None:
        for result in results:
            if not result.success:
                logger.warning("hook_warning", hook=result.hook_name, error=result.error)

    async def _after(self, context: HookContext) -> List[HookResult]:
        try:
            results = await self.dispatcher.execute(context)
        except HookFailureError as e:
            logger.warning(
                "after_hooks_failed", hook_event=context.event_type.value, error=e.message
            )
            results = e.results
        self._log_failures(results)
        return results

    async def save(
        self,
        work: Work,
        schedule: Optional[Schedule] = None,
        record_activity: bool = True,
    ) -> Path:
        """Persist ``work``, relocating it when its target schedule changed.

        ``record_activity=False`` tells the activity detector to leave the
        last-activity timestamp alone, for writes that are not user activity.
        """
        old = work.model_copy(deep=True)
        target = Schedule(schedule) if schedule is not None else work.schedule
        relocating = work.path is not None and Path(work.path).parent != self.store.work_dir(
            target
        )
        if relocating and schedule is None:
            # The caller edited work.schedule directly; move from the current directory.
            current = [s for s in Schedule if self.store.work_dir(s) == Path(work.path).parent]
            if not current:
                raise ValidationFailureError(f"{work.path} is not inside {self.store.root}")
            work.schedule = old.schedule = current[0]

        before = HookContext(
            event_type=HookType.BEFORE_STATUS_CHANGE,
            work_item=work,
            old_work_item=old,
            metadata={"record_activity": record_activity},
        )
        self._log_failures(await self.dispatcher.execute_sync(before))

        if relocating:
            move = HookContext(
                event_type=HookType.BEFORE_SCHEDULE_CHANGE,
                work_item=work,
                old_work_item=old,
                metadata={"old_schedule": old.schedule.value, "new_schedule": target.value},
            )
            self._log_failures(await self.dispatcher.execute_sync(move))
            path = self.store.update_schedule(work, target)
        else:
            work.schedule = target
            path = self.store.write_work(work)

        if relocating:
            await self._after(
                HookContext(
                    event_type=HookType.AFTER_SCHEDULE_CHANGE,
                    work_item=work,
                    old_work_item=old,
                    metadata={"old_schedule": old.schedule.value, "new_schedule": target.value},
                )
            )
        await self._after(
            HookContext(
                event_type=HookType.AFTER_STATUS_CHANGE,
                work_item=work,
                old_work_item=old,
                metadata={"path": str(path)},
            )
        )
        return path

    async def update_progress(self, work: Work, progress: int) -> Path:
        old_progress = work.metadata.progress_percent
        old_status = work.metadata.status
        work.update_progress(progress)
        new_progress = work.metadata.progress_percent

        await self._after(
            HookContext(
                event_type=HookType.PROGRESS_UPDATED,
                work_item=work,
                metadata={"old_progress": old_progress, "new_progress": new_progress},
            )
        )

        target = Schedule.CLOSED if work.is_terminal() else None
        path = await self.save(work, schedule=target)

        if self.journal is not None and old_progress != new_progress:
            title = f"Progress updated from {old_progress}% to {new_progress}%"
            if new_progress in PROGRESS_MILESTONES:
                title += f" - Reached {new_progress}% milestone"
            summary = ""
            if old_status != work.metadata.status:
                summary = f"Status changed from {old_status.value} to {work.metadata.status.value}"
            self.journal.create_automatic_update(
                work.id,
                title=title,
                summary=summary,
                progress_before=old_progress,
                progress_after=new_progress,
                session=work.session_number,
            )
        return path

    async def record_commit(self, work: Work, commit_hash: str, message: str) -> Path:
        context = HookContext(
            event_type=HookType.COMMIT_DETECTED,
            work_item=work,
            metadata={"commit_info": {"hash": commit_hash, "message": message}},
        )
        self._log_failures(await self.dispatcher.execute_sync(context))
        return await self.save(work)

    async def record_latest_commit(self, work: Work) -> Optional[Path]:
        """Record HEAD of the work item's repository, if there is one."""
        commit = latest_commit(work.git_context.working_directory or None)
        if commit is None:
            return None
        return await self.record_commit(work, commit["hash"], commit["message"])

    async def warn_inactive(self, work: Work) -> Path:
        context = HookContext(
            event_type=HookType.INACTIVITY_WARNING,
            work_item=work,
            metadata={"inactive_days": work.inactive_days()},
        )
        self._log_failures(await self.dispatcher.execute_sync(context))
        return await self.save(work, record_activity=False)

    async def refresh_git_context(self, work: Work) -> bool:
        """Re-read git context for the work item; save and notify if it changed."""
        current = capture_git_context(work.git_context.working_directory or None)
        if current == work.git_context:
            return False

        old = work.model_copy(deep=True)
        work.git_context = current
        await self.save(work)
        await self._after(
            HookContext(
                event_type=HookType.GIT_CONTEXT_CHANGED,
                work_item=work,
                old_work_item=old,
                metadata={"branch": current.branch, "old_branch": old.git_context.branch},
            )
        )
        return True
