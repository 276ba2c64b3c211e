"""
Quest Service
=============

Purpose
-------
Daily quest assignment and the ``Assigned -> InProgress -> Completed``
lifecycle of each assignment.

Domain
------
- Daily generation picks eligible active templates with the injected RNG;
  one assignment per (hunter, template, date)
- Counters only move up: each supplied value becomes ``max(current, value)``
- Progress is the mean percent across the template's defined targets
- Meeting every defined target completes the quest automatically
- XP: ``round(base_xp * (1 + level * 0.05) * bonus_multiplier)``
- Bonus multiplier: +0.25 when faster than the estimate, +0.15 for perfect
  execution, clamped to [0.5, 2.0]
- Completion appends an immutable ``QuestHistory`` row

Events
------
Completion dispatches ``QuestCompleted``, ``WorkoutCompleted``,
``ExerciseCompleted`` and any ``HunterLeveledUp`` to achievements once.
"""

from __future__ import annotations

import random
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import select

from hunterfit.core.logging.logger import get_logger
from hunterfit.database.models import (
    Hunter,
    QuestAssignment,
    QuestHistory,
    QuestStatus,
    QuestTemplate,
)
from hunterfit.domain.models.events import (
    ExerciseCompleted,
    GameEvent,
    QuestCompleted,
    WorkoutCompleted,
)
from hunterfit.modules.shared.base_repository import BaseRepository
from hunterfit.modules.shared.base_service import BaseService
from hunterfit.modules.shared.exceptions import InvalidStateError, NotFoundError
from hunterfit.modules.shared.formulas import (
    estimated_quest_minutes,
    meets_gate,
    quest_bonus_multiplier,
    quest_progress,
    quest_xp_earned,
    scaled_quest_xp,
)
from hunterfit.modules.shared.validators import validate_non_negative

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hunterfit.modules.achievement.achievement_service import AchievementService
    from hunterfit.modules.hunter.leveling_service import LevelingService


def _targets(template: QuestTemplate) -> list:
    return [
        template.target_reps,
        template.target_sets,
        template.target_duration,
        template.target_distance,
    ]


def _currents(assignment: QuestAssignment) -> list:
    return [
        assignment.current_reps,
        assignment.current_sets,
        assignment.current_duration,
        assignment.current_distance,
    ]


def can_complete(assignment: QuestAssignment, template: QuestTemplate) -> bool:
    _, done = quest_progress(_targets(template), _currents(assignment))
    return done


class QuestService(BaseService):
    """
    Quest engine.

    Public Methods
    --------------
    - generate_daily_quests() / get_daily_quests()
    - start_quest() / update_progress() / complete_quest()
    - get_quest_history() / get_available_quests()
    """

    def __init__(
        self,
        config_manager,
        event_bus,
        logger,
        clock,
        guard,
        leveling: LevelingService,
        achievements: AchievementService,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, clock, guard)
        self.leveling = leveling
        self.achievements = achievements
        self.rng = rng or random.Random()
        self.templates = BaseRepository[QuestTemplate](
            QuestTemplate, get_logger(f"{__name__}.QuestTemplateRepository")
        )
        self.assignments = BaseRepository[QuestAssignment](
            QuestAssignment, get_logger(f"{__name__}.QuestAssignmentRepository")
        )
        self.history = BaseRepository[QuestHistory](
            QuestHistory, get_logger(f"{__name__}.QuestHistoryRepository")
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    @property
    def level_scaling(self) -> float:
        return float(self.get_config("quests.level_scaling", default=0.05))

    def _scaled_xp(self, template: QuestTemplate, level: int) -> float:
        return scaled_quest_xp(template.base_xp, level, self.level_scaling)

    def _template_dict(self, template: QuestTemplate, hunter: Hunter) -> Dict[str, Any]:
        return {
            "quest_id": template.id,
            "name": template.name,
            "description": template.description,
            "quest_type": template.quest_type.value,
            "exercise_name": template.exercise_name,
            "difficulty": template.difficulty.value,
            "target_reps": template.target_reps,
            "target_sets": template.target_sets,
            "target_duration": template.target_duration,
            "target_distance": template.target_distance,
            "base_xp": template.base_xp,
            "scaled_xp": int(round(self._scaled_xp(template, hunter.level))),
            "estimated_minutes": estimated_quest_minutes(
                template.quest_type, template.target_duration, template.target_sets
            ),
            "min_level": template.min_level,
            "min_rank": template.min_rank.value,
        }

    def _assignment_dict(
        self, assignment: QuestAssignment, template: QuestTemplate, hunter: Hunter
    ) -> Dict[str, Any]:
        return {
            **self._template_dict(template, hunter),
            "assignment_id": assignment.id,
            "quest_date": assignment.quest_date,
            "status": assignment.status.value,
            "progress": assignment.progress,
            "current_reps": assignment.current_reps,
            "current_sets": assignment.current_sets,
            "current_duration": assignment.current_duration,
            "current_distance": assignment.current_distance,
            "xp_earned": assignment.xp_earned,
            "bonus_multiplier": assignment.bonus_multiplier,
            "assigned_at": assignment.assigned_at,
            "started_at": assignment.started_at,
            "completed_at": assignment.completed_at,
            "can_complete": assignment.status != QuestStatus.COMPLETED
            and can_complete(assignment, template),
        }

    async def _load_assignment(
        self, session: AsyncSession, hunter_id: str, assignment_id: int
    ) -> tuple[QuestAssignment, QuestTemplate]:
        assignment = await self.assignments.find_one_where(
            session,
            QuestAssignment.id == assignment_id,
            QuestAssignment.hunter_id == hunter_id,
            for_update=True,
        )
        if assignment is None:
            raise NotFoundError("QuestAssignment", assignment_id)
        template = await self.templates.get(session, assignment.quest_id)
        if template is None:
            raise NotFoundError("Quest", assignment.quest_id)
        return assignment, template

    async def _assignments_for_date(
        self, session: AsyncSession, hunter_id: str, quest_date: date
    ) -> List[tuple[QuestAssignment, QuestTemplate]]:
        stmt = (
            select(QuestAssignment, QuestTemplate)
            .join(QuestTemplate, QuestAssignment.quest_id == QuestTemplate.id)
            .where(QuestAssignment.hunter_id == hunter_id, QuestAssignment.quest_date == quest_date)
            .order_by(QuestAssignment.id)
        )
        return [(row[0], row[1]) for row in (await session.execute(stmt)).all()]

    @staticmethod
    def _reject_completed(action: str, assignment: QuestAssignment) -> None:
        if assignment.status == QuestStatus.COMPLETED:
            raise InvalidStateError(
                action,
                "quest already completed",
                current_state=assignment.status.value,
                details={"assignment_id": assignment.id},
            )

    def _start(self, assignment: QuestAssignment) -> None:
        assignment.status = QuestStatus.IN_PROGRESS
        assignment.started_at = self.clock.now()

    async def _complete(
        self,
        session: AsyncSession,
        hunter: Hunter,
        assignment: QuestAssignment,
        template: QuestTemplate,
        perfect_execution: bool,
        timed: bool = True,
    ) -> Dict[str, Any]:
        now = self.clock.now()
        # Untimed when started and finished by the same update
        completion_seconds = (
            int((now - assignment.started_at).total_seconds())
            if timed and assignment.started_at is not None
            else None
        )
        estimated = estimated_quest_minutes(
            template.quest_type, template.target_duration, template.target_sets
        )
        multiplier = quest_bonus_multiplier(
            completion_seconds,
            estimated,
            perfect_execution,
            speed_bonus=float(self.get_config("quests.speed_bonus", default=0.25)),
            perfect_bonus=float(self.get_config("quests.perfect_bonus", default=0.15)),
            min_multiplier=float(self.get_config("quests.min_bonus_multiplier", default=0.5)),
            max_multiplier=float(self.get_config("quests.max_bonus_multiplier", default=2.0)),
        )
        xp = quest_xp_earned(self._scaled_xp(template, hunter.level), multiplier)

        assignment.status = QuestStatus.COMPLETED
        assignment.progress = 100.0
        assignment.completed_at = now
        assignment.bonus_multiplier = multiplier
        assignment.xp_earned = xp

        self.history.add(
            session,
            QuestHistory(
                hunter_id=hunter.id,
                quest_id=template.id,
                assignment_id=assignment.id,
                completed_at=now,
                xp_earned=xp,
                completion_seconds=completion_seconds,
                perfect_execution=perfect_execution,
                bonus_multiplier=multiplier,
                final_reps=assignment.current_reps,
                final_sets=assignment.current_sets,
                final_duration=assignment.current_duration,
                final_distance=assignment.current_distance,
                created_at=now,
            ),
        )

        hunter.total_workouts += 1
        hunter.strength += template.strength_bonus
        hunter.agility += template.agility_bonus
        hunter.vitality += template.vitality_bonus
        hunter.endurance += template.endurance_bonus
        hunter.last_active_at = now

        award, level_event = self.leveling.apply_xp(hunter, xp, source=f"quest:{template.id}")

        events: List[GameEvent] = [
            QuestCompleted(
                hunter_id=hunter.id,
                occurred_at=now,
                assignment_id=assignment.id,
                quest_id=template.id,
                xp_earned=xp,
                bonus_multiplier=multiplier,
                perfect_execution=perfect_execution,
            ),
            WorkoutCompleted(
                hunter_id=hunter.id, occurred_at=now, total_workouts=hunter.total_workouts
            ),
            ExerciseCompleted(hunter_id=hunter.id, occurred_at=now, quest_type=template.quest_type),
        ]
        if level_event is not None:
            events.append(level_event)

        unlocked, extra = await self.achievements.process_events(session, hunter, events)

        self.log.info(
            f"Quest completed: {template.name}",
            extra={
                "hunter_id": hunter.id,
                "assignment_id": assignment.id,
                "quest_id": template.id,
                "xp_earned": xp,
                "bonus_multiplier": multiplier,
                "completion_seconds": completion_seconds,
                "perfect_execution": perfect_execution,
            },
        )
        return {
            "assignment_id": assignment.id,
            "xp_earned": xp,
            "bonus_multiplier": multiplier,
            "completion_seconds": completion_seconds,
            "award": award,
            "achievements_unlocked": [t.id for t in unlocked],
            "events": events + extra,
        }

    # ========================================================================
    # PUBLIC API - Daily Quests
    # ========================================================================

    async def generate_daily_quests(
        self,
        hunter_id: str,
        quest_date: Optional[date] = None,
        count: Optional[int] = None,
        regenerate: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Assign ``count`` eligible quests for a date.

        An existing set is returned untouched unless ``regenerate`` is set, in
        which case its non-completed assignments are replaced.
        """
        quest_date = quest_date or self.clock.today()
        count = count if count is not None else int(self.get_config("quests.daily_count", default=3))
        self.validate_positive_int(count, "count")
        self.log_operation(
            "generate_daily_quests",
            hunter_id=hunter_id,
            quest_date=quest_date.isoformat(),
            count=count,
            regenerate=regenerate,
        )

        async with self.hunter_transaction(hunter_id, "generate_daily_quests") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            existing = await self._assignments_for_date(session, hunter_id, quest_date)

            if existing and not regenerate:
                return [self._assignment_dict(a, t, hunter) for a, t in existing]

            kept = [(a, t) for a, t in existing if a.status == QuestStatus.COMPLETED]
            for assignment, _ in existing:
                if assignment.status != QuestStatus.COMPLETED:
                    await self.assignments.delete(session, assignment)
            # Deletes must reach the store before re-inserting the same template
            await self.assignments.flush(session)

            kept_ids = {t.id for _, t in kept}
            active = await self.templates.find_many_where(
                session, QuestTemplate.is_active.is_(True), order_by=[QuestTemplate.id]
            )
            eligible = [
                t
                for t in active
                if t.id not in kept_ids
                and meets_gate(hunter.level, hunter.rank, t.min_level, t.min_rank)
            ]
            picks = self.rng.sample(eligible, min(max(0, count - len(kept)), len(eligible)))

            now = self.clock.now()
            created = self.assignments.add_many(
                session,
                [
                    QuestAssignment(
                        hunter_id=hunter_id,
                        quest_id=template.id,
                        quest_date=quest_date,
                        status=QuestStatus.ASSIGNED,
                        progress=0.0,
                        current_reps=0,
                        current_sets=0,
                        current_duration=0,
                        current_distance=0.0,
                        xp_earned=0,
                        bonus_multiplier=1.0,
                        assigned_at=now,
                    )
                    for template in picks
                ],
            )
            await self.assignments.flush(session)
            result = [self._assignment_dict(a, t, hunter) for a, t in kept] + [
                self._assignment_dict(a, t, hunter) for a, t in zip(created, picks)
            ]

        if len(picks) < count - len(kept):
            self.log.warning(
                "Fewer eligible quests than requested",
                extra={
                    "hunter_id": hunter_id,
                    "requested": count,
                    "eligible": len(eligible),
                },
            )
        await self.emit_event(
            "quests.generated",
            {
                "hunter_id": hunter_id,
                "quest_date": quest_date.isoformat(),
                "assignment_ids": [a.id for a in created],
            },
        )
        return result

    async def get_daily_quests(
        self, hunter_id: str, quest_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """Daily summary; today's set is generated on first read."""
        today = self.clock.today()
        quest_date = quest_date or today

        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            rows = await self._assignments_for_date(session, hunter_id, quest_date)

        if not rows and quest_date == today:
            await self.generate_daily_quests(hunter_id, quest_date)
            async with self.read_session() as session:
                hunter = await self.leveling.load_hunter(session, hunter_id)
                rows = await self._assignments_for_date(session, hunter_id, quest_date)

        quests = [self._assignment_dict(a, t, hunter) for a, t in rows]
        by_status = {status.value: 0 for status in QuestStatus}
        for quest in quests:
            by_status[quest["status"]] += 1

        return {
            "hunter_id": hunter_id,
            "quest_date": quest_date,
            "quests": quests,
            "total": len(quests),
            "completed": by_status[QuestStatus.COMPLETED.value],
            "in_progress": by_status[QuestStatus.IN_PROGRESS.value],
            "assigned": by_status[QuestStatus.ASSIGNED.value],
            "overall_progress": round(sum(q["progress"] for q in quests) / len(quests), 2)
            if quests
            else 0.0,
            "xp_earned": sum(q["xp_earned"] for q in quests),
            "xp_available": sum(
                q["scaled_xp"] for q in quests if q["status"] != QuestStatus.COMPLETED.value
            ),
        }

    # ========================================================================
    # PUBLIC API - Lifecycle
    # ========================================================================

    async def start_quest(self, hunter_id: str, assignment_id: int) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: assignment unknown for this hunter
            InvalidStateError: already started or completed
        """
        self.log_operation("start_quest", hunter_id=hunter_id, assignment_id=assignment_id)

        async with self.hunter_transaction(hunter_id, "start_quest") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            assignment, template = await self._load_assignment(session, hunter_id, assignment_id)
            self._reject_completed("start_quest", assignment)
            if assignment.status == QuestStatus.IN_PROGRESS:
                raise InvalidStateError(
                    "start_quest",
                    "quest already started",
                    current_state=assignment.status.value,
                    details={"assignment_id": assignment.id},
                )
            self._start(assignment)
            hunter.last_active_at = self.clock.now()

        await self.emit_event(
            "quest.started",
            {"hunter_id": hunter_id, "assignment_id": assignment.id, "quest_id": template.id},
        )
        return self._assignment_dict(assignment, template, hunter)

    async def update_progress(
        self,
        hunter_id: str,
        assignment_id: int,
        reps: Optional[int] = None,
        sets: Optional[int] = None,
        duration: Optional[int] = None,
        distance: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Raise counters and recompute progress; completes when every target is met.

        An assigned quest is started by its first progress update.

        Raises:
            ValidationError: negative counter
            NotFoundError: assignment unknown for this hunter
            InvalidStateError: quest already completed
        """
        for name, value in (
            ("reps", reps),
            ("sets", sets),
            ("duration", duration),
            ("distance", distance),
        ):
            validate_non_negative(value, name)

        self.log_operation(
            "update_quest_progress",
            hunter_id=hunter_id,
            assignment_id=assignment_id,
            reps=reps,
            sets=sets,
            duration=duration,
            distance=distance,
        )

        completion: Optional[Dict[str, Any]] = None
        async with self.hunter_transaction(hunter_id, "update_quest_progress") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            assignment, template = await self._load_assignment(session, hunter_id, assignment_id)
            self._reject_completed("update_quest_progress", assignment)

            started_now = assignment.status == QuestStatus.ASSIGNED
            if started_now:
                self._start(assignment)

            if reps is not None:
                assignment.current_reps = max(assignment.current_reps, reps)
            if sets is not None:
                assignment.current_sets = max(assignment.current_sets, sets)
            if duration is not None:
                assignment.current_duration = max(assignment.current_duration, duration)
            if distance is not None:
                assignment.current_distance = max(assignment.current_distance, distance)

            progress, done = quest_progress(_targets(template), _currents(assignment))
            assignment.progress = max(assignment.progress, round(progress, 2))
            hunter.last_active_at = self.clock.now()

            if done:
                completion = await self._complete(
                    session, hunter, assignment, template, False, timed=not started_now
                )

            result = self._assignment_dict(assignment, template, hunter)

        if completion is not None:
            await self.publish_events(completion["events"])
        result["auto_completed"] = completion is not None
        if completion is not None:
            result["award"] = completion["award"].to_dict()
            result["achievements_unlocked"] = completion["achievements_unlocked"]
        return result

    async def complete_quest(
        self, hunter_id: str, assignment_id: int, perfect_execution: bool = False
    ) -> Dict[str, Any]:
        """
        Complete a quest whose targets are all met.

        Raises:
            NotFoundError: assignment unknown for this hunter
            InvalidStateError: already completed, or targets not yet met
        """
        self.log_operation(
            "complete_quest",
            hunter_id=hunter_id,
            assignment_id=assignment_id,
            perfect_execution=perfect_execution,
        )

        async with self.hunter_transaction(hunter_id, "complete_quest") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            assignment, template = await self._load_assignment(session, hunter_id, assignment_id)
            self._reject_completed("complete_quest", assignment)
            if not can_complete(assignment, template):
                raise InvalidStateError(
                    "complete_quest",
                    "quest targets not yet met",
                    current_state=assignment.status.value,
                    details={"assignment_id": assignment.id, "progress": assignment.progress},
                )
            completion = await self._complete(
                session, hunter, assignment, template, perfect_execution
            )
            result = self._assignment_dict(assignment, template, hunter)

        await self.publish_events(completion["events"])
        result["award"] = completion["award"].to_dict()
        result["achievements_unlocked"] = completion["achievements_unlocked"]
        return result

    # ========================================================================
    # PUBLIC API - Reads
    # ========================================================================

    async def get_quest_history(
        self, hunter_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        limit = limit if limit is not None else int(self.get_config("quests.history_limit", default=20))
        self.validate_positive_int(limit, "limit")

        async with self.read_session() as session:
            await self.leveling.load_hunter(session, hunter_id)
            stmt = (
                select(QuestHistory, QuestTemplate)
                .join(QuestTemplate, QuestHistory.quest_id == QuestTemplate.id)
                .where(QuestHistory.hunter_id == hunter_id)
                .order_by(QuestHistory.completed_at.desc(), QuestHistory.id.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).all()

        return [
            {
                "history_id": entry.id,
                "assignment_id": entry.assignment_id,
                "quest_id": template.id,
                "name": template.name,
                "quest_type": template.quest_type.value,
                "completed_at": entry.completed_at,
                "xp_earned": entry.xp_earned,
                "completion_seconds": entry.completion_seconds,
                "perfect_execution": entry.perfect_execution,
                "bonus_multiplier": entry.bonus_multiplier,
                "final_reps": entry.final_reps,
                "final_sets": entry.final_sets,
                "final_duration": entry.final_duration,
                "final_distance": entry.final_distance,
            }
            for entry, template in rows
        ]

    async def get_available_quests(self, hunter_id: str) -> List[Dict[str, Any]]:
        """Active catalog with XP scaled to the hunter's level and eligibility."""
        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            templates = await self.templates.find_many_where(
                session,
                QuestTemplate.is_active.is_(True),
                order_by=[QuestTemplate.min_level, QuestTemplate.id],
            )

        return [
            {
                **self._template_dict(template, hunter),
                "is_eligible": meets_gate(
                    hunter.level, hunter.rank, template.min_level, template.min_rank
                ),
            }
            for template in templates
        ]
