"""
Pytest Configuration and Fixtures for HunterFit Tests
=====================================================

Purpose
-------
Centralized fixtures for the HunterFit test suite: mocks for unit tests, a
real ``DatabaseService`` on a temporary SQLite file for service tests, a
seeded catalog and a fully wired ``ServiceContainer``.

Architecture Notes
------------------
- Unit tests use mocks (fast, isolated)
- Service tests run the real engines against ``sqlite+aiosqlite``
- Integration tests repeat the flows on PostgreSQL via testcontainers
- Time is a ``FixedClock``; quest selection uses a seeded ``random.Random``
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Tuple

import pytest
import pytest_asyncio

from hunterfit.core.clock import FixedClock
from hunterfit.core.config.manager import ConfigManager
from hunterfit.core.database import DatabaseService, HunterMutationGuard
from hunterfit.core.event.bus import EventBus
from hunterfit.core.logging.logger import get_logger
from hunterfit.core.services.container import ServiceContainer
from hunterfit.database.models import (
    AchievementCategory,
    AchievementTemplate,
    AchievementType,
    DungeonDifficulty,
    DungeonExercise,
    DungeonTemplate,
    DungeonType,
    EquipmentTemplate,
    HunterRank,
    ItemType,
    QuestDifficulty,
    QuestTemplate,
    QuestType,
    Rarity,
)

logger = get_logger(__name__)

START_TIME = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


# ============================================================================
# EVENT CAPTURE
# ============================================================================


class RecordingEventBus(EventBus):
    """EventBus that keeps every published (name, payload) pair."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, event_name: str, data: Dict[str, Any]) -> list[Any]:
        self.published.append((event_name, data))
        return await super().publish(event_name, data)

    def names(self) -> List[str]:
        return [name for name, _ in self.published]

    def payloads(self, event_name: str) -> List[Dict[str, Any]]:
        return [data for name, data in self.published if name == event_name]


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """Config manager that always answers with the caller's default."""
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config


@pytest.fixture
def mock_logger(mocker):
    return mocker.MagicMock()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START_TIME)


@pytest.fixture
def guard() -> HunterMutationGuard:
    return HunterMutationGuard()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(20260302)


# ============================================================================
# CONFIG & DATABASE FIXTURES (Service Tests)
# ============================================================================


@pytest.fixture
def config_manager():
    """Real ConfigManager loaded from ``config/``; overrides dropped afterwards."""
    ConfigManager.reset()
    ConfigManager.initialize()
    yield ConfigManager
    ConfigManager.reset()


@pytest.fixture
def event_bus(config_manager) -> RecordingEventBus:
    return RecordingEventBus(config_manager)


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[type[DatabaseService], None]:
    """Fresh SQLite database file with the full schema, per test."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'hunterfit.db'}"
    await DatabaseService.initialize(url)
    await DatabaseService.create_schema()
    yield DatabaseService
    await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def container(
    database, config_manager, event_bus, clock, guard, rng
) -> AsyncGenerator[ServiceContainer, None]:
    services = ServiceContainer(
        config_manager,
        event_bus,
        get_logger("tests.container"),
        clock=clock,
        guard=guard,
        rng=rng,
    )
    await services.initialize()
    yield services
    await services.shutdown()


# ============================================================================
# CATALOG
# ============================================================================


@dataclass
class Catalog:
    quests: Dict[str, int] = field(default_factory=dict)
    dungeons: Dict[str, int] = field(default_factory=dict)
    equipment: Dict[str, int] = field(default_factory=dict)
    achievements: Dict[str, int] = field(default_factory=dict)


def _quest_templates() -> Dict[str, QuestTemplate]:
    return {
        "pushups": QuestTemplate(
            name="Push-up Drill",
            description="Twenty clean push-ups",
            quest_type=QuestType.STRENGTH,
            exercise_name="Push-ups",
            difficulty=QuestDifficulty.EASY,
            target_reps=20,
            base_xp=50,
            strength_bonus=1,
        ),
        "run": QuestTemplate(
            name="Morning Run",
            description="Twenty minutes, three kilometres",
            quest_type=QuestType.CARDIO,
            exercise_name="Running",
            difficulty=QuestDifficulty.MEDIUM,
            target_duration=1200,
            target_distance=3.0,
            base_xp=60,
            agility_bonus=1,
        ),
        "plank": QuestTemplate(
            name="Plank Hold",
            description="Three minutes of plank",
            quest_type=QuestType.ENDURANCE,
            exercise_name="Plank",
            difficulty=QuestDifficulty.MEDIUM,
            target_duration=180,
            base_xp=40,
            endurance_bonus=1,
        ),
        "stretch": QuestTemplate(
            name="Stretch Flow",
            description="Ten minutes of mobility work",
            quest_type=QuestType.FLEXIBILITY,
            exercise_name="Stretching",
            difficulty=QuestDifficulty.EASY,
            target_duration=600,
            base_xp=30,
            vitality_bonus=1,
        ),
        "circuit": QuestTemplate(
            name="Shadow Circuit",
            description="Five rounds, one hundred reps",
            quest_type=QuestType.MIXED,
            exercise_name="Circuit",
            difficulty=QuestDifficulty.EXTREME,
            target_reps=100,
            target_sets=5,
            base_xp=300,
            min_level=20,
            min_rank=HunterRank.D,
        ),
    }


def _dungeon_templates() -> Dict[str, DungeonTemplate]:
    training = DungeonTemplate(
        name="Training Grounds",
        description="A gentle first gate",
        dungeon_type=DungeonType.TRAINING_GROUNDS,
        difficulty=DungeonDifficulty.NORMAL,
        min_level=1,
        min_rank=HunterRank.E,
        energy_cost=10,
        cooldown_hours=24,
        base_xp=200,
        bonus_xp=50,
        estimated_minutes=30,
    )
    training.exercises = [
        DungeonExercise(exercise_order=1, exercise_name="Squats", target_reps=30, rest_seconds=60),
        DungeonExercise(exercise_order=2, exercise_name="Burpees", target_reps=15, rest_seconds=90),
    ]
    iron_gate = DungeonTemplate(
        name="Iron Gate",
        description="Boss raid for D-rank hunters",
        dungeon_type=DungeonType.BOSS_RAID,
        difficulty=DungeonDifficulty.HARD,
        min_level=10,
        min_rank=HunterRank.D,
        energy_cost=30,
        cooldown_hours=48,
        base_xp=500,
        bonus_xp=200,
        estimated_minutes=60,
    )
    return {"training": training, "iron_gate": iron_gate}


def _equipment_templates() -> Dict[str, EquipmentTemplate]:
    return {
        "dagger": EquipmentTemplate(
            name="Rusty Dagger",
            item_type=ItemType.WEAPON,
            rarity=Rarity.COMMON,
            strength_bonus=2,
            xp_multiplier=1.0,
        ),
        "kasaka": EquipmentTemplate(
            name="Kasaka's Venom Fang",
            item_type=ItemType.WEAPON,
            rarity=Rarity.RARE,
            strength_bonus=5,
            agility_bonus=2,
            xp_multiplier=1.1,
        ),
        "vest": EquipmentTemplate(
            name="Training Vest",
            item_type=ItemType.ARMOR,
            rarity=Rarity.COMMON,
            vitality_bonus=3,
            xp_multiplier=1.05,
        ),
        "ring": EquipmentTemplate(
            name="Ring of Haste",
            item_type=ItemType.ACCESSORY,
            rarity=Rarity.EPIC,
            agility_bonus=4,
            xp_multiplier=1.2,
        ),
        "longsword": EquipmentTemplate(
            name="Demon King's Longsword",
            item_type=ItemType.WEAPON,
            rarity=Rarity.LEGENDARY,
            strength_bonus=20,
            xp_multiplier=1.5,
            unlock_level=30,
            unlock_rank=HunterRank.C,
        ),
    }


def _achievement_templates() -> Dict[str, AchievementTemplate]:
    return {
        "first_quest": AchievementTemplate(
            name="First Quest",
            category=AchievementCategory.CONSISTENCY,
            achievement_type=AchievementType.COUNTER,
            target_value=1,
            xp_reward=50,
        ),
        "veteran": AchievementTemplate(
            name="Quest Veteran",
            category=AchievementCategory.CONSISTENCY,
            achievement_type=AchievementType.COUNTER,
            target_value=3,
            xp_reward=100,
            title_reward="Veteran",
        ),
        "iron_body": AchievementTemplate(
            name="Iron Body",
            category=AchievementCategory.STRENGTH,
            achievement_type=AchievementType.COUNTER,
            target_value=2,
            xp_reward=75,
        ),
        "week_warrior": AchievementTemplate(
            name="Week Warrior",
            category=AchievementCategory.CONSISTENCY,
            achievement_type=AchievementType.STREAK,
            target_value=7,
            xp_reward=200,
            title_reward="Relentless",
        ),
        "diver": AchievementTemplate(
            name="Dungeon Diver",
            category=AchievementCategory.SPECIAL,
            achievement_type=AchievementType.SINGLE,
            xp_reward=150,
            title_reward="Diver",
        ),
        "centurion": AchievementTemplate(
            name="Centurion",
            category=AchievementCategory.MILESTONE,
            achievement_type=AchievementType.PROGRESSIVE,
            target_value=100,
            xp_reward=500,
            is_hidden=True,
        ),
        "retired": AchievementTemplate(
            name="Retired Badge",
            category=AchievementCategory.CONSISTENCY,
            achievement_type=AchievementType.COUNTER,
            target_value=1,
            xp_reward=999,
            is_active=False,
        ),
    }


async def seed_catalog(database: type[DatabaseService]) -> Catalog:
    groups = {
        "quests": _quest_templates(),
        "dungeons": _dungeon_templates(),
        "equipment": _equipment_templates(),
        "achievements": _achievement_templates(),
    }
    async with database.get_transaction() as session:
        for templates in groups.values():
            session.add_all(list(templates.values()))
        await session.flush()
        catalog = Catalog(
            **{
                group: {key: template.id for key, template in templates.items()}
                for group, templates in groups.items()
            }
        )
    return catalog


@pytest_asyncio.fixture
async def catalog(database) -> Catalog:
    return await seed_catalog(database)


@pytest_asyncio.fixture
async def hunter(container, catalog):
    """A freshly registered level 1 hunter (catalog already seeded)."""
    return await container.register_hunter("sung_jinwoo", "Sung Jinwoo")
