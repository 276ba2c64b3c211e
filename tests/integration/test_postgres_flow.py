"""
Integration Tests on PostgreSQL
===============================

Purpose
-------
Repeat the critical flows on a real PostgreSQL server (testcontainers) to
cover what SQLite cannot: row locks across independent service stacks and
the partial unique indexes as PostgreSQL enforces them.

Testing Strategy
----------------
- One container per module; schema dropped and recreated per test
- Overrides the ``database`` fixture, so ``container``, ``catalog`` and
  ``hunter`` from ``tests/conftest.py`` run against PostgreSQL
- Skipped when Docker is not available
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from testcontainers.postgres import PostgresContainer

from hunterfit.core.database import DatabaseService, HunterMutationGuard
from hunterfit.core.exceptions import DatabaseError
from hunterfit.core.logging.logger import get_logger
from hunterfit.core.services.container import ServiceContainer
from hunterfit.database.models import DungeonRaid, HunterEquipment, ItemType, RaidStatus
from hunterfit.modules.shared.exceptions import InvalidStateError

logger = get_logger(__name__)


@pytest.fixture(scope="module")
def postgres_container():
    logger.info("Starting PostgreSQL testcontainer...")
    try:
        container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
        container.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {e}")

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def database(postgres_container):
    await DatabaseService.initialize(postgres_container.get_connection_url())
    await DatabaseService.drop_schema()
    await DatabaseService.create_schema()
    yield DatabaseService
    await DatabaseService.shutdown()


# ============================================================================
# SCHEMA
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSchema:
    async def test_tables_created(self, database):
        async with database.get_session() as session:
            result = await session.execute(
                text(
                    "SELECT table_name FROM information_schema.tables "
                    "WHERE table_schema = 'public'"
                )
            )
            tables = {row.table_name for row in result.fetchall()}

        assert {
            "hunters",
            "quest_templates",
            "quest_assignments",
            "quest_history",
            "dungeon_templates",
            "dungeon_raids",
            "equipment_templates",
            "hunter_equipment",
            "achievement_templates",
            "hunter_achievements",
        } <= tables

    async def test_one_live_raid_index(self, database, hunter, catalog, clock):
        with pytest.raises(DatabaseError) as exc_info:
            async with database.get_transaction() as session:
                for _ in range(2):
                    session.add(
                        DungeonRaid(
                            hunter_id=hunter.id,
                            dungeon_id=catalog.dungeons["training"],
                            status=RaidStatus.IN_PROGRESS,
                            progress=0.0,
                            xp_earned=0,
                            completion_rate=0.0,
                            started_at=clock.now(),
                        )
                    )
                await session.flush()

        assert isinstance(exc_info.value.__cause__, IntegrityError)

    async def test_resolved_raids_do_not_collide(self, database, hunter, catalog, clock):
        async with database.get_transaction() as session:
            for status in (RaidStatus.COMPLETED, RaidStatus.ABANDONED, RaidStatus.STARTED):
                session.add(
                    DungeonRaid(
                        hunter_id=hunter.id,
                        dungeon_id=catalog.dungeons["training"],
                        status=status,
                        progress=0.0,
                        xp_earned=0,
                        completion_rate=0.0,
                        started_at=clock.now(),
                    )
                )

        async with database.get_session() as session:
            count = await session.scalar(text("SELECT count(*) FROM dungeon_raids"))
        assert count == 3

    async def test_one_equipped_item_per_slot_index(self, database, hunter, catalog, clock):
        with pytest.raises(DatabaseError) as exc_info:
            async with database.get_transaction() as session:
                for key in ("dagger", "kasaka"):
                    session.add(
                        HunterEquipment(
                            hunter_id=hunter.id,
                            equipment_id=catalog.equipment[key],
                            item_type=ItemType.WEAPON,
                            is_equipped=True,
                            unlocked_at=clock.now(),
                        )
                    )
                await session.flush()

        assert isinstance(exc_info.value.__cause__, IntegrityError)


# ============================================================================
# ENGINE FLOWS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestFlowsOnPostgres:
    async def test_quest_completion(self, container, hunter, catalog):
        quests = await container.generate_daily_quests(hunter.id, count=4)
        pushups = next(q for q in quests if q["quest_id"] == catalog.quests["pushups"])

        result = await container.update_quest_progress(hunter.id, pushups["assignment_id"], reps=20)

        assert result["xp_earned"] == 52
        profile = await container.get_profile(hunter.id)
        assert (profile["level"], profile["current_xp"], profile["total_xp"]) == (2, 2, 102)

    async def test_equip_swap_respects_slot_index(self, container, hunter, catalog):
        dagger, _ = await container.unlock(hunter.id, catalog.equipment["dagger"])
        kasaka, _ = await container.unlock(hunter.id, catalog.equipment["kasaka"])
        await container.equip(hunter.id, dagger.id)

        result = await container.equip(hunter.id, kasaka.id)

        assert result["unequipped_ids"] == [dagger.id]

    async def test_row_lock_across_service_stacks(
        self, container, hunter, catalog, config_manager, event_bus, clock
    ):
        # Second stack with its own in-process guard: only the database serializes them
        other = ServiceContainer(
            config_manager,
            event_bus,
            get_logger("tests.other_container"),
            clock=clock,
            guard=HunterMutationGuard(),
        )
        await other.initialize()
        dungeon_id = catalog.dungeons["training"]

        results = await asyncio.gather(
            container.start_raid(hunter.id, dungeon_id),
            other.start_raid(hunter.id, dungeon_id),
            return_exceptions=True,
        )

        started = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, InvalidStateError)]
        assert len(started) == 1
        assert len(rejected) == 1
        await other.shutdown()
