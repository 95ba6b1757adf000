"""Training workflows built on the store's queries and mutation gates."""

import logging
import time
from dataclasses import replace
from typing import Callable, Sequence
from uuid import uuid4

from ..db.collection import limit, order_by, where
from ..errors import PartialFailureError, ValidationError
from ..models.program import Program, ProgramLogTemplate, ProgramUser
from ..models.training import (
    LogKind,
    Movement,
    MovementSetStatus,
    SavedMovement,
    TrainingLog,
    parse_number,
)
from ..sync.mutations import run_compound
from ..sync.reorder import next_position
from ..sync.result_state import is_loading, unwrap_or
from ..sync.singletons import reconcile_program_user
from ..sync.store import Store

logger = logging.getLogger(__name__)


def now_millis() -> int:
    return int(time.time() * 1000)


class TrainingService:
    """User actions that touch several records at once."""

    def __init__(self, store: Store, clock: Callable[[], int] = now_millis):
        self.store = store
        self.clock = clock

    @property
    def user_id(self) -> str:
        return self.store.user_id

    async def begin_training(
        self, template: ProgramLogTemplate | None = None, bodyweight: float | str = 0
    ) -> TrainingLog:
        """Create a new training log, optionally cloned from a program template.

        Cloned movements get fresh set ids with every set unattempted, and the
        saved movements they belong to are marked as seen now.

        Raises:
            ValidationError: If bodyweight is not a number
            PartialFailureError: If the log was created but cloning failed
        """
        now = self.clock()
        log = await self.store.logs_api.create(
            TrainingLog(
                timestamp=now,
                author_user_id=self.user_id,
                bodyweight=parse_number(bodyweight, "bodyweight"),
                program_id=template.program_id if template else None,
                program_log_template_id=template.id if template else None,
            )
        )
        logger.info("Began training log %s", log.id)
        if template is None:
            return log

        template_movements = await self.store.collections.program_movements.get_all(
            where("log_id", "==", template.id), order_by("position")
        )
        if not template_movements:
            return log

        copies = [
            replace(
                movement,
                id=None,
                log_id=log.id,
                timestamp=now,
                author_user_id=self.user_id,
                sets=[
                    replace(
                        s,
                        uuid=str(uuid4()),
                        status=MovementSetStatus.UNATTEMPTED,
                        rep_count_actual=0,
                    )
                    for s in movement.sets
                ],
            )
            for movement in template_movements
        ]
        try:
            await self.store.movements_api.create_many(copies)
        except Exception as e:
            logger.warning("Log %s created but template movements were not copied", log.id)
            raise PartialFailureError(
                f"Training log {log.id} created without its template movements",
                committed=["create log"],
                failed=["copy template movements"],
                cause=e,
            ) from e

        try:
            await self.store.saved_movements_api.update_many(
                {m.saved_movement_id: {"last_seen": now} for m in copies}
            )
        except Exception as e:
            logger.warning("Log %s created but saved movements were not marked as seen", log.id)
            raise PartialFailureError(
                f"Training log {log.id} created; last-seen times not updated",
                committed=["create log", "copy template movements"],
                failed=["update last seen"],
                cause=e,
            ) from e
        return log

    async def add_movement(
        self,
        log_id: str,
        siblings: Sequence[Movement],
        name: str | None = None,
        saved_movement: SavedMovement | None = None,
        kind: LogKind = LogKind.REGULAR,
    ) -> Movement:
        """Append a movement to a log or template.

        Pass ``name`` to start a new saved movement, or ``saved_movement`` to
        add another instance of an existing one.

        Raises:
            ValidationError: If neither or both of name/saved_movement are given
        """
        if (name is None) == (saved_movement is None):
            raise ValidationError("Pass exactly one of name or saved_movement")
        now = self.clock()
        position = next_position(siblings)
        template = Movement(
            name="",
            timestamp=now,
            author_user_id=self.user_id,
            log_id=log_id,
            saved_movement_id="",
            saved_movement_name="",
            position=position,
        )

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Movement name cannot be empty")
            saved_movement = await self.store.saved_movements_api.create(
                SavedMovement(name=name, author_user_id=self.user_id, last_seen=now)
            )
            previous = None
        else:
            # Reuse the units of the latest movement in this lineage
            latest = await self.store.collections.movements.get_all(
                where("saved_movement_id", "==", saved_movement.id),
                order_by("timestamp", "desc"),
                limit(1),
            )
            previous = latest[0] if latest else None

        movement = replace(
            template,
            name=saved_movement.name,
            saved_movement_id=saved_movement.id,
            saved_movement_name=saved_movement.name,
        )
        if previous is not None:
            movement = replace(
                movement,
                weight_unit=previous.weight_unit,
                rep_count_unit=previous.rep_count_unit,
            )
        created = await self.store.movements_gate(kind).create(movement)

        if name is None:
            await self.store.saved_movements_api.update(saved_movement.id, {"last_seen": now})
        return created

    async def update_log(
        self, log_id: str, note: str | None = None, bodyweight: float | str | None = None
    ) -> TrainingLog:
        """Edit a log's note and/or bodyweight."""
        changes: dict = {}
        if note is not None:
            changes["note"] = note
        if bodyweight is not None:
            changes["bodyweight"] = parse_number(bodyweight, "bodyweight")
        if not changes:
            raise ValidationError("Nothing to update")
        return await self.store.logs_api.update(log_id, changes)

    async def _program_user(self) -> ProgramUser:
        state = self.store.snapshot.program_user
        if is_loading(state):
            # Reconciling alongside the store's own fetch could create two records
            state = (await self.store.settled()).program_user
        program_user = unwrap_or(state, None)
        if program_user is None:
            program_user = await reconcile_program_user(
                self.store.collections.program_users, self.user_id
            )
        return program_user

    async def set_active_program(self, program: Program | None) -> ProgramUser:
        """Point the user's settings at a program (or at none)."""
        program_user = await self._program_user()
        return await self.store.program_users_api.update(
            program_user.id,
            {
                "active_program_id": program.id if program else None,
                "active_program_name": program.name if program else None,
            },
        )

    async def rename_program(self, program: Program, name: str) -> Program:
        """Rename a program, keeping the denormalized active name in step."""
        name = name.strip()
        if not name:
            raise ValidationError("Program name cannot be empty")
        renamed = await self.store.programs_api.update(program.id, {"name": name})
        program_user = await self._program_user()
        if program_user.active_program_id == program.id:
            await self.store.program_users_api.update(
                program_user.id, {"active_program_name": name}
            )
        return renamed

    async def delete_program(self, program: Program) -> None:
        """Delete a program, its templates and their program movements.

        Raises:
            PartialFailureError: If only some of the deletes committed
        """
        program_user = await self._program_user()
        steps = {
            "delete program": self.store.programs_api.delete(program.id),
            "delete templates": self.store.program_log_templates_api.delete_many(
                where("program_id", "==", program.id)
            ),
            "delete program movements": self.store.program_movements_api.delete_many(
                where("log_id", "in", program.template_ids)
            ),
        }
        if program_user.active_program_id == program.id:
            steps["clear active program"] = self.store.program_users_api.update(
                program_user.id, {"active_program_id": None, "active_program_name": None}
            )
        await run_compound(steps)
        logger.info("Deleted program %s", program.id)
