"""Diff a proposed element/connection set against the canvas model.

A proposal that is exactly one item longer than the current set is treated
as a single append: new ids are added and nothing is updated or removed.
Any other size change, or ``append_heuristic=False``, runs the full diff.
Ids are always compared in their string form.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Mapping, Sequence, TypeVar

from aicon_backend.core.canvas import CanvasModel
from aicon_backend.core.schema import CanvasElement, Connection

Item = TypeVar("Item", CanvasElement, Connection)


@dataclass(slots=True)
class ReconcilePlan(Generic[Item]):
    to_add: list[Item] = field(default_factory=list)
    to_update: list[Item] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_update or self.to_remove)


def _reconcile(
    current: Sequence[Item],
    proposed: Sequence[Item],
    merge: Callable[[Item, Item], Item],
    append_heuristic: bool = True,
) -> ReconcilePlan[Item]:
    current_by_id = {str(item.id): item for item in current}
    plan: ReconcilePlan[Item] = ReconcilePlan()

    if append_heuristic and len(proposed) - len(current) == 1:
        plan.to_add = [item for item in proposed if str(item.id) not in current_by_id]
        return plan

    proposed_ids: set[str] = set()
    for item in proposed:
        key = str(item.id)
        proposed_ids.add(key)
        existing = current_by_id.get(key)
        if existing is None:
            plan.to_add.append(item)
        else:
            plan.to_update.append(merge(existing, item))
    plan.to_remove = [key for key in current_by_id if key not in proposed_ids]
    return plan


def _merge_element(current: CanvasElement, proposed: CanvasElement) -> CanvasElement:
    return current.merged(proposed.to_payload(exclude_unset=True))


def _merge_connection(current: Connection, proposed: Connection) -> Connection:
    return Connection.model_validate({**current.to_payload(), **proposed.to_payload(exclude_unset=True)})


def _elements(values: Iterable[CanvasElement | Mapping[str, Any]]) -> list[CanvasElement]:
    return [value if isinstance(value, CanvasElement) else CanvasElement.model_validate(dict(value)) for value in values]


def _connections(values: Iterable[Connection | Mapping[str, Any]]) -> list[Connection]:
    return [value if isinstance(value, Connection) else Connection.model_validate(dict(value)) for value in values]


def reconcile_elements(
    current: Iterable[CanvasElement | Mapping[str, Any]],
    proposed: Iterable[CanvasElement | Mapping[str, Any]],
    *,
    append_heuristic: bool = True,
) -> ReconcilePlan[CanvasElement]:
    return _reconcile(_elements(current), _elements(proposed), _merge_element, append_heuristic)


def reconcile_connections(
    current: Iterable[Connection | Mapping[str, Any]],
    proposed: Iterable[Connection | Mapping[str, Any]],
    *,
    append_heuristic: bool = True,
) -> ReconcilePlan[Connection]:
    return _reconcile(_connections(current), _connections(proposed), _merge_connection, append_heuristic)


def apply_element_plan(model: CanvasModel, plan: ReconcilePlan[CanvasElement]) -> None:
    """Replay ``plan`` through the model's operations."""

    for element_id in plan.to_remove:
        if model.has_element(element_id):
            model.delete_element(element_id)
    for element in plan.to_update:
        payload = element.to_payload()
        if payload == model.get_element(element.id).to_payload():
            continue
        model.update_element(element.id, payload)
    for element in plan.to_add:
        if not model.has_element(element.id):
            model.add_element(element)


def apply_connection_plan(model: CanvasModel, plan: ReconcilePlan[Connection]) -> None:
    current = {conn.id: conn.to_payload() for conn in model.connections}
    for connection_id in plan.to_remove:
        model.delete_connection(connection_id)
    for connection in plan.to_update:
        if current.get(connection.id) != connection.to_payload():
            model.add_connection(connection)
    for connection in plan.to_add:
        model.add_connection(connection)


def sync_elements(
    model: CanvasModel,
    proposed: Iterable[CanvasElement | Mapping[str, Any]],
    *,
    append_heuristic: bool = True,
) -> ReconcilePlan[CanvasElement]:
    plan = reconcile_elements(model.elements, proposed, append_heuristic=append_heuristic)
    apply_element_plan(model, plan)
    return plan


def sync_connections(
    model: CanvasModel,
    proposed: Iterable[Connection | Mapping[str, Any]],
    *,
    append_heuristic: bool = True,
) -> ReconcilePlan[Connection]:
    plan = reconcile_connections(model.connections, proposed, append_heuristic=append_heuristic)
    apply_connection_plan(model, plan)
    return plan
