"""Batch planner: partition a block forest into creation requests.

The descendant-creation endpoint accepts a bounded number of blocks per
request, and a block can only be attached under an anchor that already
exists.  :class:`BatchPlanner` turns the forest into an ordered list of
:class:`UploadUnit` values that, submitted in order, recreate every block
exactly once with each request strictly below the ceiling.

Three passes:

1. **Unitize** -- one unit per top-level block, carrying its whole subtree.
2. **Split** -- a unit at or over the ceiling is broken up: its top block
   becomes a unit of its own, and each of that block's children starts a
   sub-unit anchored at it, recursively.
3. **Merge** -- consecutive units with the same anchor are packed together
   while the combined size stays under the ceiling.
"""

from __future__ import annotations

from larkify.config import DEFAULT_MAX_BLOCKS_PER_REQUEST
from larkify.models import BlockForest, UploadUnit
from larkify.observability import get_logger

log = get_logger("larkify.batch")


class BatchPlanner:
    """Plans upload units for one forest.

    Parameters
    ----------
    max_blocks_per_request:
        The ceiling.  Every planned unit holds strictly fewer blocks.  Must
        be at least 2 so that a lone block always fits.
    """

    def __init__(self, max_blocks_per_request: int = DEFAULT_MAX_BLOCKS_PER_REQUEST) -> None:
        if max_blocks_per_request < 2:
            raise ValueError(
                f"max_blocks_per_request must be >= 2, got {max_blocks_per_request}"
            )
        self._ceiling = max_blocks_per_request

    @property
    def ceiling(self) -> int:
        return self._ceiling

    def plan(self, forest: BlockForest, anchor_id: str) -> list[UploadUnit]:
        """Compute the ordered upload units for *forest*.

        Parameters
        ----------
        forest:
            Blocks in depth-first pre-order, as built by the walker.  The
            planner never mutates it.
        anchor_id:
            Where top-level blocks are attached (the document id).

        Returns
        -------
        list[UploadUnit]
            Units to submit in order.  Empty for an empty forest.
        """
        if not len(forest):
            return []

        units: list[UploadUnit] = []
        for unit in self._unitize(forest, anchor_id):
            units.extend(self._split_unit(unit, forest))
        merged = self._merge_units(units)

        log.debug(
            "Planned upload units",
            extra={
                "extra_fields": {
                    "op": "plan",
                    "blocks": len(forest),
                    "units": len(merged),
                    "ceiling": self._ceiling,
                }
            },
        )
        return merged

    # -- passes ------------------------------------------------------------

    def _unitize(self, forest: BlockForest, anchor_id: str) -> list[UploadUnit]:
        """One unit per structural root, in forest order.

        A block that no other block lists as a child starts a new unit;
        every other block joins the descendants of the latest unit.
        """
        child_ids = {child_id for block in forest for child_id in block.children}
        units: list[UploadUnit] = []
        for block in forest:
            if block.id not in child_ids:
                units.append(UploadUnit(anchor_id=anchor_id, children=[block.id]))
            elif units:
                units[-1].descendants.append(block.id)
            else:
                raise ValueError(f"block {block.id!r} precedes every root")
        return units

    def _split_unit(self, unit: UploadUnit, forest: BlockForest) -> list[UploadUnit]:
        """Break *unit* up until every piece is under the ceiling.

        *unit* must hold a single top-level block with its descendants in
        depth-first pre-order.  Descendants are routed by membership in the
        top block's ``children``, so a direct child opens a sub-unit and
        the blocks that follow belong to it until the next direct child.
        """
        if unit.size < self._ceiling:
            return [unit]
        if len(unit.children) != 1:
            raise ValueError(
                f"cannot split a unit with {len(unit.children)} top-level blocks"
            )

        root_id = unit.children[0]
        direct = set(forest.get(root_id).children)

        sub_units: list[UploadUnit] = []
        for block_id in unit.descendants:
            if block_id in direct:
                sub_units.append(UploadUnit(anchor_id=root_id, children=[block_id]))
            elif sub_units:
                sub_units[-1].descendants.append(block_id)
            else:
                raise ValueError(
                    f"descendant {block_id!r} of {root_id!r} precedes its first child"
                )

        result = [UploadUnit(anchor_id=unit.anchor_id, children=[root_id])]
        for sub_unit in sub_units:
            result.extend(self._split_unit(sub_unit, forest))
        return result

    def _merge_units(self, units: list[UploadUnit]) -> list[UploadUnit]:
        """Pack consecutive same-anchor units while staying under the ceiling."""
        merged: list[UploadUnit] = []
        running: UploadUnit | None = None
        for unit in units:
            if (
                running is not None
                and running.anchor_id == unit.anchor_id
                and running.size + unit.size < self._ceiling
            ):
                running.children.extend(unit.children)
                running.descendants.extend(unit.descendants)
                continue
            if running is not None:
                merged.append(running)
            running = UploadUnit(
                anchor_id=unit.anchor_id,
                children=list(unit.children),
                descendants=list(unit.descendants),
            )
        if running is not None:
            merged.append(running)
        return merged
