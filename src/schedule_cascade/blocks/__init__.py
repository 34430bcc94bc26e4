from .assigner import (
    assign_blocks,
    compute_blocks_for_trips,
    compute_trip_window,
    needs_block_recompute,
    reassign_blocks_if_needed,
    trips_from_time_matrix,
)

__all__ = ["assign_blocks",
           "compute_blocks_for_trips",
           "compute_trip_window",
           "needs_block_recompute",
           "reassign_blocks_if_needed",
           "trips_from_time_matrix"]
