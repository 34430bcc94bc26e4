from .generator import BlockConfiguration, block_start_times, generate_trips

__all__ = ["BlockConfiguration", "block_start_times", "generate_trips"]
