from .trips import AddTripRequest, TripInsertMode, add_trip, delete_trip, end_trip, restore_trip

__all__ = ["AddTripRequest", "TripInsertMode", "add_trip", "delete_trip", "end_trip", "restore_trip"]
