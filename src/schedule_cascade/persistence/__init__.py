from .serialization import load_schedule, save_schedule, schedule_from_dict, schedule_to_dict
from .stores import FileScheduleStore, InMemoryScheduleStore, SchedulePersistencePort

__all__ = ["FileScheduleStore",
           "InMemoryScheduleStore",
           "SchedulePersistencePort",
           "load_schedule",
           "save_schedule",
           "schedule_from_dict",
           "schedule_to_dict"]
