# Domain Scheduling Package
from .codec import decode_parameters, encode_parameters, parameters_to_dict, parse_parameters
from .models import (
    Category,
    CategoryDeleteStrategy,
    DashboardItem,
    Item,
    ParameterSet,
    Rating,
    ReviewOutcome,
    SchedulingState,
    Urgency,
)
from .ports import CategoryStore, ItemRepository, ReviewLog, SettingsStore

__all__ = [
    "Category",
    "CategoryDeleteStrategy",
    "CategoryStore",
    "DashboardItem",
    "Item",
    "ItemRepository",
    "ParameterSet",
    "Rating",
    "ReviewLog",
    "ReviewOutcome",
    "SchedulingState",
    "SettingsStore",
    "Urgency",
    "decode_parameters",
    "encode_parameters",
    "parameters_to_dict",
    "parse_parameters",
]
