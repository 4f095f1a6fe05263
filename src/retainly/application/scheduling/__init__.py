# Application Scheduling Package
from .engine import ScheduleEngine
from .resolver import ParameterResolver, ResolvedScope
from .service import ReviewService, SubmittedReview
from .urgency import UrgencyClassifier, sort_by_urgency, whole_days_between

__all__ = [
    "ParameterResolver",
    "ResolvedScope",
    "ReviewService",
    "ScheduleEngine",
    "SubmittedReview",
    "UrgencyClassifier",
    "sort_by_urgency",
    "whole_days_between",
]
