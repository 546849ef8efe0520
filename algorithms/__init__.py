from .workout_aggregator import WorkoutAggregator
from .progress_series import ProgressSeriesBuilder

__all__ = ["WorkoutAggregator", "ProgressSeriesBuilder"]
