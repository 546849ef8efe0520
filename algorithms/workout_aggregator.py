from collections import OrderedDict
from typing import Iterable


class WorkoutAggregator:
    """Reshape flat set-log rows into nested workout logs.

    Each input row is ``(workout_id, workout_date, exercise_id, exercise_name,
    set_number, reps, weight)``. Workouts are emitted in the order their id is
    first seen, exercises in the order their id is first seen within the
    workout, and sets exactly in input order. Rows belonging to one workout
    do not have to be contiguous.
    """

    @staticmethod
    def aggregate(rows: Iterable[tuple]) -> list[dict]:
        """Return workout logs grouped by workout and exercise id."""
        workouts: "OrderedDict[object, dict]" = OrderedDict()
        for (
            workout_id,
            workout_date,
            exercise_id,
            exercise_name,
            set_number,
            reps,
            weight,
        ) in rows:
            workout = workouts.get(workout_id)
            if workout is None:
                workout = {"date": workout_date, "exercises": OrderedDict()}
                workouts[workout_id] = workout
            exercise = workout["exercises"].get(exercise_id)
            if exercise is None:
                exercise = {"id": exercise_id, "name": exercise_name, "sets": []}
                workout["exercises"][exercise_id] = exercise
            exercise["sets"].append(
                {"setNumber": set_number, "reps": reps, "weight": weight}
            )
        return [
            {"date": w["date"], "exercises": list(w["exercises"].values())}
            for w in workouts.values()
        ]
