import logging

from db import CatalogRepository


log = logging.getLogger(__name__)

# session name -> (type, description, {exercise name -> (description, sets, reps)})
TRAINING_PLAN = {
    "Pull Day A": (
        "pull",
        "Back and biceps focused workout",
        {
            "Pull-ups": ("Bodyweight back exercise", 3, "6 - 8"),
            "Barbell Rows": ("Heavy rowing movement", 4, "8 - 10"),
            "Bicep Curls": ("Isolation bicep exercise", 3, "10-12"),
        },
    ),
    "Pull Day B": (
        "pull",
        "Lat and rear delt focused workout",
        {
            "Lat Pulldowns": ("Lat focused pulling", 4, "10 - 12"),
            "Face Pulls": ("Rear delt and mid trap exercise", 3, "15-20"),
            "Hammer Curls": ("Neutral grip bicep exercise", 3, "12"),
        },
    ),
    "Push Day A": (
        "push",
        "Chest and triceps focused workout",
        {
            "Bench Press": ("Primary chest exercise", 4, "5,4,3+ each"),
            "Overhead Press": ("Shoulder pressing movement", 3, "6 - 8"),
            "Tricep Dips": ("Bodyweight tricep exercise", 3, "8-12"),
        },
    ),
    "Push Day B": (
        "push",
        "Shoulders and triceps focused workout",
        {
            "Incline Dumbbell Press": ("Upper chest focused press", 4, "8 - 10"),
            "Lateral Raises": ("Side delt isolation", 3, "12-15"),
            "Tricep Extensions": ("Overhead tricep exercise", 3, "10"),
        },
    ),
    "Leg Day A": (
        "legs",
        "Quad and glute focused workout",
        {
            "Squats": ("Primary leg compound movement", 4, "4/6/8"),
            "Bulgarian Split Squats": ("Single leg quad exercise", 3, "8 - 10"),
            "Hip Thrusts": ("Glute focused exercise", 3, "10-12"),
        },
    ),
    "Leg Day B": (
        "legs",
        "Hamstring and calf focused workout",
        {
            "Romanian Deadlifts": ("Hamstring focused movement", 4, "8/10/12"),
            "Walking Lunges": ("Dynamic leg exercise", 3, "12"),
            "Calf Raises": ("Calf isolation exercise", 4, "15-20"),
        },
    ),
    "Full Body A": (
        "other",
        "Complete body compound movements",
        {
            "Deadlifts": ("Full body compound movement", 3, "5,3,1+ each"),
            "Push-ups": ("Bodyweight chest exercise", 3, "15 - 20"),
            "Bodyweight Squats": ("Bodyweight leg exercise", 3, "20"),
        },
    ),
    "Core & Cardio": (
        "other",
        "Core strengthening and cardio",
        {
            "Plank": ("Core stability exercise", 3, "60"),
            "Mountain Climbers": ("Cardio and core exercise", 4, "20-30"),
            "Russian Twists": ("Oblique focused exercise", 3, "15 - 20"),
        },
    ),
}


def parse_target_repetitions(text: str) -> int:
    """Return the lower-bound repetition count from a rep-target string.

    ``"10 - 12"`` and ``"15-20"`` are ranges, ``"4/6/8"`` is a ladder and
    ``"5,4,3+ each"`` a descending scheme; all yield their first number.
    A leading token that is not an integer raises ``ValueError``.
    """
    if " - " in text:
        head = text.split(" - ", 1)[0]
    elif "-" in text:
        head = text.split("-", 1)[0]
    elif "/" in text:
        head = text.split("/", 1)[0]
    elif "," in text:
        head = text.split(",", 1)[0]
    else:
        head = text
    return int(head)


def build_catalog(plan: dict = TRAINING_PLAN) -> list[dict]:
    """Expand ``plan`` into the nested rows written by ``CatalogRepository``."""
    sessions = []
    for session_name, (session_type, description, exercises) in plan.items():
        entries = []
        for name, (ex_description, sets, reps) in exercises.items():
            target = parse_target_repetitions(reps)
            entries.append(
                {
                    "name": name,
                    "description": ex_description,
                    "target_series": sets,
                    "series": [(n, target, 0.0) for n in range(1, sets + 1)],
                }
            )
        sessions.append(
            {
                "name": session_name,
                "type": session_type,
                "description": description,
                "exercises": entries,
            }
        )
    return sessions


def initialize_training_data(catalog: CatalogRepository) -> dict:
    """Insert the full training catalog. Calling twice duplicates every row."""
    try:
        created = catalog.create_catalog(build_catalog())
    except Exception:
        log.exception("training data initialization failed")
        raise
    log.info(
        "initialized %d sessions, %d exercises, %d series",
        len(created["training_sessions"]),
        len(created["exercises"]),
        len(created["series"]),
    )
    return created
