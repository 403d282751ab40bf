"""Exercise and intensity presets offered by the selection screen."""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Exercise:
    name: str
    category: str


@dataclass(frozen=True)
class Intensity:
    name: str
    reps: int


EXERCISES: Dict[str, Exercise] = {
    "lateral-raises": Exercise("Lateral Raises", "Arms"),
    "elbow-stretch": Exercise("Elbow Stretch", "Arms"),
    "wrist-exercise": Exercise("Wrist Exercise", "Arms"),
    "straight-leg-raise": Exercise("Straight Leg Raise", "Legs"),
    "ankle-rom": Exercise("Ankle Range-of-Motion", "Legs"),
    "hip-abduction": Exercise("Hip Abduction", "Legs"),
}

INTENSITIES: Dict[str, Intensity] = {
    "light": Intensity("Light", 10),
    "moderate": Intensity("Moderate", 15),
    "vigorous": Intensity("Vigorous", 30),
}


def get_exercise(key: str) -> Exercise:
    try:
        return EXERCISES[key]
    except KeyError:
        raise KeyError(f"unknown exercise: {key!r}") from None


def get_intensity(key: str) -> Intensity:
    try:
        return INTENSITIES[key]
    except KeyError:
        raise KeyError(f"unknown intensity: {key!r}") from None


def describe(exercise: str, intensity: str) -> str:
    """Subtitle shown on the exercise page, e.g. 'Lateral Raises - Light (10 reps)'."""
    ex = get_exercise(exercise)
    it = get_intensity(intensity)
    return f"{ex.name} - {it.name} ({it.reps} reps)"
