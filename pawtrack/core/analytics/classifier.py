"""Rule-based activity classification.

Maps one detected subject plus the rest of the frame's predictions, the
subject's movement since the previous frame and the configured zones to a
single activity label. Rules run in a fixed order and later matches overwrite
earlier ones.
"""

from __future__ import annotations

import math

from pawtrack.core.types import Activity, Centroid, Classification, Detection
from pawtrack.core.zones import Zones, calculate_distance

# Zone proximity (pixels) and movement limits (pixels per frame).
FEEDING_ZONE_RADIUS = 150.0
BED_ZONE_RADIUS = 200.0
OBJECT_RADIUS = 100.0
STILL_MOVEMENT = 5.0
SLEEP_MOVEMENT = 2.0
STANDING_MOVEMENT = 10.0
WALKING_MOVEMENT = 30.0

ZONE_CONFIDENCE = 0.85
SLEEP_CONFIDENCE = 0.9
OBJECT_CONFIDENCE = 0.8

DRINKING_OBJECTS = {"cup", "bottle"}
EATING_OBJECTS = {"bowl"}

MERGE_MODES = ("order", "confidence")


def calculate_movement(current: Centroid, previous: Centroid | None) -> float:
    """Return the centroid displacement between two frames (0 without history)."""

    if previous is None:
        return 0.0
    return math.hypot(current.center_x - previous.center_x, current.center_y - previous.center_y)


def _movement_fallback(movement: float) -> Activity:
    if movement < SLEEP_MOVEMENT:
        return Activity.SLEEPING_LYING
    if movement < STANDING_MOVEMENT:
        return Activity.STANDING_SITTING
    if movement < WALKING_MOVEMENT:
        return Activity.WALKING
    return Activity.RUNNING_PLAYING


def classify_activity(
    subject: Detection,
    predictions: list[Detection],
    movement: float,
    zones: Zones,
    *,
    merge: str = "order",
) -> Classification:
    """Classify the subject's current activity.

    Args:
        subject: The tracked animal (or person) detection.
        predictions: Every detection of the frame; bowls, cups and bottles
            near the subject count as feeding objects.
        movement: Centroid displacement since the previous frame.
        zones: Currently placed zones; unset zones are skipped.
        merge: "order" lets a nearby feeding object overwrite any earlier
            label. "confidence" only lets it replace a zone label with a
            lower confidence.

    Returns:
        The activity label and its confidence. Never fails: with no rule
        firing the movement fallback uses the subject's own score.
    """

    center = subject.centroid
    cx, cy = center.center_x, center.center_y

    activity = Activity.UNKNOWN
    confidence = float(subject.score)
    zone_matched = False

    food = zones.get("food")
    if food is not None:
        if calculate_distance(cx, cy, food.x, food.y) < FEEDING_ZONE_RADIUS and movement < STILL_MOVEMENT:
            activity = Activity.EATING
            confidence = ZONE_CONFIDENCE
            zone_matched = True

    water = zones.get("water")
    if water is not None:
        if calculate_distance(cx, cy, water.x, water.y) < FEEDING_ZONE_RADIUS and movement < STILL_MOVEMENT:
            activity = Activity.DRINKING
            confidence = ZONE_CONFIDENCE
            zone_matched = True

    bed = zones.get("bed")
    if bed is not None and calculate_distance(cx, cy, bed.x, bed.y) < BED_ZONE_RADIUS:
        if movement < SLEEP_MOVEMENT:
            activity = Activity.SLEEPING
            confidence = SLEEP_CONFIDENCE
            zone_matched = True
        elif movement < STILL_MOVEMENT:
            activity = Activity.RESTING
            confidence = ZONE_CONFIDENCE
            zone_matched = True

    if activity is Activity.UNKNOWN:
        activity = _movement_fallback(movement)

    for obj in predictions:
        if obj.class_name in DRINKING_OBJECTS:
            label = Activity.DRINKING
        elif obj.class_name in EATING_OBJECTS:
            label = Activity.EATING
        else:
            continue
        obj_center = obj.centroid
        dist = calculate_distance(cx, cy, obj_center.center_x, obj_center.center_y)
        if dist >= OBJECT_RADIUS or movement >= STILL_MOVEMENT:
            continue
        if merge == "confidence" and zone_matched and confidence >= OBJECT_CONFIDENCE:
            continue
        activity = label
        confidence = OBJECT_CONFIDENCE

    return Classification(activity=activity, confidence=confidence)
