"""Tests for pulling action items, suggestions and data references out of coach replies."""

from datetime import date, datetime, timezone

from app.schemas.context import AIContext, GoalEntry, WorkoutEntry
from app.schemas.workout import Exercise
from app.services.coach_extraction import extract_action_items, extract_references, extract_suggestions

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


def test_action_items_typed_and_prioritised():
    text = "You should add one more workout on Friday. I recommend a critical rest day after heavy legs."
    items = extract_action_items(text)
    assert [i.type for i in items] == ["workout", "rest"]
    assert items[0].description == "add one more workout on Friday"
    assert items[0].priority == "medium"
    assert items[1].priority == "high"


def test_hedged_action_is_low_priority():
    items = extract_action_items("Consider protein you might be missing at breakfast.")
    assert items[0].type == "nutrition"
    assert items[0].priority == "low"


def test_numbered_steps_are_actions_and_capped_at_three():
    text = "Next steps:\n1. Log your meals\n2. Weigh in on Monday\n3. Add a deload week\n4. Sleep 8 hours"
    items = extract_action_items(text)
    assert len(items) == 3


def test_suggestions():
    text = "You could swap rice for quinoa. Try adding a walk after dinner! Experiment with tempo squats."
    assert extract_suggestions(text) == ["swap rice for quinoa", "adding a walk after dinner", "tempo squats"]


def test_no_matches():
    assert extract_action_items("Great job this week") == []
    assert extract_suggestions("") == []


def test_references_last_workout_and_goals():
    context = AIContext(
        user_id=1,
        recent_workouts=[
            WorkoutEntry(id=7, date=NOW, exercises=[Exercise(name="squat"), Exercise(name="lunge")]),
        ],
        goals=[
            GoalEntry(id=3, type="weight_loss", target_value=75, target_date=date(2026, 6, 1)),
            GoalEntry(id=4, type="strength", target_value=140),
        ],
    )
    refs = extract_references("Your last workout was solid and your weight loss is on track.", context, NOW)

    assert [(r.type, r.id) for r in refs] == [("workout", 7), ("goal", 3)]
    assert refs[0].summary == "2 exercises"
    assert refs[1].summary == "weight_loss: 75.0"
    assert refs[1].date == date(2026, 6, 1)


def test_references_without_workouts():
    context = AIContext(user_id=1)
    assert extract_references("Since your last workout...", context) == []
