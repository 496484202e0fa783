import asyncio
from datetime import datetime, timedelta

import pytest

from calma_dialog.models import (
    EmotionalState,
    GoalStatus,
    ProgressContext,
    ProgressEntry,
    SessionMetrics,
)
from calma_dialog.tracking import GoalTracker, ProgressTracker, TherapeuticRecordService

LONG_TEXT = "Hoy practiqué la respiración antes de la reunión y noté que me ayudó bastante a calmarme"


def _entry(emotion: str, intensity: int, moment: datetime, **context) -> ProgressEntry:
    return ProgressEntry(
        timestamp=moment,
        emotional_state=EmotionalState(main_emotion=emotion, intensity=intensity),
        context=ProgressContext(**context),
        session_metrics=SessionMetrics(duration_seconds=2.0, message_count=3, response_quality=4),
    )


@pytest.mark.asyncio
async def test_progress_entry_round_trip(store):
    tracker = ProgressTracker(store)
    entry = _entry("tristeza", 7, datetime(2024, 5, 6, 10, 30), topic="WORK_STUDY")

    progress = await tracker.append_entry("user-1", entry)

    assert progress.entries[-1] == entry
    assert progress.entries[-1].emotional_state.main_emotion == "tristeza"
    assert progress.entries[-1].emotional_state.intensity == 7
    assert progress.overall_metrics.total_sessions == 1
    assert progress.last_update == entry.timestamp


@pytest.mark.asyncio
async def test_overall_metrics_follow_the_log(store):
    tracker = ProgressTracker(store)
    moment = datetime(2024, 5, 6, 10)

    await tracker.append_entry("user-1", _entry("tristeza", 8, moment, coping_strategies=["respiré"]))
    await tracker.append_entry("user-1", _entry("tristeza", 6, moment + timedelta(hours=1)))
    progress = await tracker.append_entry("user-1", _entry("alegria", 4, moment + timedelta(hours=2)))

    metrics = progress.overall_metrics
    assert metrics.total_sessions == 3
    assert metrics.average_session_duration == pytest.approx(2.0)
    assert metrics.emotional_trends.average_intensity == pytest.approx(6.0)
    top = metrics.emotional_trends.predominant_emotions[0]
    assert (top.emotion, top.frequency) == ("tristeza", pytest.approx(2 / 3))
    assert metrics.common_topics[0].topic == "GENERAL"
    assert metrics.effective_coping_strategies[0].strategy == "respiré"
    assert metrics.effective_coping_strategies[0].effectiveness == pytest.approx(4.0)


def test_milestones_for_text():
    text = "Me di cuenta de que me siento mejor cuando respiré hondo"

    assert ProgressTracker.milestones_for(text) == [
        "EMOTIONAL_AWARENESS",
        "COPING_STRATEGIES",
        "SELF_REFLECTION",
    ]
    assert ProgressTracker.milestones_for("Hola") == []


@pytest.mark.asyncio
async def test_emotional_profile_from_log(store):
    tracker = ProgressTracker(store)
    morning = datetime(2024, 5, 6, 9)

    triggers = ["catastrophizing"]
    await tracker.append_entry("user-1", _entry("ansiedad", 7, morning, triggers=triggers))
    await tracker.append_entry("user-1", _entry("ansiedad", 6, morning + timedelta(days=1), triggers=triggers))
    await tracker.append_entry("user-1", _entry("alegria", 3, morning.replace(hour=20)))

    profile = await tracker.emotional_profile("user-1")

    first = profile.predominant_emotions[0]
    assert first.emotion == "ansiedad"
    assert first.frequency == 2
    assert first.time_pattern["morning"] == 2
    assert profile.triggers[0].trigger == "catastrophizing"
    assert profile.triggers[0].frequency == 2


@pytest.mark.asyncio
async def test_empty_profile_for_unknown_user(store):
    profile = await ProgressTracker(store).emotional_profile("nobody")

    assert profile.predominant_emotions == []


@pytest.mark.asyncio
async def test_goal_progress_and_completion(store):
    tracker = GoalTracker(store)
    moment = datetime(2024, 5, 6, 10)

    touched = await tracker.update_from_message("user-1", "Quiero estar más tranquilo", "ansiedad", now=moment)
    goals = await tracker.get("user-1")

    assert touched == ["emotional_wellbeing"]
    goal = goals.goals["emotional_wellbeing"]
    assert goal.progress == pytest.approx(20.0)
    assert goal.status is GoalStatus.EN_PROGRESO
    assert len(goal.milestones) == 1
    assert goal.milestones[0].emotional_state == "ansiedad"

    for day in range(1, 6):
        await tracker.update_from_message(
            "user-1", "Hoy me siento en paz", "alegria", now=moment + timedelta(days=day)
        )

    goal = (await tracker.get("user-1")).goals["emotional_wellbeing"]
    assert goal.progress == pytest.approx(100.0)
    assert goal.status is GoalStatus.COMPLETADO
    assert len(goal.milestones) == 5


@pytest.mark.asyncio
async def test_concurrent_goal_updates_both_count(store):
    tracker = GoalTracker(store)
    await tracker.update_from_message("user-1", "Quiero estar tranquila", "ansiedad")

    await asyncio.gather(
        tracker.update_from_message("user-1", "Busco un poco de paz", "ansiedad"),
        tracker.update_from_message("user-1", "Hoy estoy más tranquila", "alegria"),
    )

    goal = (await tracker.get("user-1")).goals["emotional_wellbeing"]
    assert goal.progress == pytest.approx(60.0)
    assert len(goal.milestones) == 3


@pytest.mark.asyncio
async def test_unrelated_text_touches_no_goal(store):
    touched = await GoalTracker(store).update_from_message("user-1", "Hola", "neutral")

    assert touched == []
    assert await store.get("goals", "user-1") is None


@pytest.mark.asyncio
async def test_reset_and_abandon_goal(store):
    tracker = GoalTracker(store)
    await tracker.update_from_message("user-1", "Necesito aprobar el examen", "miedo")

    assert await tracker.reset_goal("user-1", "academic_progress") is True
    goal = (await tracker.get("user-1")).goals["academic_progress"]
    assert goal.progress == 0.0
    assert goal.status is GoalStatus.PENDIENTE

    assert await tracker.abandon_goal("user-1", "academic_progress") is True
    assert await tracker.update_from_message("user-1", "Quiero aprobar", "miedo") == []
    goal = (await tracker.get("user-1")).goals["academic_progress"]
    assert goal.status is GoalStatus.ABANDONADO

    assert await tracker.reset_goal("user-1", "self_improvement") is False


@pytest.mark.asyncio
async def test_therapeutic_session_updates_metrics(store):
    service = TherapeuticRecordService(store)
    moment = datetime(2024, 5, 6, 18)

    record = await service.append_session(
        "user-1",
        emotion="ansiedad",
        intensity=4,
        tools=["respiración 4-7-8"],
        text=LONG_TEXT,
        resource_mentioned=True,
        now=moment,
    )

    assert record.progress_metrics.emotional_stability == 6
    assert record.progress_metrics.tool_mastery == 2
    assert record.progress_metrics.engagement_level == 6
    assert record.current_status.emotion == "ansiedad"
    assert record.active_tools == ["respiración 4-7-8"]

    record = await service.append_session(
        "user-1",
        emotion="enojo",
        intensity=9,
        tools=["respiración 4-7-8", "tiempo fuera"],
        text="Estoy furioso",
        now=moment + timedelta(hours=1),
    )

    assert len(record.sessions) == 2
    assert record.active_tools == ["respiración 4-7-8", "tiempo fuera"]
    assert record.progress_metrics.emotional_stability == 5
    assert record.progress_metrics.tool_mastery == 2
    assert record.progress_metrics.engagement_level == 5


@pytest.mark.asyncio
async def test_therapeutic_metrics_are_clamped(store):
    service = TherapeuticRecordService(store)

    for _ in range(8):
        record = await service.append_session(
            "user-1", emotion="alegria", intensity=2, tools=[], text=LONG_TEXT, resource_mentioned=True
        )

    assert record.progress_metrics.emotional_stability == 10
    assert record.progress_metrics.tool_mastery == 9
    assert record.progress_metrics.engagement_level == 10
    assert record.active_tools == []


@pytest.mark.asyncio
async def test_concurrent_sessions_both_move_metrics(store):
    service = TherapeuticRecordService(store)
    await service.get("user-1")

    await asyncio.gather(
        service.append_session("user-1", emotion="alegria", intensity=3, tools=[], text=LONG_TEXT),
        service.append_session("user-1", emotion="alegria", intensity=2, tools=[], text=LONG_TEXT),
    )

    record = await service.get("user-1")
    assert record.progress_metrics.emotional_stability == 7
    assert record.progress_metrics.engagement_level == 7
    assert len(record.sessions) == 2
