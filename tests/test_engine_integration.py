"""
Integration tests for CalibrationEngine.

Each scenario feeds a realistic sequence of working sets and AMRAPs through
the public engine API and checks the calibration and RIR prescription that
come out the other end.
"""

import threading
from datetime import datetime, timedelta

import pytest

from effort_calibration.core.bias import (
    ACCURATE,
    LEAVES_MORE_IN_RESERVE,
    PUSHES_CLOSER_TO_FAILURE,
)
from effort_calibration.core.config import CalibrationConfig
from effort_calibration.core.engine import CalibrationEngine
from effort_calibration.core.models import (
    OutOfOrderObservationError,
    RepRange,
    SetObservation,
    ValidationError,
)

T0 = datetime(2026, 3, 2, 18, 0)


def _set(
    reps: int,
    *,
    day: float,
    weight: float = 100.0,
    rir: int = 2,
    amrap: bool = False,
    exercise_id: str = "bench_press",
) -> SetObservation:
    return SetObservation(
        exercise_id=exercise_id,
        exercise_name=exercise_id.replace("_", " ").title(),
        weight=weight,
        prescribed_reps=RepRange(min=6, max=None if amrap else 10),
        actual_reps=reps,
        reported_rir=0 if amrap else rir,
        was_amrap=amrap,
        timestamp=T0 + timedelta(days=day),
    )


def _calibrate(
    engine: CalibrationEngine,
    amrap_reps: int,
    events: int,
    *,
    exercise_id: str = "bench_press",
    start_day: float = 0,
):
    """
    Alternate a 100 x 8 working set with a 100kg AMRAP, one day apart.

    The working set predicts exactly 8 reps at 100, so each AMRAP's bias is
    ``amrap_reps - 8``.
    """
    results = []
    for i in range(events):
        day = start_day + 2 * i
        assert engine.record_set(_set(8, day=day, exercise_id=exercise_id)) is None
        results.append(
            engine.record_set(
                _set(amrap_reps, day=day + 1, amrap=True, exercise_id=exercise_id)
            )
        )
    return results


class TestFirstObservations:
    def test_first_amrap_without_context_is_stored_only(self):
        engine = CalibrationEngine()
        assert engine.record_set(_set(10, day=0, amrap=True)) is None
        assert engine.get_calibration("bench_press") is None
        assert engine.sample_count("bench_press") == 1

    def test_stored_amrap_is_not_context_for_the_next(self):
        engine = CalibrationEngine()
        engine.record_set(_set(10, day=0, amrap=True))
        assert engine.record_set(_set(10, day=1, amrap=True)) is None

    def test_regular_sets_return_none(self):
        engine = CalibrationEngine()
        for day in range(3):
            assert engine.record_set(_set(8, day=day)) is None
        assert engine.sample_count("bench_press") == 3

    def test_unknown_exercise_queries(self):
        engine = CalibrationEngine()
        assert engine.get_calibration("nope") is None
        target = engine.get_adjusted_target("nope", 2)
        assert not target.has_adjustment
        assert target.prescribed_rir == 2
        assert target.internal_target_rir == 2
        assert engine.sample_count("nope") == 0


class TestSandbagger:
    """A trainee who reports RIR 2 but has ~3 more reps than predicted."""

    def test_confidence_grows_with_events(self):
        engine = CalibrationEngine()
        results = _calibrate(engine, amrap_reps=11, events=5)

        assert [r.confidence_level for r in results] == [
            "low", "low", "medium", "medium", "medium",
        ]
        assert [r.data_points for r in results] == [1, 2, 3, 4, 5]
        for r in results:
            assert r.predicted_max_reps == pytest.approx(8.0)
            assert r.bias == pytest.approx(3.0)
            assert r.bias_interpretation == LEAVES_MORE_IN_RESERVE

    def test_prescription_lowered(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=5)

        target = engine.get_adjusted_target("bench_press", nominal_rir=2)
        # max(0, round(2 - 3)) = 0
        assert target.has_adjustment
        assert target.prescribed_rir == 0
        assert target.internal_target_rir == 2
        assert target.confidence_level == "medium"
        assert "down by 2" in target.adjustment_reason

    def test_high_confidence_after_six(self):
        engine = CalibrationEngine()
        results = _calibrate(engine, amrap_reps=11, events=6)
        assert results[-1].confidence_level == "high"

        target = engine.get_adjusted_target("bench_press", nominal_rir=4)
        assert target.prescribed_rir == 1

    def test_low_confidence_guard(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=13, events=2)  # bias +5, only 2 points

        target = engine.get_adjusted_target("bench_press", nominal_rir=3)
        assert not target.has_adjustment
        assert target.prescribed_rir == 3
        assert target.confidence_level == "low"


class TestOverreacher:
    def test_prescription_raised(self):
        engine = CalibrationEngine()
        results = _calibrate(engine, amrap_reps=6, events=3)  # bias -2
        assert results[-1].bias_interpretation == PUSHES_CLOSER_TO_FAILURE

        target = engine.get_adjusted_target("bench_press", nominal_rir=2)
        assert target.has_adjustment
        assert target.prescribed_rir == 4
        assert "up by 2" in target.adjustment_reason


class TestAccurateTrainee:
    def test_no_adjustment(self):
        engine = CalibrationEngine()
        results = _calibrate(engine, amrap_reps=8, events=4)
        assert results[-1].bias_interpretation == ACCURATE
        assert results[-1].smoothed_bias == pytest.approx(0.0, abs=1e-9)

        target = engine.get_adjusted_target("bench_press", nominal_rir=2)
        assert not target.has_adjustment
        assert target.prescribed_rir == 2
        assert target.confidence_level == "medium"

    def test_zero_nominal_stays_zero(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=3)
        target = engine.get_adjusted_target("bench_press", nominal_rir=0)
        assert target.prescribed_rir == 0
        assert not target.has_adjustment

    def test_negative_nominal_rejected(self):
        engine = CalibrationEngine()
        with pytest.raises(ValidationError):
            engine.get_adjusted_target("bench_press", nominal_rir=-1)


class TestOrdering:
    def test_out_of_order_rejected_without_mutation(self):
        engine = CalibrationEngine()
        engine.record_set(_set(8, day=5))

        with pytest.raises(OutOfOrderObservationError):
            engine.record_set(_set(9, day=3))
        assert engine.sample_count("bench_press") == 1

    def test_out_of_order_amrap_does_not_calibrate(self):
        engine = CalibrationEngine()
        engine.record_set(_set(8, day=1))
        engine.record_set(_set(8, day=5))
        with pytest.raises(ValidationError):
            engine.record_set(_set(12, day=2, amrap=True))
        assert engine.get_calibration("bench_press") is None

    def test_equal_timestamps_allowed(self):
        engine = CalibrationEngine()
        engine.record_set(_set(8, day=1))
        engine.record_set(_set(9, day=1))
        assert engine.sample_count("bench_press") == 2

    def test_same_instant_set_is_not_context(self):
        engine = CalibrationEngine()
        engine.record_set(_set(8, day=1))
        assert engine.record_set(_set(10, day=1, amrap=True)) is None

    def test_ordering_is_per_exercise(self):
        engine = CalibrationEngine()
        engine.record_set(_set(8, day=5, exercise_id="squat"))
        engine.record_set(_set(8, day=1, exercise_id="bench_press"))
        assert engine.sample_count("bench_press") == 1

    def test_mixed_timezone_awareness_rejected(self):
        from datetime import timezone

        engine = CalibrationEngine()
        engine.record_set(_set(8, day=1))
        aware = SetObservation(
            exercise_id="bench_press",
            exercise_name="Bench Press",
            weight=100.0,
            prescribed_reps=RepRange(6, 10),
            actual_reps=8,
            reported_rir=2,
            was_amrap=False,
            timestamp=datetime(2026, 3, 10, tzinfo=timezone.utc),
        )
        with pytest.raises(ValidationError):
            engine.record_set(aware)

    def test_non_observation_rejected(self):
        engine = CalibrationEngine()
        with pytest.raises(ValidationError):
            engine.record_set({"exercise_id": "bench_press"})  # type: ignore[arg-type]


class TestRetention:
    def test_stale_context_ignored(self):
        engine = CalibrationEngine()
        engine.record_set(_set(8, day=0))
        assert engine.record_set(_set(10, day=40, amrap=True)) is None

    def test_old_bias_samples_age_out(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=13, events=1, start_day=0)
        results = _calibrate(engine, amrap_reps=9, events=1, start_day=40)

        assert results[0].smoothed_bias == pytest.approx(1.0)
        assert results[0].data_points == 2
        assert engine.aggregator.get_state("bench_press").window_size == 1

    def test_bias_window_capped(self):
        engine = CalibrationEngine(CalibrationConfig(max_window_samples=4))
        results = _calibrate(engine, amrap_reps=10, events=6)
        assert engine.aggregator.get_state("bench_press").window_size == 4
        assert results[-1].data_points == 6
        assert engine.sample_count("bench_press") == 4


    def test_weekly_amraps_reach_high_confidence(self):
        # One working set and one AMRAP a week for eight weeks
        engine = CalibrationEngine()
        results = []
        for week in range(8):
            engine.record_set(_set(8, day=7 * week))
            results.append(engine.record_set(_set(11, day=7 * week + 1, amrap=True)))

        assert [(r.data_points, r.confidence_level) for r in results] == [
            (1, "low"), (2, "low"), (3, "medium"), (4, "medium"),
            (5, "medium"), (6, "high"), (7, "high"), (8, "high"),
        ]
        assert results[-1].smoothed_bias == pytest.approx(3.0)

        target = engine.get_adjusted_target("bench_press", nominal_rir=4)
        assert target.confidence_level == "high"
        assert target.prescribed_rir == 1


class TestBadInput:
    @pytest.mark.parametrize("weight", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_weight_rejected(self, weight):
        with pytest.raises(ValidationError):
            _set(8, day=0, weight=weight)

    def test_non_finite_weight_never_reaches_calibration(self):
        engine = CalibrationEngine()
        for i in range(3):
            with pytest.raises(ValidationError):
                engine.record_set(_set(8, day=2 * i, weight=float("inf")))
            engine.record_set(_set(11, day=2 * i + 1, amrap=True))

        assert engine.get_calibration("bench_press") is None
        target = engine.get_adjusted_target("bench_press", 2)
        assert target.prescribed_rir == 2

    @pytest.mark.parametrize("reps", [8.5, True, "8"])
    def test_non_integer_reps_rejected(self, reps):
        with pytest.raises(ValidationError):
            _set(reps, day=0)

    @pytest.mark.parametrize("rir", [1.5, False])
    def test_non_integer_rir_rejected(self, rir):
        with pytest.raises(ValidationError):
            _set(8, day=0, rir=rir)


class TestReplayAndReset:
    def test_replay_collects_results(self):
        history = []
        for i in range(3):
            history.append(_set(8, day=2 * i))
            history.append(_set(11, day=2 * i + 1, amrap=True))

        engine = CalibrationEngine()
        results = engine.replay(history)
        assert len(results) == 3
        assert results[-1].confidence_level == "medium"

    def test_replay_matches_live_ingestion(self):
        history = [_set(8, day=0), _set(10, day=1, amrap=True), _set(8, day=2),
                   _set(7, day=3, amrap=True)]

        live = CalibrationEngine()
        live_results = [r for r in (live.record_set(o) for o in history) if r]
        replayed = CalibrationEngine().replay(history)
        assert replayed == live_results

    def test_reset_one_exercise(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=3)
        _calibrate(engine, amrap_reps=11, events=3, exercise_id="squat")

        engine.reset("bench_press")
        assert engine.get_calibration("bench_press") is None
        assert engine.sample_count("bench_press") == 0
        assert engine.get_calibration("squat") is not None

        # Earlier timestamps are accepted again after a reset
        engine.record_set(_set(8, day=0))
        assert engine.sample_count("bench_press") == 1

    def test_reset_all(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=3)
        _calibrate(engine, amrap_reps=11, events=3, exercise_id="squat")
        engine.reset()
        assert engine.exercise_ids() == []
        assert engine.analyze_overall_bias().calibrated_exercises == 0


class TestReportedRirContext:
    def test_reported_rir_changes_prediction(self):
        engine = CalibrationEngine(CalibrationConfig(context_uses_reported_rir=True))
        # 8 reps @ RIR 2 means 10 to failure, so an AMRAP of 10 is accurate
        results = _calibrate(engine, amrap_reps=10, events=1)
        assert results[0].predicted_max_reps == pytest.approx(10.0)
        assert results[0].bias_interpretation == ACCURATE


class TestOverallAnalysis:
    def test_empty(self):
        analysis = CalibrationEngine().analyze_overall_bias()
        assert analysis.overall_bias == 0.0
        assert analysis.needs_more_data
        assert analysis.calibrated_exercises == 0
        assert "AMRAP" in analysis.recommendation

    def test_confidence_weighted(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=3)  # +3, medium (weight 2)
        _calibrate(engine, amrap_reps=7, events=1, exercise_id="squat")  # -1, low (weight 1)

        analysis = engine.analyze_overall_bias()
        # (3*2 + -1*1) / 3 = 5/3
        assert analysis.overall_bias == pytest.approx(5 / 3)
        assert analysis.exercise_specific_bias == {
            "bench_press": pytest.approx(3.0),
            "squat": pytest.approx(-1.0),
        }
        assert analysis.calibrated_exercises == 2
        assert not analysis.sandbagging_detected
        assert analysis.needs_more_data

    def test_sandbagging_flag(self):
        engine = CalibrationEngine()
        for ex in ("bench_press", "squat", "row"):
            _calibrate(engine, amrap_reps=11, events=3, exercise_id=ex)

        analysis = engine.analyze_overall_bias()
        assert analysis.sandbagging_detected
        assert not analysis.overreaching_detected
        assert not analysis.needs_more_data


class TestCalibrationNeeds:
    def test_needs_calibration(self):
        engine = CalibrationEngine()
        assert engine.needs_calibration("bench_press")

        _calibrate(engine, amrap_reps=11, events=3)  # last AMRAP on day 5
        assert not engine.needs_calibration("bench_press", as_of=T0 + timedelta(days=10))
        assert engine.needs_calibration("bench_press", as_of=T0 + timedelta(days=25))

    def test_low_confidence_needs_calibration(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=1)
        assert engine.needs_calibration("bench_press", as_of=T0 + timedelta(days=2))

    def test_priorities_sorted(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=3)
        engine.record_set(_set(5, day=1, weight=140.0, exercise_id="squat"))

        ranked = engine.calibration_priorities(as_of=T0 + timedelta(days=7))
        assert [(p.exercise_id, p.priority) for p in ranked] == [
            ("squat", "high"),
            ("bench_press", "low"),
        ]
        assert ranked[0].reason == "Never calibrated"
        assert ranked[0].exercise_name == "Squat"

    def test_stale_calibration_is_medium(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=3)

        ranked = engine.calibration_priorities(as_of=T0 + timedelta(days=40))
        assert ranked[0].priority == "medium"
        assert ranked[0].reason == "Last calibrated 35 days ago"


class TestConcurrency:
    def test_exercises_fed_from_separate_threads(self):
        engine = CalibrationEngine()
        errors: list[Exception] = []

        def feed(exercise_id: str) -> None:
            try:
                _calibrate(engine, amrap_reps=11, events=6, exercise_id=exercise_id)
            except Exception as e:  # surfaced via the assertion below
                errors.append(e)

        threads = [
            threading.Thread(target=feed, args=(ex,))
            for ex in ("bench_press", "squat", "deadlift", "row")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        for ex in ("bench_press", "squat", "deadlift", "row"):
            result = engine.get_calibration(ex)
            assert result.data_points == 6
            assert result.smoothed_bias == pytest.approx(3.0)

    def test_summaries_while_new_exercises_arrive(self):
        engine = CalibrationEngine()
        _calibrate(engine, amrap_reps=11, events=3)
        stop = threading.Event()
        errors: list[Exception] = []

        def add_exercises() -> None:
            try:
                for i in range(300):
                    engine.record_set(_set(8, day=0, exercise_id=f"accessory_{i}"))
            except Exception as e:  # surfaced via the assertion below
                errors.append(e)
            finally:
                stop.set()

        writer = threading.Thread(target=add_exercises)
        writer.start()
        while not stop.is_set():
            try:
                engine.exercise_ids()
                engine.calibration_priorities(as_of=T0 + timedelta(days=7))
                engine.analyze_overall_bias()
            except Exception as e:  # surfaced via the assertion below
                errors.append(e)
                break
        writer.join()

        assert errors == []
        assert len(engine.exercise_ids()) == 301
        ranked = engine.calibration_priorities(as_of=T0 + timedelta(days=7))
        assert ranked[-1].exercise_id == "bench_press"
        assert ranked[-1].priority == "low"

    def test_queried_unknown_exercise_is_not_listed(self):
        engine = CalibrationEngine()
        engine.get_adjusted_target("overhead_press", 2)
        engine.record_set(_set(8, day=0))
        assert engine.exercise_ids() == ["bench_press"]
