"""
Tests for noisewatch.detector module.

Tests warning acceptance, cooldown and escalation.
"""
from noisewatch.detector import EVENT_LOG_SIZE, WarningStateMachine
from noisewatch.settings import MonitorSettings


class TestWarningStateMachine:
    """Test the warning transition rule."""

    def test_first_breach_is_accepted(self, settings):
        """Loudness 80 at threshold 80 gives one warning."""
        machine = WarningStateMachine(settings)

        event, escalate = machine.process(80, now=0.0, recording=False)

        assert event is not None
        assert event.loudness == 80
        assert event.threshold == 80
        assert machine.warning_count == 1
        assert not escalate

    def test_below_threshold_ignored(self, settings):
        machine = WarningStateMachine(settings)

        event, escalate = machine.process(79, now=0.0, recording=False)

        assert event is None
        assert machine.warning_count == 0

    def test_cooldown(self, settings):
        """No two warnings within 2 s of each other."""
        machine = WarningStateMachine(settings)
        machine.process(90, now=10.0, recording=False)

        event, _ = machine.process(90, now=11.999, recording=False)
        assert event is None
        assert machine.warning_count == 1

        event, _ = machine.process(90, now=12.0, recording=False)
        assert event is not None
        assert machine.warning_count == 2

    def test_rejected_breach_does_not_restart_cooldown(self, settings):
        machine = WarningStateMachine(settings)
        machine.process(90, now=0.0, recording=False)
        machine.process(90, now=1.5, recording=False)

        event, _ = machine.process(90, now=2.0, recording=False)
        assert event is not None

    def test_escalates_at_third_warning(self, settings):
        machine = WarningStateMachine(settings)

        results = [machine.process(85, now=t, recording=False) for t in (0.0, 2.0, 4.0)]

        assert [escalate for _, escalate in results] == [False, False, True]
        assert machine.warning_count == 3

    def test_suppressed_while_recording(self, settings):
        machine = WarningStateMachine(settings)

        event, escalate = machine.process(100, now=0.0, recording=True)

        assert event is None
        assert not escalate
        assert machine.warning_count == 0
        assert machine.last_warning_time is None

    def test_count_survives_until_reset(self, settings):
        """The counter is only cleared by reset(); further warnings escalate again."""
        machine = WarningStateMachine(settings)
        for t in (0.0, 2.0, 4.0):
            machine.process(85, now=t, recording=False)

        event, escalate = machine.process(85, now=30.0, recording=False)
        assert machine.warning_count == 4
        assert escalate

        machine.reset()
        assert machine.warning_count == 0
        _, escalate = machine.process(85, now=40.0, recording=False)
        assert machine.warning_count == 1
        assert not escalate

    def test_settings_change_applies(self):
        machine = WarningStateMachine(MonitorSettings(threshold_db=60, max_warnings=1))

        _, escalate = machine.process(60, now=0.0, recording=False)
        assert escalate

    def test_events_logged(self, settings):
        machine = WarningStateMachine(settings)
        machine.process(85, now=0.0, recording=False)
        machine.process(88, now=5.0, recording=False)

        assert [e.loudness for e in machine.events] == [85, 88]
        assert machine.events[0].to_dict()["loudness"] == 85

    def test_event_log_is_bounded(self, settings):
        machine = WarningStateMachine(settings)

        for i in range(EVENT_LOG_SIZE + 5):
            machine.process(81 + i % 10, now=i * 2.0, recording=False)

        assert len(machine.events) == EVENT_LOG_SIZE
        assert machine.warning_count == EVENT_LOG_SIZE + 5
        assert machine.events[-1].loudness == 81 + (EVENT_LOG_SIZE + 4) % 10
