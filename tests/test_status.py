"""Tests for status management."""

import pytest

from models import Condition, ConditionStatus, StatusUpdateError, StreamStatus
from status import set_stream_errored, set_stream_synced


class TestSetStreamErrored:
    """Tests for set_stream_errored function."""

    def test_no_error_is_noop(self, api, make_stream):
        stream = make_stream()

        assert set_stream_errored(stream, api, None) is stream
        assert api.status_updates == []

    def test_records_errored_condition(self, api, make_stream):
        stream = make_stream()

        result = set_stream_errored(stream, api, RuntimeError("boom"))

        ready = result.status.get_condition("Ready")
        assert ready.status == ConditionStatus.FALSE
        assert ready.reason == "Errored"
        assert ready.message == "boom"
        assert ready.last_transition_time
        # The cached object stays untouched
        assert stream.status.conditions == []

    def test_does_not_touch_observed_generation(self, api, make_stream):
        stream = make_stream(generation=3, observed_generation=2)

        result = set_stream_errored(stream, api, RuntimeError("boom"))

        assert result.status.observed_generation == 2

    def test_write_failure(self, api, api_error, make_stream):
        api.fail_update_status = api_error

        with pytest.raises(StatusUpdateError, match="failed to set stream errored"):
            set_stream_errored(make_stream(), api, RuntimeError("boom"))


class TestSetStreamSynced:
    """Tests for set_stream_synced function."""

    def test_records_synced(self, api, make_stream):
        stream = make_stream(generation=4, observed_generation=3)

        result = set_stream_synced(stream, api)

        assert result.status.observed_generation == 4
        assert result.generation_changed is False
        ready = result.status.get_condition("Ready")
        assert ready.status == ConditionStatus.TRUE
        assert ready.reason == "Synced"
        assert ready.message == "Stream is synced with spec"

    def test_replaces_previous_ready(self, api, make_stream):
        stream = make_stream()
        errored = set_stream_errored(stream, api, RuntimeError("boom"))

        result = set_stream_synced(errored, api)

        ready = [c for c in result.status.conditions if c.type == "Ready"]
        assert len(ready) == 1
        assert ready[0].status == ConditionStatus.TRUE

    def test_prunes_history(self, api, make_stream):
        stream = make_stream()
        stream.status = StreamStatus(
            conditions=[
                Condition(type=f"Legacy{i}", status=ConditionStatus.TRUE)
                for i in range(12)
            ]
        )

        result = set_stream_synced(stream, api)

        assert len(result.status.conditions) == 10
        assert result.status.conditions[-1].type == "Ready"
        assert result.status.conditions[0].type == "Legacy3"

    def test_write_failure_names_stream(self, api, api_error, make_stream):
        api.fail_update_status = api_error

        with pytest.raises(StatusUpdateError, match='"orders" stream synced status'):
            set_stream_synced(make_stream(), api)
