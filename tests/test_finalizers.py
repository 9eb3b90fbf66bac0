"""Tests for finalizer handling."""

import pytest

from models import FinalizerUpdateError, Lifecycle
from finalizers import clear_stream_finalizer, set_stream_finalizer, stream_lifecycle


class TestStreamLifecycle:
    """Tests for stream_lifecycle function."""

    def test_active(self, make_stream, finalizer):
        assert stream_lifecycle(make_stream(finalizers=[finalizer])) is Lifecycle.ACTIVE

    def test_deleting(self, make_stream, finalizer):
        stream = make_stream(finalizers=[finalizer], deleting=True)
        assert stream_lifecycle(stream) is Lifecycle.DELETING

    def test_gone(self, make_stream):
        stream = make_stream(finalizers=["other"], deleting=True)
        assert stream_lifecycle(stream) is Lifecycle.GONE


class TestSetStreamFinalizer:
    """Tests for set_stream_finalizer function."""

    def test_adds_finalizer(self, api, make_stream, finalizer):
        stream = make_stream(finalizers=["other"])

        result = set_stream_finalizer(stream, api)

        assert result.finalizers == ["other", finalizer]
        assert len(api.updates) == 1
        assert stream.finalizers == ["other"]

    def test_already_present_is_noop(self, api, make_stream, finalizer):
        stream = make_stream(finalizers=[finalizer])

        assert set_stream_finalizer(stream, api) is stream
        assert api.updates == []

    def test_write_failure(self, api, api_error, make_stream):
        api.fail_update = api_error

        with pytest.raises(FinalizerUpdateError, match='"orders" stream finalizers'):
            set_stream_finalizer(make_stream(), api)


class TestClearStreamFinalizer:
    """Tests for clear_stream_finalizer function."""

    def test_removes_only_ours(self, api, make_stream, finalizer):
        stream = make_stream(finalizers=["a", finalizer, "b"], deleting=True)

        result = clear_stream_finalizer(stream, api)

        assert result.finalizers == ["a", "b"]
        assert len(api.updates) == 1

    def test_not_deleting_is_noop(self, api, make_stream, finalizer):
        stream = make_stream(finalizers=[finalizer])

        assert clear_stream_finalizer(stream, api) is stream
        assert api.updates == []

    def test_gone_is_noop(self, api, make_stream):
        stream = make_stream(finalizers=["other"], deleting=True)

        assert clear_stream_finalizer(stream, api) is stream
        assert api.updates == []

    def test_write_failure(self, api, api_error, make_stream, finalizer):
        api.fail_update = api_error
        stream = make_stream(finalizers=[finalizer], deleting=True)

        with pytest.raises(FinalizerUpdateError, match="clear"):
            clear_stream_finalizer(stream, api)
