"""Tests for PollingTask and UnreadCountPoller."""

import threading
import time

import pytest

from curio.errors import APIError
from curio.polling import PollingTask, UnreadCountPoller


class Recorder:
    def __init__(self):
        self.results = []
        self.first = threading.Event()

    def __call__(self, value):
        self.results.append(value)
        self.first.set()


class TestPollingTask:

    def test_fetches_immediately(self):
        recorder = Recorder()
        handle = PollingTask(lambda: 1, recorder, interval=60).start()
        try:
            assert recorder.first.wait(2)
            assert recorder.results == [1]
        finally:
            handle.stop(wait=True, timeout=2)

    def test_repeats_every_interval(self):
        recorder = Recorder()
        handle = PollingTask(lambda: 1, recorder, interval=0.02).start()
        try:
            deadline = time.time() + 2
            while len(recorder.results) < 3 and time.time() < deadline:
                time.sleep(0.01)
            assert len(recorder.results) >= 3
        finally:
            handle.stop(wait=True, timeout=2)

    def test_no_fetch_after_stop(self):
        calls = []
        recorder = Recorder()

        def fetch():
            calls.append(1)
            return len(calls)

        handle = PollingTask(fetch, recorder, interval=0.05).start()
        assert recorder.first.wait(2)
        handle.stop(wait=True, timeout=2)
        stopped_at = len(calls)

        time.sleep(0.2)
        assert len(calls) == stopped_at
        assert handle.active is False

    def test_result_after_stop_is_discarded(self):
        in_fetch = threading.Event()
        release = threading.Event()
        recorder = Recorder()

        def fetch():
            in_fetch.set()
            release.wait(2)
            return 42

        handle = PollingTask(fetch, recorder, interval=60).start()
        assert in_fetch.wait(2)
        handle.stop()
        release.set()
        handle.stop(wait=True, timeout=2)

        assert recorder.results == []

    def test_stop_is_idempotent(self):
        handle = PollingTask(lambda: None, Recorder(), interval=60).start()
        handle.stop(wait=True, timeout=2)
        handle.stop(wait=True, timeout=2)
        assert handle.active is False

    def test_errors_do_not_end_polling(self):
        recorder = Recorder()
        attempts = []

        def fetch():
            attempts.append(1)
            if len(attempts) == 1:
                raise APIError("timeout")
            return len(attempts)

        handle = PollingTask(fetch, recorder, interval=0.02).start()
        try:
            assert recorder.first.wait(2)
            assert recorder.results[0] == 2
        finally:
            handle.stop(wait=True, timeout=2)

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PollingTask(lambda: 1, Recorder(), interval=0)

    def test_cannot_start_twice(self):
        task = PollingTask(lambda: None, Recorder(), interval=60)
        handle = task.start()
        try:
            with pytest.raises(RuntimeError):
                task.start()
        finally:
            handle.stop(wait=True, timeout=2)


class TestUnreadCountPoller:

    def test_reports_count(self, api, session):
        api.get_unread_count.return_value = 3
        recorder = Recorder()
        handle = UnreadCountPoller(api, session, recorder, interval=60).start()
        try:
            assert recorder.first.wait(2)
            assert recorder.results == [3]
        finally:
            handle.stop(wait=True, timeout=2)

    def test_logged_out_is_noop(self, api, anon_session):
        recorder = Recorder()
        handle = UnreadCountPoller(api, anon_session, recorder, interval=0.02).start()
        time.sleep(0.1)
        handle.stop(wait=True, timeout=2)

        api.get_unread_count.assert_not_called()
        assert recorder.results == []
