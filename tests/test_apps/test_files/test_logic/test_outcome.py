"""Tests for step outcomes."""

import pytest

from server.apps.files.exceptions import NotFoundError
from server.apps.files.logic.outcome import StepStatus, attempt


def test_attempt_success():
    """Test a step that returns normally succeeds."""
    outcome = attempt('payload', lambda: None, fatal=True)

    assert outcome.ok
    assert outcome.status is StepStatus.SUCCEEDED
    assert outcome.error is None
    outcome.raise_if_fatal()


def test_attempt_nonfatal_failure():
    """Test non-fatal failures are captured and never re-raised."""
    error = OSError('disk gone')

    def fail():
        raise error

    outcome = attempt('thumbnail', fail, fatal=False)

    assert not outcome.ok
    assert not outcome.fatal
    assert outcome.status is StepStatus.FAILED_NONFATAL
    assert outcome.error is error
    outcome.raise_if_fatal()


def test_attempt_fatal_failure():
    """Test fatal failures re-raise the captured error."""
    def fail():
        raise NotFoundError('1000.txt')

    outcome = attempt('payload', fail, fatal=True)

    assert outcome.fatal
    with pytest.raises(NotFoundError):
        outcome.raise_if_fatal()


def test_attempt_propagates_programming_errors():
    """Test errors outside the file store are not captured."""
    def fail():
        raise TypeError('bug')

    with pytest.raises(TypeError):
        attempt('payload', fail, fatal=False)
