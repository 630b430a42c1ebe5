"""
Tests for the Result envelope and the section Timer.
"""

import dataclasses
import time

import pytest

from bootstatespace.core.result import Result
from bootstatespace.core.timing import Timer


class TestResult:

    def test_fields(self):
        result = Result(
            params={'a': 1},
            info={'seed': 42},
            timing={'total_seconds': 0.1},
            backend_name='serial',
        )
        assert result.params == {'a': 1}
        assert result.info['seed'] == 42
        assert result.backend_name == 'serial'
        assert result.warnings == ()

    def test_frozen(self):
        result = Result(params=None, info={}, timing=None, backend_name='serial')
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.backend_name = 'fork'

    def test_has_warning(self):
        result = Result(
            params=None,
            info={},
            timing=None,
            backend_name='serial',
            warnings=("2 of 10 replications did not converge",),
        )
        assert result.has_warning("did not converge")
        assert not result.has_warning("worker")


class TestTimer:

    def test_sections_recorded(self):
        timer = Timer()
        timer.start()
        with timer.section('prepare'):
            time.sleep(0.001)
        with timer.section('replications'):
            pass
        timer.stop()
        result = timer.result()
        assert set(result) == {'total_seconds', 'prepare', 'replications'}
        assert result['total_seconds'] >= result['prepare'] > 0.0

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        for _ in range(3):
            with timer.section('aggregate'):
                time.sleep(0.001)
        timer.stop()
        assert timer.result()['aggregate'] >= 0.003

    def test_section_recorded_on_error(self):
        timer = Timer()
        timer.start()
        with pytest.raises(ValueError):
            with timer.section('replications'):
                raise ValueError("boom")
        timer.stop()
        assert 'replications' in timer.result()

    def test_result_before_stop(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError, match="before stop"):
            timer.result()

    def test_stop_before_start(self):
        with pytest.raises(RuntimeError, match="before start"):
            Timer().stop()
