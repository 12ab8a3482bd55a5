import pytest

from conftest import FixedSource, SeededSource
from rngsight.api import create_engine, test_rng_quality, verify_random_source
from rngsight.core.errors import ConfigurationError
from rngsight.core.names import QualityRating
from rngsight.runtime.engine import TrialEngine


def test_create_engine():
    engine = create_engine(source=FixedSource([0x0F]), target_rate=20, bits_per_trial=16)
    assert isinstance(engine, TrialEngine)
    assert engine.get_config().interval_ms == 50.0
    assert engine.generate_trial().value == 8
    engine.destroy()


def test_create_engine_rejects_bad_settings():
    with pytest.raises(ConfigurationError):
        create_engine(bits_per_trial=-1)


def test_rng_quality_check():
    check = test_rng_quality(sample_size=200, source=SeededSource())
    assert check.statistics.trial_count == 200
    assert check.quality in set(QualityRating)
    assert check.passed == (check.issues == ())


def test_rng_quality_flags_stuck_source():
    check = test_rng_quality(sample_size=50, source=FixedSource([0x0F]))
    assert not check.passed
    assert check.statistics.mean == 100.0


def test_verify_random_source_is_exported():
    assert verify_random_source().supported
