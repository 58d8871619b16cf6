from scanstitch import NullProgressReporter
from scanstitch import ProgressSample
from scanstitch import TqdmProgressReporter


def make_sample(progress: float, scale: int, level_complete: bool = False) -> ProgressSample:
    return ProgressSample(
        progress, 4, scale, 0, 160, -100, 100, 10, 20, 0.0, 8, 1, 0.0, 42.5, level_complete
    )


def test_null_reporter_accepts_samples() -> None:
    NullProgressReporter().update(make_sample(0.5, 4))


def test_tqdm_reporter_closes_after_the_last_level() -> None:
    reporter = TqdmProgressReporter(disable=True)
    reporter.update(make_sample(0.1, 4))
    assert reporter.bar is not None
    reporter.update(make_sample(0.5, 2, level_complete=True))
    assert reporter.bar is not None
    reporter.update(make_sample(1.0, 1, level_complete=True))
    assert reporter.bar is None
    reporter.update(make_sample(0.0, 4))
    assert reporter.bar is not None
    reporter.close()
    assert reporter.bar is None


def test_tqdm_reporter_advances(capsys) -> None:
    reporter = TqdmProgressReporter(desc="merging", leave=True)
    reporter.update(make_sample(0.25, 4))
    reporter.update(make_sample(0.75, 2))
    assert reporter.bar is not None
    assert reporter.bar.n == 75
    reporter.update(make_sample(0.5, 2))
    assert reporter.bar.n == 75
    reporter.close()
    assert "merging" in capsys.readouterr().err
