import itertools
import logging
import threading
import time
from pathlib import Path

import pytest

from layerstack.generator import BatchGenerator
from layerstack.models.generation import GenerationConfig
from layerstack.render.layer_source import Layer
from layerstack.render.stack_layers import composite_layers
from layerstack.storage.storage_local import make_writer
from layerstack.utils.errors import EmptySourceError, PersistenceError


def _config(tmp_path: Path, count: int, **kwargs) -> GenerationConfig:
    return GenerationConfig(
        sources=kwargs.pop("sources", [tmp_path / "bg", tmp_path / "fg"]),
        count=count,
        output_dir=str(tmp_path / "out"),
        **kwargs,
    )


def _cycling_selector(make_image, combos):
    cycle = itertools.cycle(combos)
    colors = {
        "A": (255, 0, 0, 255),
        "B": (0, 255, 0, 255),
        "X": (0, 0, 255, 128),
        "Y": (255, 255, 255, 64),
    }

    def _select(sources, rng):
        return [Layer(name, make_image(2, 2, colors[name])) for name in next(cycle)]

    return _select


def test_duplicate_combinations_are_skipped(tmp_path: Path, make_image, caplog):
    out = tmp_path / "out"
    out.mkdir()
    generator = BatchGenerator(
        _config(tmp_path, 4),
        write_fn=make_writer(out),
        selector=_cycling_selector(make_image, [("A", "X"), ("B", "Y")]),
    )

    with caplog.at_level(logging.INFO):
        report = generator.run()

    assert sorted(p.name for p in out.iterdir()) == ["1.png", "2.png"]
    assert report.saved == [1, 2]
    assert report.rendered == 2
    assert report.duplicates == ["A-X", "B-Y"]
    assert report.ok
    assert caplog.text.count("already exists") == 2
    assert "combination A-X already exists" in caplog.text


def test_each_distinct_combination_renders_and_saves_once(tmp_path: Path, make_image):
    render_calls = []
    write_calls = []
    lock = threading.Lock()

    def counting_renderer(composition):
        render_calls.append(tuple(layer.name for layer in composition))
        return composite_layers(composition)

    def counting_write(key: str, data: bytes, content_type: str):
        with lock:
            write_calls.append(key)

    combos = [("A", "X"), ("B", "X"), ("A", "X"), ("A", "Y"), ("B", "X"), ("A", "X"), ("A", "Y")]
    generator = BatchGenerator(
        _config(tmp_path, 20),
        write_fn=counting_write,
        selector=_cycling_selector(make_image, combos),
        renderer=counting_renderer,
    )

    report = generator.run()

    assert len(render_calls) == 3
    assert len(write_calls) == 3
    assert sorted(write_calls) == ["1.png", "2.png", "4.png"]
    assert report.rendered == 3
    assert len(report.duplicates) == 17
    assert len(generator.cache) == 3


def test_run_waits_for_every_save(tmp_path: Path, make_image):
    finished = []
    lock = threading.Lock()

    def slow_write(key: str, data: bytes, content_type: str):
        time.sleep(0.05)
        with lock:
            finished.append(key)

    combos = [("A", "X"), ("A", "Y"), ("B", "X"), ("B", "Y")]
    generator = BatchGenerator(
        _config(tmp_path, 4, workers=4),
        write_fn=slow_write,
        selector=_cycling_selector(make_image, combos),
    )

    report = generator.run()

    assert sorted(finished) == ["1.png", "2.png", "3.png", "4.png"]
    assert report.saved == [1, 2, 3, 4]


def test_empty_source_aborts_before_any_file_is_written(tmp_path: Path, write_png):
    write_png(tmp_path / "bg" / "A.png")
    (tmp_path / "fg").mkdir()
    out = tmp_path / "out"
    out.mkdir()

    generator = BatchGenerator(_config(tmp_path, 3), write_fn=make_writer(out))

    with pytest.raises(EmptySourceError):
        generator.run()
    assert list(out.iterdir()) == []


def test_save_failure_aborts_the_run(tmp_path: Path, make_image):
    def failing_write(key: str, data: bytes, content_type: str):
        raise OSError("read-only filesystem")

    generator = BatchGenerator(
        _config(tmp_path, 2),
        write_fn=failing_write,
        selector=_cycling_selector(make_image, [("A", "X"), ("B", "Y")]),
    )

    with pytest.raises(PersistenceError, match="read-only filesystem"):
        generator.run()


def test_continue_on_error_reports_failed_units(tmp_path: Path, make_image):
    combos = iter([("A", "X"), None, ("B", "Y"), ("A", "Y")])

    def flaky_selector(sources, rng):
        combo = next(combos)
        if combo is None:
            raise EmptySourceError("source emptied mid-run")
        return [Layer(name, make_image(1, 1, (0, 0, 0, 255))) for name in combo]

    def write_except_three(key: str, data: bytes, content_type: str):
        if key == "3.png":
            raise OSError("io-fail")

    generator = BatchGenerator(
        _config(tmp_path, 4, continue_on_error=True),
        write_fn=write_except_three,
        selector=flaky_selector,
    )

    report = generator.run()

    assert not report.ok
    assert report.saved == [1, 4]
    assert [(f.index, f.stage) for f in report.failures] == [(2, "select"), (3, "save")]
    assert "io-fail" in report.failures[1].error


def test_generates_real_files_from_directories(tmp_path: Path, layer_dirs):
    out = tmp_path / "generated"
    out.mkdir()
    config = GenerationConfig(sources=layer_dirs, count=10, output_dir=str(out))

    report = BatchGenerator(config, write_fn=make_writer(out)).run()

    files = sorted(p.name for p in out.iterdir())
    assert 1 <= len(files) <= 4
    assert files == sorted(f"{i}.png" for i in report.saved)
    assert len(report.saved) + len(report.duplicates) == 10
