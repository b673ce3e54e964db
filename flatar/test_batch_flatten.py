import sys
import tarfile
from pathlib import Path

import pytest
from loguru import logger

from flatar import batch_flatten
from flatar.batch_flatten import DONE_MESSAGE, main, process_directory
from flatar.flatten.flattener import FlattenError


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def work_dir(tmp_path):
    files = {
        "proj1/a/x.txt": "1a",
        "proj1/b/x.txt": "1b",
        "proj2/deep/er/y.txt": "2",
    }
    for rel_path, content in files.items():
        path = tmp_path / "work" / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    (tmp_path / "work" / "loose.txt").write_text("not a directory")
    return tmp_path / "work"


def test_flatten_only(work_dir, capsys):
    main([str(work_dir), "-q"])

    assert sorted(p.name for p in (work_dir / "proj1").iterdir()) == ["x.txt", "x_b.txt"]
    assert sorted(p.name for p in (work_dir / "proj2").iterdir()) == ["y.txt"]
    assert (work_dir / "loose.txt").read_text() == "not a directory"
    assert not list(work_dir.glob("*.tar"))
    assert capsys.readouterr().out.strip().splitlines()[-1] == DONE_MESSAGE


def test_archive_and_delete(work_dir):
    main(["-a", "-d", "-q", str(work_dir)])

    assert not (work_dir / "proj1").exists()
    assert not (work_dir / "proj2").exists()
    with tarfile.open(work_dir / "proj1.tar") as tar:
        assert sorted(tar.getnames()) == ["x.txt", "x_b.txt"]
    with tarfile.open(work_dir / "proj2.tar") as tar:
        assert tar.getnames() == ["y.txt"]


def test_failure_on_one_directory_does_not_stop_the_others(work_dir, monkeypatch, capsys):
    real_flatten = batch_flatten.flatten_directory

    def flatten(path, dry_run=False):
        if Path(path).name == "proj1":
            raise FlattenError(f"failed to copy file from {path}/a/x.txt")
        return real_flatten(path, dry_run=dry_run)

    monkeypatch.setattr(batch_flatten, "flatten_directory", flatten)

    main(["-a", "-d", "-q", str(work_dir)])

    # proj1 skipped entirely: not archived, not deleted
    assert (work_dir / "proj1" / "a" / "x.txt").exists()
    assert not (work_dir / "proj1.tar").exists()
    assert not (work_dir / "proj2").exists()
    assert (work_dir / "proj2.tar").exists()
    out = capsys.readouterr().out
    assert out.count(DONE_MESSAGE) == 1
    assert out.strip().splitlines()[-1] == DONE_MESSAGE


def test_archive_failure_skips_delete(work_dir, monkeypatch):
    def create_archive(source_dir, output_file=None):
        raise batch_flatten.ArchiveError(f"failed to create archive {output_file}")

    monkeypatch.setattr(batch_flatten, "create_archive", create_archive)

    summary = process_directory(work_dir, archive=True, delete=True, show_progress=False)

    assert (work_dir / "proj1").is_dir()
    assert (work_dir / "proj2").is_dir()
    assert summary.flattened == 2
    assert summary.archived == 0
    assert summary.deleted == 0
    assert summary.failed == [work_dir / "proj1", work_dir / "proj2"]


def test_process_directory_summary(work_dir):
    summary = process_directory(work_dir, archive=True, show_progress=False)

    assert summary.processed == 2
    assert summary.flattened == 2
    assert summary.archived == 2
    assert summary.deleted == 0
    assert summary.failed == []


def test_dry_run_changes_nothing(work_dir):
    before = sorted(str(p.relative_to(work_dir)) for p in work_dir.rglob("*"))

    main(["-a", "-d", "--dry-run", "-q", str(work_dir)])

    after = sorted(str(p.relative_to(work_dir)) for p in work_dir.rglob("*"))
    assert after == before


def test_config_file_enables_archive(work_dir, tmp_path):
    config_path = tmp_path / "flatar.yml"
    config_path.write_text("archive: true\nlog_level: WARNING\n")

    main(["--config", str(config_path), str(work_dir)])

    assert (work_dir / "proj1.tar").is_file()
    assert (work_dir / "proj1").is_dir()


def test_quoted_false_in_config_does_not_delete(work_dir, tmp_path):
    config_path = tmp_path / "flatar.yml"
    config_path.write_text('delete: "false"\n')

    with pytest.raises(SystemExit) as excinfo:
        main(["-q", "--config", str(config_path), str(work_dir)])

    assert excinfo.value.code == 1
    assert (work_dir / "proj1" / "a" / "x.txt").exists()
    assert (work_dir / "proj2").is_dir()


def test_unknown_log_level_in_config_exits(work_dir, tmp_path):
    config_path = tmp_path / "flatar.yml"
    config_path.write_text("log_level: LOUD\n")

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config_path), str(work_dir)])

    assert excinfo.value.code == 1
    assert (work_dir / "proj1" / "a").is_dir()


def test_missing_config_file_exits(work_dir, tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path / "missing.yml"), str(work_dir)])
    assert excinfo.value.code == 1


def test_defaults_to_current_directory(work_dir, monkeypatch):
    monkeypatch.chdir(work_dir)

    main(["-q"])

    assert sorted(p.name for p in (work_dir / "proj2").iterdir()) == ["y.txt"]


def test_too_many_arguments_prints_usage(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path), str(tmp_path)])

    assert excinfo.value.code == 2
    assert "usage:" in capsys.readouterr().err


def test_missing_root_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    assert DONE_MESSAGE not in capsys.readouterr().out


def test_file_root_exits(tmp_path):
    path = tmp_path / "file.txt"
    path.write_text("x")

    with pytest.raises(SystemExit) as excinfo:
        main([str(path)])

    assert excinfo.value.code == 1


def test_empty_root_still_completes(tmp_path, capsys):
    main([str(tmp_path), "-q"])

    assert capsys.readouterr().out.strip().splitlines()[-1] == DONE_MESSAGE
