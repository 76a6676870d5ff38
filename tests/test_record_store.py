import pytest

from conftest import write_file
from freshimage.core.record_store import read_record, record_path, write_record
from freshimage.errors import RecordNotFound, RecordReadError, RecordWriteError
from freshimage.models import BuildRecord, BuildTaskConfig


def test_write_then_read(tmp_path):
    path = tmp_path / "records" / "app"

    write_record(path, BuildRecord(image_id="abc"))
    record, info = read_record(path)

    assert record.image_id == "abc"
    assert info.st_mtime == path.stat().st_mtime
    assert "ImageID: abc" in path.read_text()


def test_write_replaces_existing_record(tmp_path):
    path = tmp_path / "app"
    write_record(path, BuildRecord(image_id="first"))

    write_record(path, BuildRecord(image_id="second"))

    assert read_record(path)[0].image_id == "second"
    assert not (tmp_path / "app.tmp").exists()


def test_missing_record_is_not_found(tmp_path):
    with pytest.raises(RecordNotFound):
        read_record(tmp_path / "nope")


@pytest.mark.parametrize("content", ["ImageID: [unclosed", "Other: value", ""])
def test_corrupt_record(tmp_path, content):
    path = write_file(tmp_path / "app", content)

    with pytest.raises(RecordReadError) as exc_info:
        read_record(path)
    assert not isinstance(exc_info.value, RecordNotFound)


def test_write_failure(tmp_path):
    blocker = write_file(tmp_path / "blocker", "")

    with pytest.raises(RecordWriteError):
        write_record(blocker / "images" / "app", BuildRecord(image_id="abc"))


def test_record_path_is_deterministic(ctx, tmp_path):
    config = BuildTaskConfig(name="web", image="registry.local/team/web", tags=["1.0"])

    first = record_path(ctx, config)
    second = record_path(ctx, config.model_copy())

    assert first == second
    assert first.parent == tmp_path / ".freshimage" / "images"
    assert "/" not in first.name
