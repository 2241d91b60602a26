import os
from pathlib import Path

import pytest

from conftest import store
from sharebox.errors import NotFoundError, StorageError
from sharebox.storage.eraser import AdminEraser
from sharebox.storage.index import DirectoryIndex
from sharebox.utils.primitives import asPrimitive


def test_listing_newest_first(storage: Path) -> None:
	store(storage, "1000_a.txt", b"a", mtime=1_000_000)
	store(storage, "2000_b.txt", b"bb", mtime=2_000_000)
	entries = DirectoryIndex(storage).listing()
	assert [_.name for _ in entries] == ["b.txt", "a.txt"]
	assert entries[0].filename == "2000_b.txt"
	assert entries[0].size == 2


def test_listing_tie_break(storage: Path) -> None:
	store(storage, "1000_a.txt", b"a", mtime=1_000_000)
	store(storage, "1001_a.txt", b"a", mtime=1_000_000)
	store(storage, "0999_z.txt", b"a", mtime=1_000_000)
	names = [_.filename for _ in DirectoryIndex(storage).listing()]
	assert names == ["1001_a.txt", "1000_a.txt", "0999_z.txt"]


def test_listing_skips_hidden_and_dirs(storage: Path) -> None:
	store(storage, "1_a.txt", b"a")
	store(storage, ".DS_Store", b"x")
	(storage / "sub").mkdir()
	assert [_.filename for _ in DirectoryIndex(storage).listing()] == ["1_a.txt"]


def test_listing_reflects_disk(storage: Path) -> None:
	index = DirectoryIndex(storage)
	assert index.listing() == []
	store(storage, "1_a.txt", b"a")
	assert len(index.listing()) == 1
	os.unlink(storage / "1_a.txt")
	assert index.listing() == []


def test_listing_missing_directory(tmp_path: Path) -> None:
	assert DirectoryIndex(tmp_path / "missing").listing() == []


def test_listing_not_a_directory(tmp_path: Path) -> None:
	path = tmp_path / "file"
	path.write_bytes(b"")
	with pytest.raises(StorageError):
		DirectoryIndex(path).listing()


def test_entry_primitive(storage: Path) -> None:
	store(storage, "1000_a.txt", b"abc", mtime=0)
	(entry,) = DirectoryIndex(storage).listing()
	assert entry.date.year == 1970
	assert asPrimitive(entry) == {
		"name": "a.txt",
		"filename": "1000_a.txt",
		"size": 3,
		"date": "1970-01-01T00:00:00.000Z",
	}


def test_resolve_newest(storage: Path) -> None:
	store(storage, "1000_a.txt", b"old", mtime=1_000_000)
	store(storage, "2000_a.txt", b"new", mtime=2_000_000)
	assert DirectoryIndex(storage).resolve("a.txt").storageName == "2000_a.txt"


def test_resolve_sanitized_name(storage: Path) -> None:
	store(storage, "1000_My_Report.PDF", b"pdf")
	index = DirectoryIndex(storage)
	assert index.resolve("My Report.PDF").storageName == "1000_My_Report.PDF"
	assert index.resolve("My_Report.PDF").storageName == "1000_My_Report.PDF"


@pytest.mark.parametrize("name", ["missing.txt", "", "../1000_a.txt", "x/1000_a.txt"])
def test_resolve_not_found(storage: Path, name: str) -> None:
	store(storage, "1000_a.txt", b"a")
	with pytest.raises(NotFoundError):
		DirectoryIndex(storage).resolve(name)


def test_delete_twice(storage: Path) -> None:
	store(storage, "1000_a.txt", b"a")
	eraser = AdminEraser(DirectoryIndex(storage))
	assert eraser.delete("a.txt").storageName == "1000_a.txt"
	assert not (storage / "1000_a.txt").exists()
	with pytest.raises(NotFoundError):
		eraser.delete("a.txt")


def test_delete_newest_only(storage: Path) -> None:
	store(storage, "1000_a.txt", b"old", mtime=1_000_000)
	store(storage, "2000_a.txt", b"new", mtime=2_000_000)
	AdminEraser(DirectoryIndex(storage)).delete("a.txt")
	assert sorted(os.listdir(storage)) == ["1000_a.txt"]



def test_listing_skips_undecodable_names(storage: Path) -> None:
	store(storage, "1000_cafe.txt", b"a")
	with open(os.path.join(os.fsencode(storage), b"1001_caf\xe9.txt"), "wb") as f:
		f.write(b"b")
	assert [_.filename for _ in DirectoryIndex(storage).listing()] == ["1000_cafe.txt"]


# EOF
