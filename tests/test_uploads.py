import asyncio
import os
import re
from pathlib import Path
from typing import Any, AsyncIterator

import pytest

from conftest import BOUNDARY, multipart
from sharebox.config import SharingConfig
from sharebox.errors import StorageError, ValidationError
from sharebox.storage.model import UploadResult
from sharebox.storage.uploads import UploadReceiver


async def chunked(payload: bytes, size: int = 7) -> AsyncIterator[bytes]:
	for i in range(0, len(payload), size):
		yield payload[i : i + size]


def receive(
	config: SharingConfig, *files: tuple[str, bytes], **kwargs: Any
) -> UploadResult:
	payload, _ = multipart(*files, **kwargs)
	return asyncio.run(
		UploadReceiver(config).receive(chunked(payload), BOUNDARY.encode())
	)


def test_receive(config: SharingConfig, storage: Path) -> None:
	result = receive(config, ("My Report.PDF", b"%PDF-1.4"), ("b.txt", b"b" * 1000))
	assert [_.originalName for _ in result.accepted] == ["My Report.PDF", "b.txt"]
	assert re.match(r"^\d+_My_Report\.PDF$", result.accepted[0].filename)
	assert result.accepted[1].size == 1000
	assert (storage / result.accepted[0].filename).read_bytes() == b"%PDF-1.4"
	assert result.rejected == []


def test_same_name_twice(config: SharingConfig, storage: Path) -> None:
	result = receive(config, ("a.txt", b"1"), ("a.txt", b"2"))
	names = [_.filename for _ in result.accepted]
	assert len(set(names)) == 2
	assert sorted(os.listdir(storage)) == sorted(names)


def test_rejected_extension(config: SharingConfig, storage: Path) -> None:
	with pytest.raises(ValidationError) as e:
		receive(config, ("virus.exe", b"MZ"))
	assert e.value.status == 400
	assert e.value.message == "File type not allowed"
	assert os.listdir(storage) == []


def test_rejected_extension_case(config: SharingConfig, storage: Path) -> None:
	with pytest.raises(ValidationError):
		receive(config, ("VIRUS.ExE", b"MZ"))
	assert os.listdir(storage) == []


def test_rejected_part_is_skipped(config: SharingConfig, storage: Path) -> None:
	result = receive(config, ("virus.bat", b"x"), ("ok.txt", b"ok"))
	assert [_.originalName for _ in result.accepted] == ["ok.txt"]
	assert [_.originalName for _ in result.rejected] == ["virus.bat"]
	assert len(os.listdir(storage)) == 1


def test_no_files(config: SharingConfig, storage: Path) -> None:
	with pytest.raises(ValidationError) as e:
		receive(config, fields={"comment": "hello"})
	assert e.value.message == "No files uploaded"


def test_empty_filename_is_ignored(config: SharingConfig) -> None:
	with pytest.raises(ValidationError) as e:
		receive(config, ("", b""))
	assert e.value.message == "No files uploaded"


def test_too_many_files(config: SharingConfig, storage: Path) -> None:
	files = [(f"{i}.txt", b"x" * 100) for i in range(config.maxFiles + 1)]
	with pytest.raises(ValidationError) as e:
		receive(config, *files)
	assert "Too many files" in e.value.message
	assert os.listdir(storage) == []


def test_client_path_is_stripped(config: SharingConfig, storage: Path) -> None:
	result = receive(config, ("C:\\Users\\me\\notes.txt", b"n"))
	assert result.accepted[0].originalName == "notes.txt"
	assert result.accepted[0].filename.endswith("_notes.txt")


def test_truncated_body_leaves_nothing(config: SharingConfig, storage: Path) -> None:
	payload, _ = multipart(("a.txt", b"a" * 100), ("b.txt", b"b" * 100))
	with pytest.raises(ValidationError):
		asyncio.run(
			UploadReceiver(config).receive(
				chunked(payload[:-60]), BOUNDARY.encode()
			)
		)
	assert os.listdir(storage) == []


def test_disconnect_leaves_nothing(config: SharingConfig, storage: Path) -> None:
	payload, _ = multipart(("a.txt", b"a" * 1000))

	async def broken() -> AsyncIterator[bytes]:
		yield payload[:500]
		raise ConnectionResetError("Client went away")

	with pytest.raises(ConnectionResetError):
		asyncio.run(UploadReceiver(config).receive(broken(), BOUNDARY.encode()))
	assert os.listdir(storage) == []


def test_missing_storage(tmp_path: Path) -> None:
	config = SharingConfig(storage=tmp_path / "missing")
	with pytest.raises(StorageError):
		receive(config, ("a.txt", b"a"))


def test_collision_moves_to_next_millisecond(
	config: SharingConfig, storage: Path
) -> None:
	receiver = UploadReceiver(config)
	first, f1, at1 = receiver.create("a.txt")
	f1.close()
	# Occupies the following names as well
	for i in range(1, 3):
		(storage / f"{at1 + i}_a.txt").write_bytes(b"")
	path, f2, at2 = receiver.create("a.txt")
	f2.close()
	assert path.name not in {first.name, f"{at1 + 1}_a.txt", f"{at1 + 2}_a.txt"}
	assert at2 > at1


def test_disposition(config: SharingConfig) -> None:
	receiver = UploadReceiver(config)
	assert receiver.disposition("a.mp4").allowed
	assert receiver.disposition("noextension").allowed
	rejected = receiver.disposition("setup.JAR")
	assert not rejected.allowed
	assert rejected.reason == "File type not allowed"


# EOF
