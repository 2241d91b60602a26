import re

import pytest

from sharebox.storage.names import basename, decode, encode, sanitize, timestamp


@pytest.mark.parametrize(
	"name,expected",
	[
		("My Report.PDF", "My_Report.PDF"),
		("photo-01.jpg", "photo-01.jpg"),
		("résumé (final).docx", "r_sum___final_.docx"),
		("../../etc/passwd", ".._.._etc_passwd"),
		("a\\b.txt", "a_b.txt"),
		("", ""),
	],
)
def test_sanitize(name: str, expected: str) -> None:
	assert sanitize(name) == expected


@pytest.mark.parametrize(
	"name", ["My Report.PDF", "日本語.txt", "a b/c\\d", "plain.txt", "1234_x.txt"]
)
def test_decode_encode_gives_sanitized(name: str) -> None:
	assert decode(encode(name)) == sanitize(name)
	assert sanitize(sanitize(name)) == sanitize(name)


def test_encode_prefix() -> None:
	before = timestamp()
	encoded = encode("My Report.PDF")
	after = timestamp()
	assert re.match(r"^\d+_My_Report\.PDF$", encoded)
	at = int(encoded.split("_", 1)[0])
	assert before <= at <= after
	assert encode("x.txt", at=42) == "42_x.txt"
	assert "/" not in encode("a/b/c")


def test_decode_without_prefix() -> None:
	assert decode("notes.txt") == "notes.txt"
	assert decode("_notes.txt") == "_notes.txt"
	assert decode("12notes.txt") == "12notes.txt"
	# Only the first prefix goes
	assert decode("1_2_notes.txt") == "2_notes.txt"


def test_basename() -> None:
	assert basename("C:\\Users\\me\\My Report.PDF") == "My Report.PDF"
	assert basename("/home/me/a.txt") == "a.txt"
	assert basename("a.txt") == "a.txt"
	assert basename("dir/") == ""


# EOF
