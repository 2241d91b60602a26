import pytest

from sharebox.errors import UnsatisfiableRangeError
from sharebox.http.ranges import RangePlanner, RangeSpec, plan, unsatisfiable


@pytest.mark.parametrize(
	"start,end,total",
	[(0, 0, 1), (0, 99, 100), (5, 10, 100), (99, 99, 100), (200, 299, 1000)],
)
def test_closed_range(start: int, end: int, total: int) -> None:
	span = plan(f"bytes={start}-{end}", total)
	assert span == RangeSpec(start, end, total)
	assert span is not None and span.length == end - start + 1


def test_open_ended_range() -> None:
	assert plan("bytes=5-", 100) == RangeSpec(5, 99, 100)


def test_end_is_clamped() -> None:
	assert plan("bytes=10-5000", 100) == RangeSpec(10, 99, 100)


@pytest.mark.parametrize("header", ["bytes=100-", "bytes=100-200", "bytes=150-160"])
def test_unsatisfiable(header: str) -> None:
	with pytest.raises(UnsatisfiableRangeError) as e:
		plan(header, 100)
	assert e.value.status == 416
	assert e.value.totalSize == 100
	assert unsatisfiable(100) == "bytes */100"


def test_empty_file_is_unsatisfiable() -> None:
	with pytest.raises(UnsatisfiableRangeError):
		plan("bytes=0-", 0)


@pytest.mark.parametrize(
	"header",
	[
		None,
		"",
		"bytes=-500",
		"bytes=0-10,20-30",
		"bytes=10-5",
		"items=0-10",
		"bytes=abc-",
		"bytes",
	],
)
def test_not_requested(header: str | None) -> None:
	assert plan(header, 100) is None


def test_lenient_syntax() -> None:
	assert RangePlanner.Parse(" Bytes = 1 - 2 ") == (1, 2)
	assert RangePlanner.Parse("bytes=7-") == (7, None)


def test_content_range() -> None:
	assert RangeSpec(200, 299, 1000).contentRange == "bytes 200-299/1000"


# EOF
