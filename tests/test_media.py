import pytest

from sharebox.storage.media import Category, classify, extension


@pytest.mark.parametrize(
	"name,mime,category",
	[
		("clip.mp4", "video/mp4", Category.Video),
		("CLIP.MP4", "video/mp4", Category.Video),
		("movie.webm", "video/webm", Category.Video),
		("photo.JPEG", "image/jpeg", Category.Image),
		("song.mp3", "audio/mpeg", Category.Audio),
		("My_Report.PDF", "application/pdf", Category.Document),
		("phone.3gp", "video/3gpp", Category.Video),
		("archive.7z", "application/x-7z-compressed", Category.Document),
		("data.unknownext", "application/octet-stream", Category.Other),
		("README", "application/octet-stream", Category.Other),
		(".mp4", "application/octet-stream", Category.Other),
	],
)
def test_classify(name: str, mime: str, category: Category) -> None:
	media = classify(name)
	assert media.mimeType == mime
	assert media.category is category


def test_disposition() -> None:
	assert classify("a.mp4").disposition == "inline"
	assert classify("a.png").isMedia
	assert classify("a.ogg").isMedia
	assert classify("a.pdf").disposition == "attachment"
	assert not classify("a.bin").isMedia


def test_extension() -> None:
	assert extension("a.tar.GZ") == "gz"
	assert extension("noext") == ""
	assert extension(".bashrc") == ""
	assert extension("trailing.") == ""


# EOF
