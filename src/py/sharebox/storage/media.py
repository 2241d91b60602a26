from enum import Enum
from typing import NamedTuple


class Category(Enum):
	Video = "video"
	Image = "image"
	Audio = "audio"
	Document = "document"
	Other = "other"


MEDIA_CATEGORIES: frozenset[Category] = frozenset(
	(Category.Video, Category.Image, Category.Audio)
)


class MediaType(NamedTuple):
	mimeType: str
	category: Category

	@property
	def isMedia(self) -> bool:
		"""Media is rendered inline by browsers and advertises ranges."""
		return self.category in MEDIA_CATEGORIES

	@property
	def disposition(self) -> str:
		return "inline" if self.isMedia else "attachment"


DEFAULT_TYPE: MediaType = MediaType("application/octet-stream", Category.Other)

# NOTE: This is a fixed table, `mimetypes` depends on the host configuration.
EXTENSIONS: dict[Category, dict[str, str]] = {
	Category.Video: dict(
		mp4="video/mp4",
		m4v="video/x-m4v",
		webm="video/webm",
		ogv="video/ogg",
		mov="video/quicktime",
		avi="video/x-msvideo",
		mkv="video/x-matroska",
		mpeg="video/mpeg",
		mpg="video/mpeg",
		wmv="video/x-ms-wmv",
		flv="video/x-flv",
		ts="video/mp2t",
		_3gp="video/3gpp",
	),
	Category.Image: dict(
		jpg="image/jpeg",
		jpeg="image/jpeg",
		png="image/png",
		gif="image/gif",
		webp="image/webp",
		svg="image/svg+xml",
		bmp="image/bmp",
		ico="image/x-icon",
		tif="image/tiff",
		tiff="image/tiff",
		avif="image/avif",
		heic="image/heic",
	),
	Category.Audio: dict(
		mp3="audio/mpeg",
		wav="audio/wav",
		ogg="audio/ogg",
		oga="audio/ogg",
		opus="audio/opus",
		flac="audio/flac",
		aac="audio/aac",
		m4a="audio/mp4",
		weba="audio/webm",
		mid="audio/midi",
		midi="audio/midi",
	),
	Category.Document: dict(
		pdf="application/pdf",
		txt="text/plain",
		md="text/markdown",
		csv="text/csv",
		json="application/json",
		xml="application/xml",
		html="text/html",
		htm="text/html",
		rtf="application/rtf",
		doc="application/msword",
		docx="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
		xls="application/vnd.ms-excel",
		xlsx="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
		ppt="application/vnd.ms-powerpoint",
		pptx="application/vnd.openxmlformats-officedocument.presentationml.presentation",
		odt="application/vnd.oasis.opendocument.text",
		ods="application/vnd.oasis.opendocument.spreadsheet",
		odp="application/vnd.oasis.opendocument.presentation",
		epub="application/epub+zip",
		zip="application/zip",
		gz="application/gzip",
		tar="application/x-tar",
		_7z="application/x-7z-compressed",
		rar="application/vnd.rar",
	),
}

# Keyword arguments can't start with a digit, hence the leading `_`
MEDIA_TYPES: dict[str, MediaType] = {
	ext.lstrip("_"): MediaType(mime, category)
	for category, types in EXTENSIONS.items()
	for ext, mime in types.items()
}


def extension(name: str) -> str:
	"""Returns the lowercase extension without the dot, `""` when there
	is none. Dotfiles like `.bashrc` have no extension."""
	i = name.rfind(".")
	return name[i + 1 :].lower() if i > 0 else ""


def classify(name: str) -> MediaType:
	return MEDIA_TYPES.get(extension(name), DEFAULT_TYPE)


# EOF
