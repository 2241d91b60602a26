import asyncio
from datetime import datetime
from urllib.parse import quote

from ..config import SharingConfig
from ..decorators import expose, on
from ..features.cors import cors
from ..http.model import HTTPRequest, HTTPResponse
from ..http.multipart import boundary
from ..model import Service
from ..storage.eraser import AdminEraser
from ..storage.index import DirectoryIndex
from ..storage.model import ListingEntry, StoredFile
from ..storage.uploads import UploadReceiver
from ..utils.htmpl import H, Node, html
from ..utils.logging import info
from .admin import AdminGate
from .stream import StreamServer

PAGE_CSS: str = """
:root {
    font-family: sans-serif;
    font-size: 14px;
    line-height: 1.35em;
    padding: 20px;
    background: #F0F0F0;
}
h1 {
    margin-top: 1.25em;
    margin-bottom: 1.25em;
}
table {
    border-collapse: collapse;
    width: 100%;
    background: #FFFFFF;
}
td, th {
    padding: 0.5em 1em;
    text-align: left;
    border-bottom: 1px solid #E0E0E0;
}
td.size {
    text-align: right;
    font-variant-numeric: tabular-nums;
}
form {
    margin: 1.75em 0em;
}
"""


def humanSize(size: int) -> str:
	value: float = size
	for unit in ("B", "KB", "MB", "GB", "TB"):
		if value < 1024 or unit == "TB":
			return f"{size} B" if unit == "B" else f"{value:0.1f} {unit}"
		value /= 1024
	return f"{size} B"


def humanDate(value: datetime) -> str:
	return value.strftime("%Y-%m-%d %H:%M")


class SharingService(Service):
	"""The file sharing HTTP surface: upload, listing, download and
	admin deletion, all backed by the storage directory."""

	def __init__(self, config: SharingConfig):
		self.config: SharingConfig = config
		self.index: DirectoryIndex = DirectoryIndex(config.storage)
		self.receiver: UploadReceiver = UploadReceiver(config)
		self.streamer: StreamServer = StreamServer(self.index, config.cacheAge)
		self.eraser: AdminEraser = AdminEraser(self.index)
		self.gate: AdminGate = AdminGate(config.adminSecret)
		super().__init__()

	async def start(self) -> None:
		await asyncio.to_thread(self.config.storage.mkdir, parents=True, exist_ok=True)
		info(
			"Sharing files",
			Storage=str(self.config.storage),
			Admin=self.config.adminSecret is not None,
		)

	def renderIndex(self, files: list[StoredFile]) -> str:
		rows: list[Node] = [
			H.tr(
				H.td(H.a(_.displayName, href=f"/download/{quote(_.displayName)}")),
				H.td(humanSize(_.sizeBytes), _="size"),
				H.td(H.time(humanDate(_.modifiedAt), datetime=_.modifiedAt.isoformat())),
			)
			for _ in files
		]
		listing: Node = (
			H.table(
				H.thead(H.tr(H.th("Name"), H.th("Size"), H.th("Date"))),
				H.tbody(*rows),
			)
			if rows
			else H.p("No files shared yet.")
		)
		return "".join(
			html(
				H.html(
					H.head(
						H.meta(charset="utf-8"),
						H.meta(
							name="viewport",
							content="width=device-width, initial-scale=1.0",
						),
						H.title("Shared files"),
						H.style(PAGE_CSS),
					),
					H.body(
						H.h1("Shared files"),
						H.form(
							H.label(
								"Files ",
								H.input(
									type="file",
									name=self.config.uploadField,
									multiple=True,
								),
							),
							H.button("Upload", type="submit"),
							action="/upload",
							method="post",
							enctype="multipart/form-data",
						),
						H.section(H.h2("Files"), listing),
					),
				),
				doctype="html",
			)
		)

	@on(GET="/")
	async def home(self, request: HTTPRequest) -> HTTPResponse:
		files = await asyncio.to_thread(self.index.files)
		return request.respondHTML(self.renderIndex(files))

	@on(POST="/upload")
	async def upload(self, request: HTTPRequest) -> HTTPResponse:
		if request.contentLength is None:
			return request.error(411, "Content-Length is required")
		separator = boundary(request.contentType)
		if not separator:
			return request.error(400, "Expected a multipart/form-data body")
		result = await self.receiver.receive(request.read(), separator)
		count: int = len(result.accepted)
		payload: dict[str, object] = {
			"message": f"{count} file{'s' if count > 1 else ''} uploaded successfully",
			"files": result.accepted,
		}
		if result.rejected:
			payload["rejected"] = result.rejected
		return request.returns(payload)

	@cors
	@expose(GET="/files")
	async def files(self) -> list[ListingEntry]:
		return await asyncio.to_thread(self.index.listing)

	@cors
	@on(GET_HEAD="/download/{filename}")
	async def download(self, request: HTTPRequest, filename: str) -> HTTPResponse:
		response = await self.streamer.serve(request, filename)
		return response.withoutBody() if request.method == "HEAD" else response

	@on(DELETE="/admin/files/{filename}")
	async def delete(self, request: HTTPRequest, filename: str) -> HTTPResponse:
		self.gate.check(request)
		stored = await asyncio.to_thread(self.eraser.delete, filename)
		return request.returns(
			{"message": "File deleted successfully", "filename": stored.storageName}
		)


# EOF
