import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT
from .http.model import (
	BODY_READER_TIMEOUT,
	HTTPBodyFile,
	HTTPBodyReader,
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.limits import LimitType, unlimit
from .utils.logging import debug, error, event, exception, info, logged, warning


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	backlog: int = 10_000
	# This is the polling timeout for accepting new requests
	polling: float = 1.0
	readsize: int = 64_000
	# Idle time after which a kept-alive connection is closed
	keepalive: float = 60.0
	logRequests: bool = True
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

SERVER_BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: application/json\r\n"
	b"Content-Length: 29\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b'{"error":"Malformed request"}'
)
SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: application/json\r\n"
	b"Content-Length: 35\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b'{"error":"Internal server error"}\r\n'
)


def peername(client: socket.socket) -> str | None:
	try:
		peer = client.getpeername()
	except OSError:
		return None
	if isinstance(peer, tuple) and len(peer) >= 2:
		return f"{peer[0]}:{peer[1]}"
	return str(peer) if peer else None


class AIOSocketBodyReader(HTTPBodyReader):
	"""Reads request bodies straight from the client socket."""

	__slots__ = ["socket", "loop", "size"]

	def __init__(
		self,
		socket: "socket.socket",
		loop: asyncio.AbstractEventLoop,
		size: int = 64_000,
	) -> None:
		self.socket = socket
		self.loop = loop
		self.size: int = size

	async def _read(
		self, timeout: float = BODY_READER_TIMEOUT, size: int | None = None
	) -> bytes | None:
		logged(debug) and debug(
			"Reading Body",
			Client=f"{id(self.socket):x}",
			Size=size or self.size,
			Timeout=timeout,
		)
		return await asyncio.wait_for(
			self.loop.sock_recv(self.socket, size or self.size),
			timeout=timeout,
		)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Writes responses to the client socket, file spans are sent with
	`sendfile` when the platform has it."""

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(self, chunk: bytes) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True

	async def _writeFile(self, body: HTTPBodyFile) -> bool:
		# NOTE: `sock_sendfile` rejects a zero count
		if body.length <= 0 or body.file is None:
			return True
		await self.loop.sock_sendfile(
			self.client, body.file, body.offset, body.length
		)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly, one task per connection."""

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Processes the requests of a client connection, in order, until
		the client closes, times out or a response requires a close."""
		size: int = options.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		peer: str | None = peername(client)
		parser: HTTPParser = HTTPParser()
		reader: AIOSocketBodyReader = AIOSocketBodyReader(client, loop)
		writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
		try:
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
				except TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				# NOTE: With HTTP pipelining, the chunk may hold more than one
				# request.
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Peer=peer)
						status = atom
						await writer.write(SERVER_BAD_REQUEST)
						keep_alive = False
						break
					elif atom is HTTPProcessingStatus.Complete:
						status = atom
					elif isinstance(atom, HTTPRequest):
						req: HTTPRequest = atom
						# The rest of the body, if any, is read by the request
						# through the reader.
						req._reader = reader
						req.peer = peer
						req_count += 1
						if options.logRequests:
							event(req.method, req.path, Peer=peer)
						if (
							req.protocol == "HTTP/1.0"
							or (req.header("Connection") or "").lower() == "close"
						):
							keep_alive = False
						res = await cls.SendResponse(req, app, writer)
						if res:
							res_count += 1
						if writer.shouldClose:
							keep_alive = False
							break
			if status is HTTPProcessingStatus.Timeout and req_count != res_count:
				warning(
					"Client timed out",
					Peer=peer,
					Requests=req_count,
					Responses=res_count,
				)
		except Exception as e:
			exception(e, "Connection failed")
		finally:
			# NOTE: The loop above takes care of keep alive, so we always
			# close the connection on exit.
			client.close()

	@staticmethod
	def ShouldClose(request: HTTPRequest) -> bool:
		"""A request body that was not read (or has no length) leaves the
		connection at an unknown position."""
		if request.method in HTTPParser.METHOD_HAS_BODY and request.contentLength is None:
			return True
		return not request.isBodyConsumed

	@classmethod
	async def SendResponse(
		cls,
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
	) -> HTTPResponse | None:
		"""Processes the request within the application and sends the
		response using the given writer."""
		req: HTTPRequest = request
		res: HTTPResponse | None = None
		sent: bool = False
		try:
			res = await app.process(req)
			if req.method == "HEAD":
				res.withoutBody()
			if cls.ShouldClose(req):
				writer.shouldClose = True
			if writer.shouldClose:
				res.setHeader("Connection", "close")
			await writer.write(res.head())
			sent = True
			await writer.write(res.body)
		except OSError as e:
			# Broken pipe or reset: the head may be out already, so there is
			# nothing left to do but to drop the connection.
			warning(
				"Stream aborted",
				Method=req.method,
				Path=req.path,
				Peer=req.peer,
				Error=e.__class__.__name__,
			)
			writer.shouldClose = True
			# The client is gone, there's no one to send an error to
			sent = True
		except Exception as e:
			exception(e, f"Response failed for {req.method} {req.path}")
			writer.shouldClose = True
		finally:
			if res:
				res.close()
		if not sent:
			try:
				warning("Server did not send a response", Method=req.method, Path=req.path)
				await writer.write(SERVER_ERROR)
			except OSError:
				pass
		return res if sent else None

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = ServerOptions(),
	) -> None:
		"""Main server coroutine."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			error(
				f"Unable to bind to {options.host}:{options.port}, aborting.",
				"HOSTPORTERR",
			)
			server.close()
			raise e
		# The argument is the backlog of connections that will be accepted before
		# they are refused.
		server.listen(options.backlog)
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()
		state = ServerState()
		# NOTE: Signal handlers can only be set from the main thread
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, lambda: state.stop())
			loop.add_signal_handler(SIGTERM, lambda: state.stop())
		loop.set_exception_handler(state.onException)

		await app.start()
		info(
			"Sharebox listening",
			icon="🚀",
			Host=options.host,
			Port=options.port,
		)
		try:
			while state.isRunning:
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except TimeoutError:
					continue
				except OSError as e:
					# [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				task = loop.create_task(
					cls.OnRequest(app, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await app.stop()


def run(
	*components: Application | Service,
	host: str = HOST,
	port: int = PORT,
	backlog: int = OPTIONS.backlog,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""High level function to run the server."""
	unlimit(LimitType.Files)
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	app = mount(*components)
	try:
		asyncio.run(AIOSocketServer.Serve(app, options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
