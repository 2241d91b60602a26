from typing import Optional, Iterable, ClassVar, Any, NamedTuple, Iterator, cast
from types import GeneratorType

from .routing import Handler, Dispatcher
from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import exception, warning


def flatiter(value: Any) -> Iterator[Any]:
    """Flat iteration over the given value."""
    if isinstance(value, (list, tuple, GeneratorType)):
        for _ in value:
            yield from flatiter(_)
    else:
        yield value


# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
    PREFIX: ClassVar[str] = ""
    NO_HANDLER: ClassVar[list[str]] = [
        "name",
        "app",
        "prefix",
        "_handlers",
        "isMounted",
        "handlers",
        "start",
        "stop",
    ]

    def __init__(
        self, name: Optional[str] = None, *, prefix: str | None = None
    ) -> None:
        self.name: str = name or self.__class__.__name__
        self.app: Optional[Application] = None
        self.prefix = prefix or self.PREFIX
        self._handlers: Optional[list[Handler]] = None
        self.init()

    def init(self) -> None:
        pass

    async def start(self) -> None:
        """Can be overridden to do asynchronous pre-start work"""
        pass

    async def stop(self) -> None:
        """Can be overridden to do asynchronous post-stop work"""
        pass

    @property
    def isMounted(self) -> bool:
        return self.app is not None

    @property
    def handlers(self) -> list[Handler]:
        if self._handlers is None:
            self._handlers = list(self.iterHandlers())
        return self._handlers

    def iterHandlers(self) -> Iterable[Handler]:
        for value in (
            getattr(self, _)
            for _ in dir(self.__class__)
            if _ not in self.NO_HANDLER and not _.startswith("__")
        ):
            handler = Handler.Get(value)
            if handler:
                yield handler

    def __repr__(self) -> str:
        return f"(Service {self.name}{' :mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
    def __init__(self, services: list[Service] | None = None) -> None:
        self.dispatcher: Dispatcher = Dispatcher()
        self.services: list[Service] = []
        for service in services or ():
            self.mount(service)

    async def start(self) -> "Application":
        for srv in self.services:
            await srv.start()
        return self

    async def stop(self) -> "Application":
        for srv in self.services:
            try:
                await srv.stop()
            except Exception as e:
                exception(e, f"Service {srv.name} failed to stop")
        return self

    async def process(self, request: HTTPRequest) -> HTTPResponse:
        """Dispatches the request to the matching handler. Nothing raised
        by a handler escapes from here: failures become 500 responses."""
        route, params = self.dispatcher.match(
            request.method or "GET", request.path or "/"
        )
        if route and route.handler:
            try:
                return await route.handler(request, params or {})
            except Exception as e:
                exception(e, f"Handler failed for {request.method} {request.path}")
                return request.fail("Internal server error")
        elif allowed := self.dispatcher.allows(request.path or "/"):
            return request.error(
                405, "Method not allowed", headers={"Allow": ", ".join(allowed)}
            )
        else:
            warning("No route found", Method=request.method, Path=request.path)
            return request.notFound()

    def mount(self, service: Service, prefix: Optional[str] = None) -> Service:
        if service.isMounted:
            raise RuntimeError(
                f"Cannot mount service, it is already mounted: {service}"
            )
        for handler in service.handlers:
            self.dispatcher.register(handler, prefix or service.prefix)
        service.app = self
        self.services.append(service)
        return service


class Components(NamedTuple):
    """Groups Application and Service objects together"""

    app: Application
    services: list[Service]

    @staticmethod
    def Make(components: Iterable[Application | Service]) -> "Components":
        apps: list[Application] = []
        services: list[Service] = []
        for item in flatiter(components):
            if isinstance(item, Application):
                apps.append(item)
            elif isinstance(item, Service):
                services.append(item)
            else:
                raise RuntimeError(f"Unsupported component type {type(item)}: {item}")
        return Components(apps[0] if apps else Application(), services)


def mount(*components: Application | Service) -> Application:
    """Mounts the given components into and application"""
    c = Components.Make(cast(Iterable[Application | Service], components))
    for service in c.services:
        if not service.isMounted:
            c.app.mount(service)
    return c.app


# EOF
