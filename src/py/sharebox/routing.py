from typing import (
    Callable,
    Optional,
    Any,
    Pattern,
    Type,
    NamedTuple,
    ClassVar,
    cast,
)
from inspect import iscoroutine
from urllib.parse import unquote
import re

from .decorators import Transform, Marks, Expose, postprocess
from .errors import ShareboxError
from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import debug, logged


async def awaited(value: Any) -> Any:
    if iscoroutine(value):
        return await value
    else:
        return value


# -----------------------------------------------------------------------------
#
# ROUTE
#
# -----------------------------------------------------------------------------
#
# Routes represent collections/sets of paths that can be matched. Typically
# routes are made of chunks separated by a `/`.


class RoutePattern(NamedTuple):
    """Used in a parameter chunk to extract/match from the give path."""

    expr: str
    extractor: Type[Any] | Callable[[str], Any]


class TextChunk(NamedTuple):
    """A raw text chunk"""

    text: str


class ParameterChunk(NamedTuple):
    """A parameterizable chunk, where the chunk must match the given patttern."""

    name: str
    pattern: RoutePattern


TChunk = TextChunk | ParameterChunk


class Route:
    """Parses a route where template expressions are like `{name}` or
    `{name:type}`. Routes can have priorities and be assigned handlers,
    they are then registered in the dispatcher to match requests.

    Matched values are percent-decoded before extraction, so that
    `/download/My%20Report.PDF` gives `My Report.PDF`."""

    RE_PATTERN_NAME: ClassVar[Pattern[str]] = re.compile("^[A-Za-z]+$")

    RE_TEMPLATE: ClassVar[Pattern[str]] = re.compile(
        r"\{(?P<name>[\w][_\w\d]*)(:(?P<type>[^}]+))?\}"
    )

    PATTERNS: ClassVar[dict[str, RoutePattern]] = {
        "id": RoutePattern(r"[a-zA-Z0-9\-_]+", str),
        "name": RoutePattern(r"\w[\-\w]*", str),
        "string": RoutePattern(r"[^/]+", str),
        "segment": RoutePattern(r"[^/]+", str),
        "digits": RoutePattern(r"\d+", int),
        "int": RoutePattern(r"\-?\d+", int),
        "path": RoutePattern(r"[^:@]+", str),
        "any": RoutePattern(r".*", str),
        "rest": RoutePattern(r".+", str),
    }

    @classmethod
    def Parse(cls, expression: str) -> list[TChunk]:
        """Parses routes expressses as strings where patterns are denoted
        as `{name}` or `{name:pattern}`"""
        chunks: list[TChunk] = []
        offset: int = 0
        for match in cls.RE_TEMPLATE.finditer(expression):
            chunks.append(TextChunk(re.escape(expression[offset : match.start()])))
            name: str = match.group("name")
            pattern: str = match.group("type") or "segment"
            if pattern.lower() in cls.PATTERNS:
                pat = cls.PATTERNS[pattern.lower()]
            elif cls.RE_PATTERN_NAME.match(pattern):
                raise ValueError(
                    f"Route pattern '{pattern}' is not registered, pick one of: {', '.join(sorted(cls.PATTERNS.keys()))}"
                )
            else:
                # The pattern is given as a regular expression
                pat = RoutePattern(pattern, str)
            chunks.append(ParameterChunk(name, pat))
            offset = match.end()
        chunks.append(TextChunk(re.escape(expression[offset:])))
        return chunks

    def __init__(self, text: str, handler: Optional["Handler"] = None):
        self.text: str = text
        self.chunks: list[TChunk] = self.Parse(text)
        self.params: dict[str, ParameterChunk] = {
            _.name: _ for _ in self.chunks if isinstance(_, ParameterChunk)
        }
        self.handler: Handler | None = handler
        self._regexp: Pattern[str] | None = None

    @property
    def priority(self) -> int:
        """Returns the priority of te route, defined by `handler.priority`
        or defaulting to 0."""
        return self.handler.priority if self.handler else 0

    @property
    def regexp(self) -> Pattern[str]:
        if not self._regexp:
            try:
                self._regexp = re.compile(f"^{self.toRegExp()}$")
            except re.error as e:
                raise ValueError(
                    f"Route syntax is malformed: {repr(self.toRegExp())}"
                ) from e
        return self._regexp

    def toRegExp(self) -> str:
        res: list[str] = []
        for chunk in self.chunks:
            if isinstance(chunk, TextChunk):
                res.append(chunk.text)
            else:
                res.append(f"(?P<{chunk.name}>{chunk.pattern.expr})")
        return "".join(res)

    def match(self, path: str) -> dict[str, Any] | None:
        matches = self.regexp.match(path)
        if not matches:
            return None
        res: dict[str, Any] = {}
        for k, v in self.params.items():
            value = unquote(matches.group(k))
            try:
                res[k] = v.pattern.extractor(value)
            except ValueError:
                return None
        return res

    def __repr__(self) -> str:
        return f"(Route \"{self.toRegExp()}\" ({' '.join(_ for _ in self.params)}))"


# -----------------------------------------------------------------------------
#
# HANDLER
#
# -----------------------------------------------------------------------------


class Handler:
    """A handler wraps a function and maps it to paths for HTTP methods,
    along with a priority. The handler is used by the dispatchers to match
    a request."""

    @classmethod
    def Has(cls, value: Any) -> bool:
        return hasattr(value, Marks.ON)

    @classmethod
    def Get(cls, value: Any) -> Optional["Handler"]:
        return (
            Handler(
                functor=value,
                methods=getattr(value, Marks.ON),
                expose=cast(Expose | None, getattr(value, Marks.EXPOSE, None)),
                priority=getattr(value, Marks.ON_PRIORITY, 0),
                post=getattr(value, Marks.POST, None),
            )
            if cls.Has(value)
            else None
        )

    def __init__(
        self,
        functor: Callable[..., Any],
        methods: list[tuple[str, str]],
        priority: int = 0,
        expose: Expose | None = None,
        post: list[Transform] | None = None,
    ):
        self.functor = functor
        self.methods: dict[str, list[str]] = {}
        for method, path in methods:
            self.methods.setdefault(method, []).append(path)
        self.priority = priority
        self.expose = expose
        self.post: list[Transform] | None = post

    async def __call__(
        self, request: HTTPRequest, params: dict[str, Any]
    ) -> HTTPResponse:
        try:
            if self.expose:
                value: Any = await awaited(self.functor(**params))
                content_type = self.expose.contentType or "application/json"
                response: HTTPResponse = request.returns(
                    value, contentType=content_type
                )
            else:
                response = await awaited(self.functor(request, **params))
        except ShareboxError as error:
            response = request.error(error.status, error.message)
        return postprocess(request, response, self.post) if self.post else response

    def __repr__(self) -> str:
        methods = " ".join(
            f'({k} {" ".join(repr(_) for _ in v)})' for k, v in self.methods.items()
        )
        attrs = []
        if self.expose:
            attrs.append(":expose")
        if self.post:
            attrs.append(f":post({len(self.post)})")
        return (
            f"(Handler {self.priority} ({methods}) '{self.functor}' {' '.join(attrs)})"
        )


# -----------------------------------------------------------------------------
#
# DISPATCHER
#
# -----------------------------------------------------------------------------


class Dispatcher:
    """A dispatcher registers handlers that respond to HTTP methods
    on a given path/URI."""

    def __init__(self) -> None:
        self.routes: dict[str, list[Route]] = {}

    def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
        """Registers the handlers and their routes, adding the prefix if given."""
        for method, paths in handler.methods.items():
            for path in paths:
                path = f"{prefix}{path}" if prefix else path
                path = f"/{path}" if not path.startswith("/") else path
                route: Route = Route(path, handler)
                logged(debug) and debug("Registered route", Method=method, Path=path)
                self.routes.setdefault(method, []).append(route)
        return self

    def allows(self, path: str) -> list[str]:
        """Returns the methods that have a route matching the path."""
        return sorted(
            method
            for method, routes in self.routes.items()
            if any(_.match(path) is not None for _ in routes)
        )

    def match(
        self, method: str, path: str
    ) -> tuple[Route | None, dict[str, Any] | None]:
        """Matches a given `method` and `path` with the registered route, returning
        the matching route and the extracted parameters. The route with the
        highest priority wins, the first registered among equals."""
        matched_params: dict[str, Any] | None = None
        matched_route: Route | None = None
        for route in self.routes.get(method, ()):
            if matched_route and route.priority <= matched_route.priority:
                continue
            params = route.match(path)
            if params is not None:
                matched_params = params
                matched_route = route
        return (matched_route, matched_params)


# EOF
