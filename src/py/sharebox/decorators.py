from typing import ClassVar, Callable, NamedTuple, TypeVar, Any, cast

from .http.model import HTTPRequest, HTTPResponse

T = TypeVar("T")


class Transform(NamedTuple):
    """Represents a transformation to be applied to a request handler"""

    transform: Callable[..., Any]
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


class Expose(NamedTuple):
    contentType: str | None = None


class Marks:
    """Attribute names under which the decorators store their information
    on the decorated functions."""

    ON: ClassVar[str] = "_sharebox_on"
    ON_PRIORITY: ClassVar[str] = "_sharebox_on_priority"
    EXPOSE: ClassVar[str] = "_sharebox_expose"
    POST: ClassVar[str] = "_sharebox_post"

    @staticmethod
    def Meta(scope: Any) -> dict[str, Any]:
        """Returns the dictionary of meta attributes for the given value."""
        if isinstance(scope, type):
            if "__sharebox__" not in scope.__dict__:
                setattr(scope, "__sharebox__", {})
            return cast(dict[str, Any], getattr(scope, "__sharebox__"))
        elif hasattr(scope, "__dict__"):
            return cast(dict[str, Any], scope.__dict__)
        else:
            raise RuntimeError(f"Metadata cannot be attached to object: {scope}")


def routes(meta: dict[str, Any], methods: dict[str, Any]) -> list[tuple[str, str]]:
    """Registers `GET_HEAD="path"` style arguments as `(method, path)`
    pairs in the meta."""
    v: list[tuple[str, str]] = meta.setdefault(Marks.ON, [])
    for http_methods, url in methods.items():
        urls = (url,) if isinstance(url, str) else url
        for http_method in http_methods.upper().split("_"):
            for _ in urls:
                v.append((http_method, _))
    return v


def on(priority: int = 0, **methods: str | list[str] | tuple[str, ...]) -> Callable[[T], T]:
    """Marks a service method as handling the requests matching the given
    HTTP methods and route templates, like:

    >    @on(GET_HEAD="download/{name:segment}")
    >    def download(self, request, name):
    >        return request.respond(...)

    The decorated method takes the request and the route parameters, and
    returns a response."""

    def decorator(function: T) -> T:
        meta = Marks.Meta(function)
        meta.setdefault(Marks.ON_PRIORITY, priority)
        routes(meta, methods)
        return function

    return decorator


def expose(
    priority: int = 0,
    contentType: str | None = None,
    **methods: str | list[str] | tuple[str, ...],
) -> Callable[[T], T]:
    """Like @on, but the decorated method only takes the route parameters
    and its return value is sent as JSON with the given content type."""

    def decorator(function: T) -> T:
        meta = Marks.Meta(function)
        meta.setdefault(Marks.ON_PRIORITY, int(priority))
        routes(meta, methods)
        meta.setdefault(Marks.EXPOSE, Expose(contentType=contentType))
        return function

    return decorator


def post(
    transform: Callable[..., HTTPResponse],
) -> Callable[..., Callable[[T], T]]:
    """Turns `transform(request, response, …)` into a decorator that
    registers it as a post-processing step of the decorated handler."""

    def decorator(function: T, *args: Any, **kwargs: Any) -> T:
        v = Marks.Meta(function).setdefault(Marks.POST, [])
        v.append(Transform(transform, args, kwargs))
        return function

    return cast(Callable[..., Callable[[T], T]], decorator)


def postprocess(
    request: HTTPRequest, response: HTTPResponse, transforms: list[Transform]
) -> HTTPResponse:
    for t in transforms:
        res = t.transform(request, response, *t.args, **t.kwargs)
        if isinstance(res, HTTPResponse):
            response = res
    return response


# EOF
