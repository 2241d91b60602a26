from ..http.model import HTTPRequest, HTTPResponse
from ..decorators import post

# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/CORS
# Range and Content-Range need to be explicitly allowed and exposed for
# players on another origin to seek in media.


def corsTransform(
	request: HTTPRequest, response: HTTPResponse, allowAll: bool = True
) -> HTTPResponse:
	return setCORSHeaders(
		response, origin=request.header("Origin"), allowAll=allowAll
	)


# A post decorator for the public read endpoints
cors = post(corsTransform)


def setCORSHeaders(
	response: HTTPResponse,
	*,
	origin: str | None = None,
	headers: list[str] | None = None,
	allowAll: bool = False,
) -> HTTPResponse:
	"""Sets the CORS headers on the given response.

	See <https://en.wikipedia.org/wiki/Cross-origin_resource_sharing>
	"""
	response.setHeaders(
		{
			"Access-Control-Allow-Origin": origin if origin and not allowAll else "*",
			"Access-Control-Allow-Headers": ",".join(headers) if headers else "Range",
			"Access-Control-Allow-Methods": "GET, HEAD",
			"Access-Control-Expose-Headers": "Content-Range, Content-Length, Accept-Ranges, Content-Disposition",
		}
	)
	if origin and not allowAll:
		response.setHeader("Vary", "Origin")
	return response


# EOF
