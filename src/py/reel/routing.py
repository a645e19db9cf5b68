from typing import (
    Callable,
    Optional,
    Any,
    Pattern,
    Type,
    NamedTuple,
    ClassVar,
)

from .decorators import Reel
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import Logger

from inspect import iscoroutine
import re


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
    `{name:type}`. Routes are assigned handlers, they are then registered
    in the dispatcher to match requests."""

    RE_PATTERN_NAME: ClassVar[Pattern[str]] = re.compile("^[A-Za-z]+$")

    RE_TEMPLATE: ClassVar[Pattern[str]] = re.compile(
        r"\{(?P<name>[\w][_\w\d]*)(:(?P<type>[^}]+))?\}"
    )

    PATTERNS: ClassVar[dict[str, RoutePattern]] = {
        "id": RoutePattern(r"[a-zA-Z0-9\-_]+", str),
        "name": RoutePattern(r"\w[\-\w]*", str),
        "digits": RoutePattern(r"\d+", int),
        "segment": RoutePattern(r"[^/]+", str),
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
            pattern: str = (match.group("type") or name).lower()
            if pattern not in cls.PATTERNS:
                if cls.RE_PATTERN_NAME.match(pattern):
                    raise ValueError(
                        f"Route pattern '{pattern}' is not registered, pick one of: {', '.join(sorted(cls.PATTERNS.keys()))}"
                    )
                else:
                    # This creates a pattern in case the pattern is not a named
                    # pattern.
                    pat = RoutePattern(pattern, str)
            else:
                pat = cls.PATTERNS[pattern]
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

    def toRegExpChunks(self) -> list[str]:
        res: list[str] = []
        for chunk in self.chunks:
            if isinstance(chunk, TextChunk):
                res.append(chunk.text)
            elif isinstance(chunk, ParameterChunk):
                res.append(f"(?P<{chunk.name}>{chunk.pattern.expr})")
            else:
                raise ValueError(f"Unsupported chunk type: {chunk}")
        return res

    def toRegExp(self) -> str:
        return "".join(self.toRegExpChunks())

    def match(self, path: str) -> dict[str, Any] | None:
        matches = self.regexp.match(path)
        return (
            {k: v.pattern.extractor(matches.group(k)) for k, v in self.params.items()}
            if matches
            else None
        )

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
        return id(value) in Reel.Annotations or hasattr(value, Reel.ON)

    @classmethod
    def Attr(cls, value: Any, key: str) -> Any:
        sid = id(value)
        if sid in Reel.Annotations:
            return Reel.Annotations[sid].get(key)
        else:
            return getattr(value, key, None)

    @classmethod
    def Get(cls, value: Any) -> Optional["Handler"]:
        return (
            Handler(
                functor=value,
                methods=cls.Attr(value, Reel.ON),
                priority=cls.Attr(value, Reel.ON_PRIORITY) or 0,
            )
            if cls.Has(value)
            else None
        )

    def __init__(
        self,
        functor: Callable[..., Any],
        methods: list[tuple[str, str]],
        priority: int = 0,
    ):
        self.functor = functor
        # This extracts and normalizes the methods
        self.methods: dict[str, list[str]] = {}
        for method, path in methods:
            self.methods.setdefault(method, []).append(path)
        self.priority = priority

    async def __call__(
        self, request: HTTPRequest, params: dict[str, Any]
    ) -> HTTPResponse:
        try:
            return await awaited(self.functor(request, **params))
        except HTTPRequestError as error:
            return request.error(
                error.status or 500,
                error.message,
                contentType=error.contentType or "text/plain",
                headers=error.headers,
            )

    def __repr__(self) -> str:
        methods = " ".join(
            f'({k} {" ".join(repr(_) for _ in v)})' for k, v in self.methods.items()
        )
        return f"(Handler {self.priority} ({methods}) '{self.functor}')"


# -----------------------------------------------------------------------------
#
# DISPATCHER
#
# -----------------------------------------------------------------------------


class Dispatcher:
    """A dispatcher registers handlers that respond to HTTP methods
    on a given path/URI."""

    def __init__(self, logger: Logger | None = None) -> None:
        self.routes: dict[str, list[Route]] = {}
        self.logger: Logger = logger or Logger()

    def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
        """Registers the handlers and their routes, adding the prefix if given."""
        for method, paths in handler.methods.items():
            for path in paths:
                path = f"{prefix}{path}" if prefix else path
                path = f"/{path}" if not path.startswith("/") else path
                route: Route = Route(path, handler)
                self.logger.debug("Registered route", Method=method, Path=path)
                self.routes.setdefault(method, []).append(route)
        return self

    def match(
        self, method: str, path: str
    ) -> tuple[Route | None, dict[str, Any] | None]:
        """Matches a given `method` and `path` with the registered route, returning
        the matching route and the extracted parameters. On equal priority,
        the first registered route wins."""
        matched_match: dict[str, Any] | None = None
        matched_route: Route | None = None
        for route in self.routes.get(method, ()):
            if matched_route and route.priority <= matched_route.priority:
                continue
            match = route.match(path)
            if match is not None:
                matched_match = match
                matched_route = route
        return (matched_route, matched_match)


# EOF
