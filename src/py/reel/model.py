from typing import Optional, Iterable, ClassVar, Any, Coroutine, NamedTuple

from mypy_extensions import mypyc_attr

from .routing import Handler, Dispatcher
from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import Logger

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


# Services are subclassed by user code, which stays interpreted when the
# package is compiled with mypyc.
@mypyc_attr(allow_interpreted_subclasses=True)
class Service:
    PREFIX: ClassVar[str] = ""
    NO_HANDLER: ClassVar[list[str]] = [
        "name",
        "app",
        "prefix",
        "logger",
        "_handlers",
        "isMounted",
        "handlers",
        "start",
        "stop",
    ]

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        prefix: str | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.name: str = name or self.__class__.__name__
        self.app: Optional[Application] = None
        self.prefix = prefix or self.PREFIX
        self.logger: Logger = logger or Logger()
        self._handlers: Optional[list[Handler]] = None

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
        for value in (getattr(self, _) for _ in dir(self) if _ not in self.NO_HANDLER):
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


@mypyc_attr(allow_interpreted_subclasses=True)
class Application:
    def __init__(
        self,
        services: list[Service] | None = None,
        *,
        logger: Logger | None = None,
        logRequests: bool = True,
    ) -> None:
        self.logger: Logger = logger or Logger()
        self.dispatcher: Dispatcher = Dispatcher(self.logger)
        self.services: list[Service] = []
        self.logRequests: bool = logRequests
        for service in services or ():
            self.mount(service)

    async def start(self) -> "Application":
        for srv in self.services:
            try:
                await srv.start()
            except Exception as e:
                raise self.logger.exception(e, f"Could not start service {srv}") from e
        return self

    async def stop(self) -> "Application":
        for srv in self.services:
            try:
                await srv.stop()
            except Exception as e:
                self.logger.exception(e, f"Could not stop service {srv}")
        return self

    def process(
        self, request: HTTPRequest
    ) -> HTTPResponse | Coroutine[Any, Any, HTTPResponse]:
        if self.logRequests:
            self.logger.trace(
                f"{request.peer or '-'}: {request.method} {request.path}"
            )
        route, params = self.dispatcher.match(
            request.method or "GET", request.path or "/"
        )
        if route and route.handler:
            return route.handler(request, params or {})
        else:
            self.logger.debug("No route found", Method=request.method, Path=request.path)
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

    app: Application | None
    services: list[Service]

    @staticmethod
    def Make(components: Iterable[Application | Service]) -> "Components":
        app: Application | None = None
        services: list[Service] = []
        for item in components:
            if isinstance(item, Application):
                if app:
                    raise RuntimeError(f"Only one application can be given, got: {item}")
                app = item
            elif isinstance(item, Service):
                services.append(item)
            else:
                raise RuntimeError(f"Unsupported component type {type(item)}: {item}")
        return Components(app, services)


def mount(*components: Application | Service, logger: Logger | None = None) -> Application:
    """Mounts the given services into an application, creating it when
    none is given."""
    c = Components.Make(components)
    app: Application = c.app or Application(logger=logger)
    for service in c.services:
        app.mount(service)
    return app


# EOF
