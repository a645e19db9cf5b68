from typing import ClassVar, Union, Callable, TypeVar, Any, cast

T = TypeVar("T")


class Reel:
    """Defines the attributes used by decorators"""

    ON: ClassVar[str] = "_reel_on"
    ON_PRIORITY: ClassVar[str] = "_reel_on_priority"
    # When using MyPy, we can't dynamically patch values, so instead we're
    # collecting annotations by object id.
    Annotations: ClassVar[dict[int, dict[str, Any]]] = {}

    @staticmethod
    def Meta(scope: Any) -> dict[str, Any]:
        """Returns the dictionary of meta attributes for the given value."""
        if hasattr(scope, "__dict__"):
            return cast(dict[str, Any], scope.__dict__)
        else:
            sid = id(scope)
            if sid not in Reel.Annotations:
                Reel.Annotations[sid] = {}
            return Reel.Annotations[sid]


def on(
    priority: int = 0, **methods: Union[str, list[str], tuple[str, ...]]
) -> Callable[[T], T]:
    """Marks a service method as a request handler. The keyword arguments
    are HTTP methods (joined by `_` to share paths, like `GET_HEAD`) mapped
    to one or more route templates (see `reel.routing.Route`).

    >    @on(GET="/clips/{name:segment}")
    >    def clip(self, request, name):
    >        return request.respond(...)

    When more than one route matches a path, the one with the highest
    priority wins."""

    def decorator(function: T) -> T:
        meta = Reel.Meta(function)
        v = meta.setdefault(Reel.ON, [])
        meta.setdefault(Reel.ON_PRIORITY, priority)
        for http_methods, url in list(methods.items()):
            urls = (url,) if type(url) not in (list, tuple) else url
            for http_method in http_methods.upper().split("_"):
                for _ in urls:
                    v.append((http_method, _))
        return function

    return decorator


# EOF
