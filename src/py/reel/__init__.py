from .http.model import HTTPRequest, HTTPResponse, HTTPRequestError  # NOQA: F401
from .http.ranges import ByteRange, RangeNotSatisfiable, parseRange  # NOQA: F401
from .decorators import on  # NOQA: F401
from .server import run  # NOQA: F401
from .model import Application, Service, mount  # NOQA: F401
from .utils.logging import Logger, LogLevel  # NOQA: F401


# EOF
