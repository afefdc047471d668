"""
=============================================================================
EXACT-PATH ROUTER
=============================================================================

Maps a request path to one registered handler. There are no patterns,
parameters or wildcards: a route matches when its path is the exact same
string as the request path (query string already removed).

    "/events"   matches   GET /events
    "/events"   matches   GET /events?since=10
    "/events"   no match  GET /events/
    "/events"   no match  GET /Events

=============================================================================
TWO HANDLER KINDS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   TEXT                              STREAM                          │
    │   ────                              ──────                          │
    │   def hello(request):               def tick(writer, request):      │
    │       return "hello"                    writer.write("...")         │
    │                                                                     │
    │   returns the whole body;           gets a live ResponseWriter and  │
    │   sent as 200 text/plain            owns status, headers and body   │
    └─────────────────────────────────────────────────────────────────────┘

The kind is inferred from the handler signature (two required positional
parameters means STREAM) or given explicitly with kind=.

=============================================================================
PRECEDENCE
=============================================================================

One table, two passes:

    1. every TEXT route, in registration order
    2. every STREAM route, in registration order

The first exact match wins, so a path registered twice always resolves to
the earlier registration of the kind that is checked first. The method is
recorded on the Route but takes no part in matching:

    server.get("/x", first)
    server.post("/x", second)     # shadowed, "/x" always calls first()

=============================================================================
"""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional


Handler = Callable[..., object]


class HandlerKind(Enum):
    """How a handler produces its response."""
    TEXT = "text"       # handler(request) -> str | bytes
    STREAM = "stream"   # handler(writer, request) -> None


@dataclass(frozen=True)
class Route:
    """
    A registered route.

        Route(path="/echo", method="GET", handler=echo, kind=HandlerKind.TEXT)
    """
    path: str
    method: str
    handler: Handler
    kind: HandlerKind


def infer_kind(handler: Handler) -> HandlerKind:
    """
    Pick the handler kind from its signature.

    Two or more required positional parameters means STREAM. Anything else,
    including callables whose signature cannot be inspected, is TEXT.
    """
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return HandlerKind.TEXT

    required = [
        param for param in signature.parameters.values()
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD)
        and param.default is param.empty
    ]
    return HandlerKind.STREAM if len(required) >= 2 else HandlerKind.TEXT


class Router:
    """
    Ordered route table with TEXT-before-STREAM lookup.

    Usage:
        router = Router()

        @router.get("/")
        def index(request):
            return "hello"

        @router.get("/events")
        def events(writer, request):
            writer.write("data: 1\\n\\n")

        route = router.match("/")      # Route(path="/", kind=TEXT, ...)

    The table is filled before the server starts and only read afterwards.
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str = "GET",
        kind: Optional[HandlerKind] = None,
    ) -> Route:
        """
        Register a handler under an exact path.

        Args:
            path: Path to match, compared byte for byte.
            handler: TEXT or STREAM handler.
            method: Recorded on the route; not used for matching.
            kind: Handler kind. None infers it from the signature.

        Returns:
            The registered Route.
        """
        if not callable(handler):
            raise TypeError(f"handler for {path!r} is not callable")

        route = Route(
            path=path,
            method=method.upper(),
            handler=handler,
            kind=kind if kind is not None else infer_kind(handler),
        )
        self._routes.append(route)
        return route

    def route(
        self,
        path: str,
        method: str = "GET",
        kind: Optional[HandlerKind] = None,
    ) -> Callable[[Handler], Handler]:
        """
        Decorator form of add_route().

            @router.route("/submit", method="POST")
            def submit(request):
                return "ok"
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, kind)
            return handler
        return decorator

    def get(self, path: str, kind: Optional[HandlerKind] = None) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(path, "GET", kind)

    def post(self, path: str, kind: Optional[HandlerKind] = None) -> Callable[[Handler], Handler]:
        """Register a POST route."""
        return self.route(path, "POST", kind)

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, path: str) -> Optional[Route]:
        """
        Find the route for a request path.

        Args:
            path: Request path with the query string already removed.

        Returns:
            The first TEXT route with this exact path, else the first STREAM
            route, else None.
        """
        for kind in (HandlerKind.TEXT, HandlerKind.STREAM):
            for route in self._routes:
                if route.kind is kind and route.path == path:
                    return route
        return None

    def routes(self) -> List[Route]:
        """All routes in registration order."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)
