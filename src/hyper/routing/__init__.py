"""Routing: path patterns, the ordered route table, and dispatch."""

from hyper.routing.dispatcher import Dispatcher
from hyper.routing.pattern import CompiledPattern, compile_pattern, match
from hyper.routing.route import Route, RouteMatch
from hyper.routing.router import RouteTable

__all__ = [
    "CompiledPattern",
    "Dispatcher",
    "Route",
    "RouteMatch",
    "RouteTable",
    "compile_pattern",
    "match",
]
