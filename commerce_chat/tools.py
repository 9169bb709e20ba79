from __future__ import annotations

import re
from typing import Callable, Dict

from loguru import logger

from .catalog import CatalogRepository
from .tool_calls import ToolCallParseError, parse_tool_call

MAX_PRODUCT_RESULTS = 5
PARSE_FAILURE_RESULT = "Could not parse tool call from model response."

_INTEGER = re.compile(r"[+-]?\d+")
_MIN_ID, _MAX_ID = -(2**63), 2**63 - 1


class ToolExecutor:
    """Runs a tool request against the catalog and renders the outcome as text.

    Every path returns a string; the result is fed back to the model as
    conversation content, so failures are rendered rather than raised.
    """

    def __init__(self, catalog: CatalogRepository) -> None:
        self._catalog = catalog
        self._handlers: Dict[str, Callable[[str], str]] = {
            "search_products": self.search_products,
            "check_order_status": self.check_order_status,
        }

    def execute(self, raw_text: str) -> str:
        try:
            request = parse_tool_call(raw_text)
        except ToolCallParseError as e:
            logger.debug(f"Unparseable tool call ({e}): {raw_text!r}")
            return PARSE_FAILURE_RESULT

        handler = self._handlers.get(request.tool)
        if handler is None:
            return f"Unknown tool: {request.tool}"
        try:
            return handler(request.value)
        except Exception as e:
            logger.warning(f"Tool {request.tool!r} failed: {e}")
            return f"Error executing tool '{request.tool}': {e}"

    def search_products(self, query: str) -> str:
        products = self._catalog.search_products(query, limit=MAX_PRODUCT_RESULTS)
        if not products:
            return f"No products found matching '{query}'."
        lines = [
            f"{p.name} (Brand: {p.brand}, Price: ${p.retail_price:.2f}, Category: {p.category})"
            for p in products[:MAX_PRODUCT_RESULTS]
        ]
        return "Found the following products:\n- " + "\n- ".join(lines)

    def check_order_status(self, order_id: str) -> str:
        # Order ids are signed 64-bit, as stored
        if not _INTEGER.fullmatch(order_id) or not _MIN_ID <= int(order_id) <= _MAX_ID:
            return f"Invalid number format for tool parameter: {order_id}"
        order = self._catalog.get_order(int(order_id))
        if order is None:
            return f"Order with ID {int(order_id)} not found."
        return (
            f"Order {order.id} is currently '{order.status}' and was created on "
            f"{order.created_at}. It contains {order.num_of_item} items."
        )
