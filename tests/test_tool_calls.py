import unittest

from commerce_chat.tool_calls import ToolCallParseError, ToolRequest, is_tool_call, parse_tool_call


class DetectionTests(unittest.TestCase):
    def test_detects_leading_fragment(self) -> None:
        self.assertTrue(is_tool_call('{"tool": "search_products", "query": "laptop"}'))

    def test_ignores_leading_whitespace(self) -> None:
        self.assertTrue(is_tool_call('\n   {"tool": "check_order_status", "order_id": 1}'))

    def test_plain_text_is_not_a_tool_call(self) -> None:
        self.assertFalse(is_tool_call("Sure, which brand do you prefer?"))

    def test_fragment_must_be_leading(self) -> None:
        self.assertFalse(is_tool_call('Let me check: {"tool": "check_order_status", "order_id": 1}'))

    def test_spacing_inside_fragment_does_not_match(self) -> None:
        self.assertFalse(is_tool_call('{ "tool": "search_products", "query": "laptop"}'))

    def test_empty_and_none(self) -> None:
        self.assertFalse(is_tool_call(""))
        self.assertFalse(is_tool_call(None))


class ParserTests(unittest.TestCase):
    def test_numeric_value(self) -> None:
        request = parse_tool_call('{"tool": "check_order_status", "order_id": 54321}')
        self.assertEqual(ToolRequest("check_order_status", "order_id", "54321"), request)

    def test_quoted_value_with_spaces_and_escapes(self) -> None:
        request = parse_tool_call('{"tool":"search_products","query":"men\'s \\"trail\\" shoes"}')
        self.assertEqual("search_products", request.tool)
        self.assertEqual("query", request.param_name)
        self.assertEqual('men\'s "trail" shoes', request.value)

    def test_whitespace_between_tokens(self) -> None:
        request = parse_tool_call('  {"tool":   "search_products" ,\n "query" :  "Jeans"  }')
        self.assertEqual("Jeans", request.value)

    def test_bare_identifier_value(self) -> None:
        request = parse_tool_call('{"tool": "search_products", "query": Outerwear}')
        self.assertEqual("Outerwear", request.value)

    def test_trailing_text_after_object_is_ignored(self) -> None:
        request = parse_tool_call('{"tool": "check_order_status", "order_id": 7} Checking now.')
        self.assertEqual("7", request.value)

    def test_rejects_missing_parameter(self) -> None:
        with self.assertRaises(ToolCallParseError):
            parse_tool_call('{"tool": "search_products"}')

    def test_rejects_extra_field(self) -> None:
        with self.assertRaises(ToolCallParseError):
            parse_tool_call('{"tool": "search_products", "query": "a", "limit": 3}')

    def test_rejects_nested_value(self) -> None:
        with self.assertRaises(ToolCallParseError):
            parse_tool_call('{"tool": "search_products", "query": {"name": "a"}}')

    def test_rejects_unterminated_string(self) -> None:
        with self.assertRaises(ToolCallParseError):
            parse_tool_call('{"tool": "search_products", "query": "laptop')

    def test_rejects_invalid_tool_name(self) -> None:
        with self.assertRaises(ToolCallParseError):
            parse_tool_call('{"tool": "search products", "query": "a"}')

    def test_rejects_second_tool_field(self) -> None:
        with self.assertRaises(ToolCallParseError):
            parse_tool_call('{"tool": "search_products", "tool": "a"}')
