import unittest

from request_tracker.parsers.schema import SchemaKind, classify


class SchemaClassifierTests(unittest.TestCase):
    def test_copilot_session_needs_session_id_and_statistics(self) -> None:
        self.assertEqual(
            classify({"sessionId": "s1", "statistics": {}, "requests": []}),
            SchemaKind.COPILOT_SESSION,
        )
        self.assertNotEqual(classify({"sessionId": "s1", "requests": []}), SchemaKind.COPILOT_SESSION)

    def test_cursor_log(self) -> None:
        self.assertEqual(classify({"session": "abc", "entries": []}), SchemaKind.CURSOR_LOG)

    def test_single_record_markers(self) -> None:
        for marker in ("exactRequest", "exactRequestNote", "actions"):
            self.assertEqual(
                classify({"requestId": "r1", marker: "x"}),
                SchemaKind.CURSOR_SINGLE_RECORD,
                marker,
            )
        self.assertEqual(classify({"requestId": "r1"}), SchemaKind.UNRECOGNIZED)

    def test_unified_shape(self) -> None:
        self.assertEqual(classify({"sourceType": "Copilot", "entries": []}), SchemaKind.UNIFIED)

    def test_keys_match_case_insensitively(self) -> None:
        self.assertEqual(classify({"SESSIONID": "s", "Statistics": {}}), SchemaKind.COPILOT_SESSION)
        self.assertEqual(classify({"Entries": [], "SourceType": "x"}), SchemaKind.UNIFIED)

    def test_first_matching_rule_wins(self) -> None:
        doc = {"sessionId": "s", "statistics": {}, "session": "x", "entries": [], "sourceType": "y"}
        self.assertEqual(classify(doc), SchemaKind.COPILOT_SESSION)
        self.assertEqual(classify({"session": "x", "entries": [], "sourceType": "y"}), SchemaKind.CURSOR_LOG)

    def test_values_are_never_inspected(self) -> None:
        self.assertEqual(classify({"sessionId": None, "statistics": "nope"}), SchemaKind.COPILOT_SESSION)

    def test_bare_entries_list_is_a_cursor_log(self) -> None:
        self.assertEqual(classify({"entries": [{"requestId": "r1"}]}), SchemaKind.CURSOR_LOG)

    def test_unrecognized_documents(self) -> None:
        for doc in ({}, {"foo": 1}, [], [1, 2], "text", 42, None):
            self.assertEqual(classify(doc), SchemaKind.UNRECOGNIZED, doc)


if __name__ == "__main__":
    unittest.main()
