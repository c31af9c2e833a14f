import unittest

from request_tracker.parsers.errors import DecodeError
from request_tracker.parsers.platforms.common import decode_workspace, record_list
from request_tracker.parsers.platforms.copilot.decoder import decode_copilot_session
from request_tracker.parsers.platforms.cursor.decoder import decode_cursor_log, decode_cursor_record
from request_tracker.parsers.platforms.unified.decoder import decode_unified


class WorkspaceDecodingTests(unittest.TestCase):
    def test_object_string_and_absent_forms(self) -> None:
        workspace = decode_workspace({"project": "P", "targetFramework": "net8.0", "repository": "repo", "branch": "main"})
        assert workspace is not None
        self.assertEqual(workspace.project, "P")
        self.assertEqual(workspace.target_framework, "net8.0")
        self.assertEqual(workspace.branch, "main")

        bare = decode_workspace("P")
        assert bare is not None
        self.assertEqual(bare.project, "P")
        self.assertEqual(bare.repository, "")

        self.assertIsNone(decode_workspace(None))
        self.assertIsNone(decode_workspace(7))

    def test_copilot_workspace_string_and_object_agree_on_project(self) -> None:
        base = {"sessionId": "s", "statistics": {}, "requests": []}
        as_object = decode_copilot_session({**base, "workspace": {"project": "P"}})
        as_string = decode_copilot_session({**base, "workspace": "P"})
        absent = decode_copilot_session(base)
        assert as_object.workspace is not None and as_string.workspace is not None
        self.assertEqual(as_object.workspace.project, "P")
        self.assertEqual(as_string.workspace.project, "P")
        self.assertIsNone(absent.workspace)


class RecordListTests(unittest.TestCase):
    def test_missing_or_null_collection_is_empty(self) -> None:
        self.assertEqual(record_list({}, "entries"), [])
        self.assertEqual(record_list({"entries": None}, "entries"), [])

    def test_non_array_collection_is_a_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            record_list({"entries": {"requestId": "r1"}}, "entries")

    def test_non_object_items_are_dropped(self) -> None:
        self.assertEqual(record_list({"entries": [1, {"a": 1}, "x"]}, "entries"), [{"a": 1}])


class CopilotDecoderTests(unittest.TestCase):
    def test_request_fields_tolerate_mixed_types(self) -> None:
        log = decode_copilot_session(
            {
                "sessionId": "S-1",
                "started": "2024-05-01T09:00:00Z",
                "statistics": {"totalNetTokens": "300", "averageSuccessScore": 0.9},
                "requests": [
                    {
                        "requestId": "R-1",
                        "requestNumber": "2",
                        "timestamp": 1714557600000,
                        "userRequest": "Add login",
                        "cost": {"tokens": "120", "premiumRequests": "True"},
                        "score": "0.75",
                    },
                    {"requestId": "R-2", "totalTokens": 30},
                ],
            }
        )
        self.assertEqual(log.session_id, "S-1")
        assert log.statistics is not None
        self.assertEqual(log.statistics.total_net_tokens, 300)
        self.assertEqual(log.statistics.average_success_score, 0.9)
        first, second = log.requests
        self.assertEqual(first.request_number, 2)
        self.assertEqual(first.token_count, 120)
        self.assertTrue(first.is_premium)
        self.assertEqual(first.score, 0.75)
        self.assertIsNotNone(first.timestamp)
        self.assertEqual(second.token_count, 30)
        self.assertFalse(second.is_premium)
        self.assertIsNone(second.timestamp)

    def test_statistics_fall_back_to_total_tokens(self) -> None:
        log = decode_copilot_session({"sessionId": "s", "statistics": {"totalTokens": 55}})
        assert log.statistics is not None
        self.assertEqual(log.statistics.total_net_tokens, 55)

    def test_mistyped_requests_collection_is_rejected(self) -> None:
        with self.assertRaises(DecodeError):
            decode_copilot_session({"sessionId": "s", "statistics": {}, "requests": "oops"})

    def test_negative_token_counts_clamp_to_zero(self) -> None:
        log = decode_copilot_session(
            {
                "sessionId": "s",
                "statistics": {"totalNetTokens": -500},
                "requests": [{"requestId": "r", "cost": {"tokens": "-40"}}],
            }
        )
        assert log.statistics is not None
        self.assertEqual(log.statistics.total_net_tokens, 0)
        self.assertEqual(log.requests[0].token_count, 0)


class CursorDecoderTests(unittest.TestCase):
    def test_log_header_and_entries(self) -> None:
        log = decode_cursor_log(
            {
                "description": "Refactor",
                "session": "C-1",
                "sessionLabel": "Morning",
                "entries": [
                    {
                        "requestId": "E-1",
                        "exactRequest": "Rename things",
                        "contextApplied": ["a.py", None, "b.py"],
                        "successfulness": {"score": 4, "maxScore": 5, "notes": ["good"]},
                        "totalTokens": "80",
                    }
                ],
            }
        )
        self.assertEqual(log.description, "Refactor")
        self.assertEqual(log.session_label, "Morning")
        entry = log.entries[0]
        self.assertEqual(entry.context_applied, ["a.py", "b.py"])
        assert entry.successfulness is not None
        self.assertEqual(entry.successfulness.score, 4.0)
        self.assertEqual(entry.successfulness.notes, ["good"])
        self.assertEqual(entry.token_count, 80)

    def test_single_record_becomes_one_entry_log(self) -> None:
        log = decode_cursor_record({"requestId": "E-9", "exactRequest": "Fix", "exactRequestNote": "Fix bug"})
        self.assertEqual(len(log.entries), 1)
        self.assertEqual(log.entries[0].request_id, "E-9")
        self.assertEqual(log.entries[0].exact_request_note, "Fix bug")

    def test_negative_token_count_clamps_to_zero(self) -> None:
        log = decode_cursor_log({"session": "C", "entries": [{"requestId": "E", "cost": {"tokens": -40}}]})
        self.assertEqual(log.entries[0].token_count, 0)


class UnifiedDecoderTests(unittest.TestCase):
    def test_total_tokens_is_optional(self) -> None:
        self.assertIsNone(decode_unified({"sourceType": "Cursor", "entries": []}).total_tokens)
        self.assertEqual(decode_unified({"sourceType": "Cursor", "entries": [], "totalTokens": "9"}).total_tokens, 9)

    def test_blank_source_type_defaults(self) -> None:
        self.assertEqual(decode_unified({"sourceType": "", "entries": []}).source_type, "Unified")

    def test_negative_token_counts_clamp_to_zero(self) -> None:
        log = decode_unified(
            {"sourceType": "Cursor", "totalTokens": -9, "entries": [{"requestId": "r", "tokenCount": "-3"}]}
        )
        self.assertEqual(log.total_tokens, 0)
        self.assertEqual(log.entries[0].token_count, 0)


if __name__ == "__main__":
    unittest.main()
