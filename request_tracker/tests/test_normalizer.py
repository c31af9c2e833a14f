import json
import unittest

from request_tracker.parsers.errors import NormalizationError
from request_tracker.parsers.normalizer import (
    MULTIPLE_FILES,
    extract_actions,
    extract_interpretation,
    flatten_response,
    parse_actions,
    synthesize_response,
)
from request_tracker.parsers.platforms.registry import classify_and_normalize


class ActionParsingTests(unittest.TestCase):
    def test_plain_string_array_is_numbered_by_position(self) -> None:
        actions = parse_actions(["Edited a.py", "Ran tests"])
        self.assertEqual([(a.order, a.description) for a in actions], [(1, "Edited a.py"), (2, "Ran tests")])

    def test_objects_with_and_without_order(self) -> None:
        actions = parse_actions(
            [
                {"order": 5, "description": "Explicit", "type": "edit", "status": "done", "filePath": "a.py"},
                {"description": "Positional", "filePaths": ["a.py", "b.py"]},
                {"order": "7", "description": "String order"},
            ]
        )
        self.assertEqual([a.order for a in actions], [5, 2, 7])
        self.assertEqual(actions[0].file_path, "a.py")
        self.assertEqual(actions[0].type, "edit")
        self.assertEqual(actions[1].file_path, MULTIPLE_FILES)
        self.assertEqual(actions[2].file_path, "")

    def test_json_encoded_string_arrays_decode_like_arrays(self) -> None:
        structured = [{"order": 1, "description": "A"}, {"order": 2, "description": "B"}]
        plain = ["A", "B"]
        self.assertEqual(parse_actions(json.dumps(structured)), parse_actions(structured))
        self.assertEqual(parse_actions(json.dumps(plain)), parse_actions(plain))

    def test_unreadable_actions_yield_nothing(self) -> None:
        for value in (None, "", "not json", "[broken", {"order": 1}, 12):
            self.assertEqual(parse_actions(value), [], value)

    def test_actions_taken_win_over_structured_actions(self) -> None:
        actions = extract_actions(["Taken"], [{"order": 1, "description": "Structured"}])
        self.assertEqual([a.description for a in actions], ["Taken"])
        fallback = extract_actions([], [{"order": 1, "description": "Structured"}])
        self.assertEqual([a.description for a in fallback], ["Structured"])


class ResponseTextTests(unittest.TestCase):
    def test_flatten_concatenates_arrays(self) -> None:
        self.assertEqual(flatten_response(["Hello ", "world"]), "Hello world")
        self.assertEqual(flatten_response(None), "")
        self.assertEqual(flatten_response({"a": 1}), '{"a":1}')

    def test_explicit_response_wins(self) -> None:
        self.assertEqual(synthesize_response("Done.", {"summary": "ignored"}, ["x"]), "Done.")

    def test_blank_response_is_synthesized(self) -> None:
        text = synthesize_response(
            "   ",
            {"summary": "Add login", "requirements": ["OAuth", "Tests"]},
            [{"order": 1, "description": "Created auth.py"}, "Ran tests"],
        )
        self.assertEqual(
            text,
            "### Summary\nAdd login\n\n"
            "### Requirements\n- OAuth\n- Tests\n\n"
            "### Actions Taken\n1. Created auth.py\n- Ran tests",
        )

    def test_nothing_to_synthesize_is_empty(self) -> None:
        self.assertEqual(synthesize_response(None, None, None), "")


class InterpretationTests(unittest.TestCase):
    def test_structured_interpretation_sections(self) -> None:
        text = extract_interpretation(
            {"summary": "Goal", "requirements": ["R1"], "purpose": ["P1"], "keyDecisions": ["K1", "K2"]}
        )
        self.assertEqual(
            text,
            "Goal\n\nRequirements:\n- R1\n\nPurpose:\n- P1\n\nKey Decisions:\n- K1\n- K2",
        )

    def test_list_and_scalar_interpretation(self) -> None:
        self.assertEqual(extract_interpretation(["one", "two"]), "one\ntwo")
        self.assertEqual(extract_interpretation("plain"), "plain")
        self.assertEqual(extract_interpretation(None), "")


class SessionNormalizationTests(unittest.TestCase):
    def test_copilot_session(self) -> None:
        doc = {
            "sessionId": "S-1",
            "model": "gpt-4o",
            "workspace": {"project": "Shop", "repository": "shop-repo"},
            "status": "Active",
            "completed": "2024-05-01T12:00:00Z",
            "statistics": {"totalNetTokens": 500},
            "requests": [
                {
                    "requestId": "R-1",
                    "requestNumber": 1,
                    "slug": "add-cart",
                    "title": "Add cart",
                    "userRequest": "Please add a cart",
                    "timestamp": "2024-05-01T10:00:00Z",
                    "cost": {"tokens": 200},
                    "context": ["cart.py"],
                    "actionsTaken": ["Created cart.py"],
                },
                {"requestId": "R-2", "userRequest": "More", "status": "Failed"},
            ],
        }
        session = classify_and_normalize(json.dumps(doc), "logs/copilot.json")
        self.assertEqual(session.source_kind, "Copilot")
        self.assertEqual(session.title, "Shop")
        self.assertEqual(session.total_tokens, 500)
        self.assertEqual(session.entry_count, 2)
        self.assertIsNotNone(session.last_updated_at)

        first, second = session.entries
        self.assertEqual(first.agent, "Copilot")
        self.assertEqual(first.query_text, "Please add a cart")
        self.assertEqual(first.query_title, "Add cart")
        self.assertEqual(first.context_list, ["cart.py"])
        self.assertEqual(first.status, "Completed")
        self.assertEqual(first.tags, ["Request #1", "Slug: add-cart"])
        self.assertEqual(first.source_file, "logs/copilot.json")
        self.assertEqual(first.original_entry["requestId"], "R-1")
        self.assertEqual([action.description for action in first.actions], ["Created cart.py"])
        self.assertEqual(second.status, "Failed")
        self.assertEqual(second.actions, [])

    def test_copilot_totals_fall_back_to_entry_sum(self) -> None:
        doc = {
            "sessionId": "S-2",
            "statistics": {},
            "requests": [{"requestId": "a", "totalTokens": "150"}, {"requestId": "b", "cost": {"tokens": 50}}],
        }
        session = classify_and_normalize(json.dumps(doc))
        self.assertEqual(session.total_tokens, 200)
        self.assertEqual(session.title, "Copilot Session")

    def test_cursor_log(self) -> None:
        doc = {
            "session": "C-1",
            "sessionLabel": "Label",
            "entries": [
                {
                    "requestId": "E-1",
                    "model": "claude",
                    "exactRequest": "Refactor",
                    "exactRequestNote": "Refactor note",
                    "response": ["Part 1. ", "Part 2."],
                    "successfulness": {"score": 4, "notes": ["Clean"]},
                    "actionsTaken": ["Moved code"],
                    "priorFailureNote": "Timed out before",
                },
                {"requestId": "E-2"},
            ],
        }
        session = classify_and_normalize(json.dumps(doc))
        self.assertEqual(session.source_kind, "Cursor")
        self.assertEqual(session.title, "Label")
        self.assertEqual(session.default_model, "claude")
        self.assertEqual(session.status, "Unknown")
        first, second = session.entries
        self.assertEqual(first.response_text, "Part 1. Part 2.")
        self.assertEqual(first.status, "Scored")
        self.assertEqual(first.score, 4.0)
        self.assertEqual(first.tags, ["Moved code", "Clean"])
        self.assertEqual(first.failure_note, "Timed out before")
        self.assertEqual(second.status, "Unknown")

    def test_cursor_actions_taken_become_numbered_actions(self) -> None:
        doc = {"session": "C", "entries": [{"requestId": "E", "actionsTaken": ["Did X", "Did Y"]}]}
        actions = classify_and_normalize(json.dumps(doc)).entries[0].actions
        self.assertEqual([(a.order, a.description, a.file_path) for a in actions], [(1, "Did X", ""), (2, "Did Y", "")])

    def test_copilot_workspace_shapes(self) -> None:
        base = {"sessionId": "S", "statistics": {}, "requests": []}
        as_string = classify_and_normalize(json.dumps({**base, "workspace": "my/repo/path"}))
        assert as_string.workspace is not None
        self.assertEqual(as_string.workspace.project, "my/repo/path")
        self.assertEqual(as_string.workspace.repository, "")
        self.assertEqual(as_string.workspace.target_framework, "")
        self.assertEqual(as_string.title, "my/repo/path")
        self.assertIsNone(classify_and_normalize(json.dumps({**base, "workspace": 42})).workspace)

    def test_single_record_title(self) -> None:
        session = classify_and_normalize(json.dumps({"requestId": "E-9", "exactRequestNote": "Fix the bug"}))
        self.assertEqual(session.source_kind, "Cursor")
        self.assertEqual(session.entry_count, 1)
        self.assertEqual(session.title, "Fix the bug")

    def test_unrecognized_document_keeps_raw(self) -> None:
        session = classify_and_normalize('{"hello": "world"}')
        self.assertEqual(session.source_kind, "Unrecognized")
        self.assertEqual(session.entry_count, 0)
        self.assertEqual(session.raw_document, {"hello": "world"})

    def test_byte_order_mark_is_ignored(self) -> None:
        session = classify_and_normalize('\ufeff{"session": "x", "entries": []}')
        self.assertEqual(session.source_kind, "Cursor")

    def test_malformed_json_raises(self) -> None:
        with self.assertRaises(NormalizationError) as ctx:
            classify_and_normalize("{not json", "bad.json")
        self.assertEqual(ctx.exception.path, "bad.json")
        self.assertIn("Malformed JSON", ctx.exception.message)

    def test_structurally_invalid_document_raises(self) -> None:
        with self.assertRaises(NormalizationError):
            classify_and_normalize('{"session": "x", "entries": {"requestId": "r"}}', "odd.json")

    def test_negative_token_counts_do_not_reduce_session_total(self) -> None:
        doc = {
            "session": "C",
            "entries": [{"requestId": "A", "cost": {"tokens": -40}}, {"requestId": "B", "totalTokens": 10}],
        }
        session = classify_and_normalize(json.dumps(doc))
        self.assertEqual([entry.token_count for entry in session.entries], [0, 10])
        self.assertEqual(session.total_tokens, 10)

    def test_deeply_nested_json_raises(self) -> None:
        with self.assertRaises(NormalizationError) as ctx:
            classify_and_normalize("[" * 100000, "deep.json")
        self.assertEqual(ctx.exception.path, "deep.json")
        self.assertIn("Malformed JSON", ctx.exception.message)

    def test_oversized_integer_literal_raises(self) -> None:
        text = '{"session": "x", "entries": [], "count": ' + "1" * 5000 + "}"
        with self.assertRaises(NormalizationError) as ctx:
            classify_and_normalize(text, "big.json")
        self.assertEqual(ctx.exception.path, "big.json")


if __name__ == "__main__":
    unittest.main()
