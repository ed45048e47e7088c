#!/usr/bin/env python3
"""
Unit tests for the AI HR assistant session
"""

import unittest
from unittest.mock import MagicMock, patch
import sys
import os

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
from openai import APIError

from hr_portal.models.user_model import Role, User
from hr_portal.services import assistant as assistant_module
from hr_portal.services.assistant import STREAM_FAILED_REPLY, AssistantSession, build_context_block, system_prompt_for


def make_user(role, department="Finance"):
    return User(id=2, name="Riley", email="riley@example.com", role=role, department=department)


def _chunk(text):
    chunk = MagicMock()
    if text is None:
        chunk.choices = []
    else:
        chunk.choices = [MagicMock()]
        chunk.choices[0].delta.content = text
    return chunk


def _streaming_client(*parts):
    client = MagicMock()
    client.chat.completions.create.return_value = iter([_chunk(p) for p in parts])
    return client


class TestPrompts(unittest.TestCase):
    """Role-dependent system prompt"""

    def test_admin(self):
        prompt = system_prompt_for(make_user(Role.ADMIN))
        self.assertIn("Admin user, Riley", prompt)
        self.assertIn("[CONTEXT BLOCK]", prompt)

    def test_employee_scoped_to_department(self):
        prompt = system_prompt_for(make_user(Role.EMPLOYEE, department="Finance"))
        self.assertIn("'Finance' department", prompt)
        self.assertNotIn("Admin Role Directives", prompt)

    def test_applicant_gets_onboarding(self):
        prompt = system_prompt_for(make_user(Role.APPLICANT))
        self.assertIn("Onboarding Assistant", prompt)

    def test_context_block(self):
        block = build_context_block("Leave Requests", [{"id": 1, "type": "Sick"}])
        self.assertTrue(block.startswith("[CONTEXT BLOCK: Leave Requests]\n"))
        self.assertTrue(block.endswith("\n[END CONTEXT BLOCK]"))
        self.assertIn('"type": "Sick"', block)


class TestAssistantSession(unittest.TestCase):
    """Streaming and transcript ownership"""

    def test_stream_appends_history_after_completion(self):
        client = _streaming_client("Hello", None, ", Riley", "")
        session = AssistantSession(make_user(Role.EMPLOYEE), client=client)

        chunks = session.stream("  hi  ")
        self.assertEqual(next(chunks), "Hello")
        self.assertEqual(session.history, [])
        self.assertEqual(list(chunks), [", Riley"])

        self.assertEqual(session.history, [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "Hello, Riley"},
        ])
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertTrue(kwargs["stream"])
        self.assertEqual(kwargs["messages"][0]["role"], "system")

    def test_context_is_prepended(self):
        client = _streaming_client("ok")
        session = AssistantSession(make_user(Role.ADMIN), client=client)
        list(session.stream("Who is on leave?", context="[CONTEXT BLOCK: x]\n[]\n[END CONTEXT BLOCK]"))

        sent = client.chat.completions.create.call_args.kwargs["messages"][-1]["content"]
        self.assertTrue(sent.startswith("[CONTEXT BLOCK: x]"))
        self.assertTrue(sent.endswith("Who is on leave?"))

    def test_history_sent_on_next_turn(self):
        client = _streaming_client("first")
        session = AssistantSession(make_user(Role.ADMIN), client=client)
        list(session.stream("one"))

        client.chat.completions.create.return_value = iter([_chunk("second")])
        list(session.stream("two"))
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        self.assertEqual([m["role"] for m in messages], ["system", "user", "assistant", "user"])

        session.reset()
        self.assertEqual(session.history, [])

    def test_sessions_do_not_share_history(self):
        first = AssistantSession(make_user(Role.ADMIN), client=_streaming_client("a"))
        second = AssistantSession(make_user(Role.EMPLOYEE), client=_streaming_client("b"))
        list(first.stream("private question"))
        self.assertEqual(second.history, [])

    def test_interrupted_stream_ends_cleanly(self):
        def chunks():
            yield _chunk("Partial")
            raise APIError("stream reset", request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"), body=None)

        client = MagicMock()
        client.chat.completions.create.return_value = chunks()
        session = AssistantSession(make_user(Role.EMPLOYEE), client=client)

        self.assertEqual(list(session.stream("hello")), ["Partial", "\n\n" + STREAM_FAILED_REPLY])
        self.assertEqual(session.history, [])

    def test_empty_message(self):
        session = AssistantSession(make_user(Role.ADMIN), client=MagicMock())
        with self.assertRaises(ValueError):
            next(session.stream("   "))

    def test_not_configured(self):
        with patch.object(assistant_module, "make_client", return_value=None):
            session = AssistantSession(make_user(Role.ADMIN))
            with self.assertRaises(RuntimeError):
                next(session.stream("hello"))


if __name__ == '__main__':
    unittest.main()
