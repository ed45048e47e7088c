#!/usr/bin/env python3
"""
Unit tests for the REST backend client
"""

import json
import unittest
import sys
import os

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx

from hr_portal.services.api_client import BackendClient, BackendError, UnauthorizedError

EXAM = {
    "id": "e1",
    "title": "Safety",
    "duration": 10,
    "questions": [{"id": "q1", "text": "Pick", "options": ["A", "B"], "correctAnswerIndex": 0}],
}
USER = {"id": 5, "name": "Sam", "email": "sam@example.com", "role": "Employee", "department": "IT"}


class TestBackendClient(unittest.IsolatedAsyncioTestCase):
    """Requests, auth header and error mapping"""

    def setUp(self):
        self.requests = []
        self.routes = {}

    def handler(self, request):
        self.requests.append(request)
        key = (request.method, request.url.path)
        responder = self.routes.get(key)
        if responder is None:
            return httpx.Response(404, json={"detail": "Not found"})
        return responder(request)

    async def asyncSetUp(self):
        self.client = BackendClient(
            base_url="http://backend.test/api",
            timeout=1.0,
            transport=httpx.MockTransport(self.handler),
        )

    async def asyncTearDown(self):
        await self.client.aclose()

    async def test_get_exam_with_token(self):
        self.routes[("GET", "/api/exams/e1")] = lambda r: httpx.Response(200, json=EXAM)
        self.client.set_token("abc")

        exam = await self.client.get_exam("e1")

        self.assertEqual(exam.id, "e1")
        self.assertEqual(exam.questions[0].correct_answer_index, 0)
        self.assertEqual(self.requests[0].headers["Authorization"], "Bearer abc")

    async def test_no_token_no_header(self):
        self.routes[("GET", "/api/users/5")] = lambda r: httpx.Response(200, json=USER)
        user = await self.client.get_user(5)
        self.assertEqual(user.name, "Sam")
        self.assertNotIn("Authorization", self.requests[0].headers)

    async def test_submit_exam_payload(self):
        self.routes[("POST", "/api/exams/e1/submissions")] = lambda r: httpx.Response(
            200, json={"score": 75, "status": "Passed"}
        )
        result = await self.client.submit_exam(5, "e1", {"q1": 0})

        self.assertEqual(result.score, 75)
        self.assertTrue(result.passed)
        self.assertEqual(json.loads(self.requests[0].content), {"userId": 5, "answers": {"q1": 0}})

    async def test_list_endpoints(self):
        self.routes[("GET", "/api/exams")] = lambda r: httpx.Response(200, json=[EXAM])
        self.routes[("GET", "/api/leave-requests")] = lambda r: httpx.Response(200, json=[{"id": 1}])
        self.routes[("GET", "/api/exam-config")] = lambda r: httpx.Response(200, json={"maxViolations": 2})

        self.assertEqual([e.id for e in await self.client.get_exams()], ["e1"])
        self.assertEqual(await self.client.get_leave_requests(), [{"id": 1}])
        self.assertEqual((await self.client.get_exam_config()).max_violations, 2)

    async def test_unauthorized_runs_callbacks(self):
        calls = []
        self.client.on_unauthorized(lambda: calls.append("logout"))
        self.routes[("GET", "/api/exams/e1")] = lambda r: httpx.Response(401, json={"detail": "expired"})

        with self.assertRaises(UnauthorizedError) as ctx:
            await self.client.get_exam("e1")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(calls, ["logout"])

    async def test_http_error_detail(self):
        self.routes[("GET", "/api/exams/e1")] = lambda r: httpx.Response(500, json={"message": "db down"})
        with self.assertRaises(BackendError) as ctx:
            await self.client.get_exam("e1")
        self.assertEqual(str(ctx.exception), "db down")
        self.assertEqual(ctx.exception.status_code, 500)

    async def test_plain_text_error(self):
        self.routes[("GET", "/api/exams/e1")] = lambda r: httpx.Response(503, text="maintenance")
        with self.assertRaises(BackendError) as ctx:
            await self.client.get_exam("e1")
        self.assertEqual(str(ctx.exception), "maintenance")

    async def test_timeout_is_backend_error(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        self.routes[("POST", "/api/exams/e1/submissions")] = slow
        with self.assertRaises(BackendError) as ctx:
            await self.client.submit_exam(5, "e1", {})
        self.assertIn("too long", str(ctx.exception))

    async def test_connection_failure(self):
        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        self.routes[("GET", "/api/exams/e1")] = refused
        with self.assertRaises(BackendError):
            await self.client.get_exam("e1")

    async def test_malformed_payload(self):
        self.routes[("GET", "/api/exams/e1")] = lambda r: httpx.Response(200, json={"id": "e1"})
        with self.assertRaises(BackendError) as ctx:
            await self.client.get_exam("e1")
        self.assertIn("invalid Exam", str(ctx.exception))


if __name__ == '__main__':
    unittest.main()
