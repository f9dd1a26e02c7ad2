from __future__ import annotations

import asyncio
import unittest

from homehub.core.request_context import (
    DEMO_MODE_KEY,
    get_context,
    is_demo_mode,
    parse_demo_header,
    request_context,
    run_with_context,
)


class TestRequestContext(unittest.TestCase):
    def test_outside_any_frame(self) -> None:
        self.assertIsNone(get_context())
        self.assertFalse(is_demo_mode())

    def test_frame_without_demo_key_is_not_demo(self) -> None:
        with request_context({"user": "a"}):
            self.assertFalse(is_demo_mode())
            self.assertEqual({"user": "a"}, get_context())

    def test_nested_frames_restore_outer(self) -> None:
        with request_context({DEMO_MODE_KEY: True}):
            self.assertTrue(is_demo_mode())
            with request_context({DEMO_MODE_KEY: False}):
                self.assertFalse(is_demo_mode())
            self.assertTrue(is_demo_mode())
        self.assertIsNone(get_context())

    def test_frame_restored_when_body_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            with request_context({DEMO_MODE_KEY: True}):
                raise RuntimeError("boom")
        self.assertFalse(is_demo_mode())

    def test_frame_is_a_copy(self) -> None:
        values = {DEMO_MODE_KEY: True}
        with request_context(values) as frame:
            values[DEMO_MODE_KEY] = False
            self.assertTrue(frame[DEMO_MODE_KEY])
            self.assertTrue(is_demo_mode())

    def test_run_with_context_sync(self) -> None:
        self.assertTrue(run_with_context({DEMO_MODE_KEY: True}, is_demo_mode))
        self.assertFalse(is_demo_mode())

    def test_parse_demo_header(self) -> None:
        self.assertTrue(parse_demo_header("true"))
        self.assertTrue(parse_demo_header("TRUE"))
        self.assertTrue(parse_demo_header("1"))
        self.assertFalse(parse_demo_header("yes"))
        self.assertFalse(parse_demo_header(""))
        self.assertFalse(parse_demo_header(None))


class TestRequestContextAsync(unittest.IsolatedAsyncioTestCase):
    async def test_run_with_context_holds_frame_across_awaits(self) -> None:
        async def read_flags() -> list[bool]:
            seen = [is_demo_mode()]
            await asyncio.sleep(0)
            seen.append(is_demo_mode())
            return seen

        result = await run_with_context({DEMO_MODE_KEY: True}, read_flags)
        self.assertEqual([True, True], result)
        self.assertFalse(is_demo_mode())

    async def test_concurrent_tasks_see_their_own_frame(self) -> None:
        async def handle(demo: bool) -> list[bool]:
            seen = []
            with request_context({DEMO_MODE_KEY: demo}):
                for _ in range(5):
                    await asyncio.sleep(0)
                    seen.append(is_demo_mode())
            return seen

        demo_seen, real_seen = await asyncio.gather(handle(True), handle(False))
        self.assertEqual([True] * 5, demo_seen)
        self.assertEqual([False] * 5, real_seen)


if __name__ == "__main__":
    unittest.main()
