"""
Tests for the asynchronous engine bridge.
"""
import asyncio
import os
import sys
import tempfile
import textwrap
import unittest

from javactx.core import (
    ClassNotFound,
    EngineConfig,
    EngineStartTimeout,
    EngineTerminated,
    RequestTimeout,
)
from javactx.engine import READY_MARKER, BridgeState, EngineBridge
from java_fixtures import write_project


def fake_engine(body, prelude=""):
    """Command line for a tiny stand-in engine: ``body`` handles each decoded request ``req``."""
    script = textwrap.dedent(prelude) + textwrap.dedent("""\
        import json, sys
        sys.stderr.write("starting up\\n")
        sys.stderr.write(%r + "\\n")
        sys.stderr.flush()
        def reply(message):
            sys.stdout.write(json.dumps(message) + "\\n")
            sys.stdout.flush()
        for line in sys.stdin:
            req = json.loads(line)
    """) % READY_MARKER
    script += textwrap.indent(textwrap.dedent(body), "    ")
    return [sys.executable, "-c", script]


ECHO = """\
reply({"requestId": req["requestId"], "success": True, "data": {"echo": req["params"], "op": req["operation"]}})
"""

SILENT = """\
pass
"""

CRASH = """\
sys.exit(3)
"""

NOISY = """\
sys.stdout.write("this is not json\\n")
reply({"requestId": 999, "success": True, "data": {}})
reply({"requestId": req["requestId"], "success": True, "data": {"ok": True}})
"""

FAILING = """\
reply({"requestId": req["requestId"], "success": False, "data": None,
       "error": {"kind": "ClassNotFound", "message": "Class not found: X", "context": {"className": "X"}}})
"""


class TestEngineBridge(unittest.IsolatedAsyncioTestCase):
    """Test cases for request correlation and engine lifecycle."""

    def _bridge(self, body, **kwargs):
        kwargs.setdefault("startup_timeout", 10.0)
        return EngineBridge(EngineConfig(), command=fake_engine(body), **kwargs)

    async def test_round_trip_and_correlation(self):
        bridge = self._bridge(ECHO)
        try:
            results = await asyncio.gather(*[
                bridge.send("resolve_symbol", {"n": i}) for i in range(5)
            ])
            self.assertEqual([r["echo"]["n"] for r in results], list(range(5)))
            self.assertEqual(bridge.state, BridgeState.READY)
            self.assertEqual(bridge.pending_count, 0)
        finally:
            await bridge.close()
        self.assertEqual(bridge.state, BridgeState.STOPPED)

    async def test_concurrent_first_sends_share_one_engine(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            spawn_log = os.path.join(tmpdir, "spawned.txt")
            prelude = (
                "import os\n"
                f"with open({spawn_log!r}, 'a') as f:\n"
                "    f.write(str(os.getpid()) + '\\n')\n"
            )
            bridge = EngineBridge(EngineConfig(), command=fake_engine(ECHO, prelude), startup_timeout=10.0)
            try:
                results = await asyncio.gather(*[bridge.send("x", {"n": i}) for i in range(5)])
                self.assertEqual(sorted(r["echo"]["n"] for r in results), list(range(5)))
            finally:
                await bridge.close()

            with open(spawn_log) as f:
                self.assertEqual(len(f.read().split()), 1)
            self.assertEqual(bridge.state, BridgeState.STOPPED)

    async def test_request_ids_are_monotonic(self):
        bridge = self._bridge(ECHO)
        try:
            await bridge.send("a")
            await bridge.send("b")
            self.assertEqual(bridge._next_id, 2)
        finally:
            await bridge.close()

    async def test_structured_error_is_reraised(self):
        bridge = self._bridge(FAILING)
        try:
            with self.assertRaises(ClassNotFound) as ctx:
                await bridge.send("get_type_structure", {"className": "X"})
            self.assertEqual(ctx.exception.context["className"], "X")
        finally:
            await bridge.close()

    async def test_request_timeout(self):
        bridge = self._bridge(SILENT)
        try:
            with self.assertRaises(RequestTimeout) as ctx:
                await bridge.send("analyze_branches", {}, timeout=0.2)
            self.assertEqual(ctx.exception.context["requestId"], 1)
            self.assertEqual(bridge.pending_count, 0)
        finally:
            await bridge.close()

    async def test_crash_rejects_pending(self):
        bridge = self._bridge(CRASH)
        try:
            with self.assertRaises(EngineTerminated) as ctx:
                await bridge.send("analyze_branches", {}, timeout=10.0)
            self.assertEqual(ctx.exception.context["exitCode"], 3)
            self.assertEqual(bridge.state, BridgeState.CRASHED)

            with self.assertRaises(EngineTerminated):
                await bridge.send("analyze_branches", {})
        finally:
            await bridge.close()
        self.assertEqual(bridge.state, BridgeState.CRASHED)

    async def test_killed_engine_never_hangs(self):
        bridge = self._bridge(SILENT)
        try:
            await bridge.start()
            await bridge.wait_ready()
            in_flight = [asyncio.ensure_future(bridge.send("x", timeout=30.0)) for _ in range(3)]
            await asyncio.sleep(0.2)
            bridge.process.kill()
            results = await asyncio.wait_for(asyncio.gather(*in_flight, return_exceptions=True), 10.0)
            self.assertTrue(all(isinstance(r, EngineTerminated) for r in results))
        finally:
            await bridge.close()

    async def test_malformed_and_unknown_lines_are_dropped(self):
        bridge = self._bridge(NOISY)
        try:
            with self.assertLogs("javactx.engine.bridge", level="WARNING") as logs:
                result = await bridge.send("x")
            self.assertEqual(result, {"ok": True})
            output = "\n".join(logs.output)
            self.assertIn("malformed", output)
            self.assertIn("unknown request id 999", output)
        finally:
            await bridge.close()

    async def test_start_timeout(self):
        command = [sys.executable, "-c", "import time; time.sleep(30)"]
        bridge = EngineBridge(EngineConfig(), command=command, startup_timeout=0.3)
        try:
            with self.assertRaises(EngineStartTimeout):
                await bridge.send("x")
            self.assertEqual(bridge.state, BridgeState.CRASHED)

            # the stalled engine is killed and later sends fail without waiting again
            await asyncio.wait_for(bridge.process.wait(), 5.0)
            loop = asyncio.get_running_loop()
            started = loop.time()
            with self.assertRaises(EngineTerminated):
                await bridge.send("x")
            self.assertLess(loop.time() - started, 0.3)
        finally:
            await bridge.close(timeout=0.5)
        self.assertEqual(bridge.state, BridgeState.CRASHED)

    async def test_real_worker_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            write_project(tmpdir)
            async with EngineBridge(EngineConfig(project_root=tmpdir), startup_timeout=60.0) as bridge:
                branches = await bridge.send("analyze_branches", {"methodSource": "void a(int x) { if (x > 0) { } }"})
                self.assertEqual(branches["cyclomaticComplexity"], 2)

                structure = await bridge.send("get_type_structure", {"className": "AddressDTO"})
                self.assertEqual(structure["className"], "com.example.shop.dto.AddressDTO")

                with self.assertRaises(ClassNotFound):
                    await bridge.send("get_type_structure", {"className": "Missing"})


if __name__ == "__main__":
    unittest.main()
