"""
Tests for the operation dispatcher and the worker loop.
"""
import io
import json
import unittest
import tempfile
from unittest import mock

from javactx.core import EngineConfig
from javactx.engine import AnalysisEngine, READY_MARKER
from javactx.engine.worker import serve
from java_fixtures import ORDER_CONTROLLER, line_of, source_path, write_project


class TestAnalysisEngine(unittest.TestCase):
    """Test cases for request dispatch and error mapping."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name
        write_project(self.root)
        self.engine = AnalysisEngine(EngineConfig(project_root=self.root))

    def tearDown(self):
        self.tmp.cleanup()

    def _request(self, operation, params, request_id=1):
        return self.engine.handle({"requestId": request_id, "operation": operation, "params": params})

    def test_index_is_built_lazily(self):
        self.assertFalse(self.engine.index.indexed)
        response = self._request("analyze_branches", {"methodSource": "void a() { }"})
        self.assertTrue(response["success"])
        self.assertFalse(self.engine.index.indexed)

        self._request("get_type_structure", {"className": "OrderDTO"})
        self.assertTrue(self.engine.index.indexed)

    def test_resolve_symbol(self):
        controller = source_path(self.root, "com/example/shop/controller/OrderController.java")
        response = self._request("resolve_symbol", {
            "symbolName": "orderService",
            "contextFile": controller,
            "line": line_of(ORDER_CONTROLLER, "orderService.getOrder(id)"),
        }, request_id=7)

        self.assertEqual(response["requestId"], 7)
        self.assertTrue(response["success"])
        self.assertIsNone(response["error"])
        self.assertEqual(response["data"]["resolvedType"], "com.example.shop.service.OrderService")
        self.assertEqual(response["data"]["declarationKind"], "field")
        self.assertTrue(response["data"]["isProjectClass"])

    def test_aliases_and_defaults(self):
        structure = self._request("get_dto_structure", {"className": "OrderDTO"})
        self.assertTrue(structure["success"])
        self.assertEqual(structure["data"]["className"], "com.example.shop.dto.OrderDTO")

        chain = self._request("build_method_call_chain", {"className": "OrderServiceImpl", "methodName": "countOrders"})
        self.assertTrue(chain["success"])
        self.assertTrue(all(c["boundaryHit"] for c in chain["data"]["children"]))

        branches = self._request("find_execution_branches", {"methodSource": "void a(int x) { if (x > 1) { } }"})
        self.assertEqual(branches["data"]["cyclomaticComplexity"], 2)

    def test_supplementary_operations(self):
        definition = self._request("get_function_definition", {"className": "OrderController", "methodName": "getOrder"})
        self.assertTrue(definition["success"])
        method = definition["data"]["methods"][0]
        self.assertEqual(method["returnType"], "OrderDTO")
        self.assertEqual(method["parameters"][0]["annotations"], ["@PathVariable"])
        self.assertEqual(method["annotations"], ['@GetMapping("/{id}")'])
        self.assertEqual(method["javadoc"], "Fetch one order.")
        self.assertIn("orderService.getOrder(id)", method["body"])
        self.assertIn("@RestController", definition["data"]["classAnnotations"])

        mocks = self._request("find_mockable_dependencies", {"className": "OrderServiceImpl"})
        self.assertTrue(mocks["success"])
        deps = {d["name"]: d for d in mocks["data"]["fieldDependencies"]}
        self.assertEqual(sorted(deps), ["orderMapper", "orderRepository"])
        self.assertEqual(deps["orderRepository"]["dependencyType"], "Repository")
        self.assertEqual(deps["orderRepository"]["mockStrategy"], "Mock")
        self.assertEqual(deps["orderMapper"]["mockStrategy"], "Mock")
        self.assertEqual(mocks["data"]["dependenciesToMock"], 2)

    def test_structured_errors_carry_params(self):
        response = self._request("get_type_structure", {"className": "Nope"})
        self.assertFalse(response["success"])
        self.assertIsNone(response["data"])
        self.assertEqual(response["error"]["kind"], "ClassNotFound")
        self.assertEqual(response["error"]["context"]["params"], {"className": "Nope"})
        self.assertEqual(response["error"]["context"]["operation"], "get_type_structure")

        response = self._request("analyze_branches", {"methodSource": "not java at all {"})
        self.assertEqual(response["error"]["kind"], "UnparsableMethod")

    def test_invalid_requests(self):
        unknown = self._request("explain_everything", {})
        self.assertEqual(unknown["error"]["kind"], "InvalidRequest")
        self.assertIn("resolve_symbol", unknown["error"]["context"]["supportedOperations"])

        missing = self._request("build_call_chain", {"className": "OrderController"})
        self.assertEqual(missing["error"]["kind"], "InvalidRequest")

        bad_depth = self._request("get_type_structure", {"className": "OrderDTO", "maxDepth": 0})
        self.assertEqual(bad_depth["error"]["kind"], "InvalidRequest")

    def test_unexpected_exception_becomes_engine_failure(self):
        with mock.patch.object(self.engine.branch_analyzer, "analyze_branches", side_effect=RuntimeError("boom")):
            with self.assertLogs("javactx.engine.engine", level="ERROR"):
                response = self._request("analyze_branches", {"methodSource": "void a() { }"})
        self.assertEqual(response["error"]["kind"], "EngineFailure")
        self.assertIn("boom", response["error"]["message"])

        # the engine keeps serving
        response = self._request("analyze_branches", {"methodSource": "void a() { }"})
        self.assertTrue(response["success"])

    def test_handle_line(self):
        line = self.engine.handle_line(json.dumps({
            "requestId": 3, "operation": "analyze_branches", "params": {"methodSource": "void a() { }"},
        }))
        self.assertEqual(json.loads(line)["requestId"], 3)

        malformed = json.loads(self.engine.handle_line("{not json"))
        self.assertIsNone(malformed["requestId"])
        self.assertEqual(malformed["error"]["kind"], "InvalidRequest")

    def test_serve_loop(self):
        requests = "\n".join([
            json.dumps({"requestId": 1, "operation": "analyze_branches", "params": {"methodSource": "void a() { }"}}),
            "",
            json.dumps({"requestId": 2, "operation": "nope", "params": {}}),
        ]) + "\n"
        out, err = io.StringIO(), io.StringIO()

        handled = serve(self.engine, io.StringIO(requests), out, err)

        self.assertEqual(handled, 2)
        self.assertEqual(err.getvalue().splitlines()[0], READY_MARKER)
        responses = [json.loads(l) for l in out.getvalue().splitlines()]
        self.assertEqual([r["requestId"] for r in responses], [1, 2])
        self.assertEqual([r["success"] for r in responses], [True, False])


if __name__ == "__main__":
    unittest.main()
