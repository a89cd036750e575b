"""
Tests for symbol resolution.
"""
import unittest
import tempfile

from javactx.analysis import SymbolResolver
from javactx.core import EngineConfig, SourceIndex, SymbolNotFound
from java_fixtures import (
    ORDER_CONTROLLER,
    ORDER_SERVICE_IMPL,
    line_of,
    source_path,
    write_project,
)


SHADOWING = """\
package com.example.shop.service;

import java.io.BufferedReader;
import java.util.List;

public class ShadowService {
    private String name;
    private OrderMapper mapper;

    public void run(List<String> items) {
        Integer name = 1;
        for (String item : items) {
            Long name2 = 2L;
        }
        {
            Double amount = 3.0;
            amount.intValue();
        }
        {
            Long amount = 4L;
            amount.longValue();
        }
        try (BufferedReader reader = open()) {
            reader.readLine();
        } catch (IllegalStateException | IllegalArgumentException e) {
            e.getMessage();
        }
        var created = new OrderMapper();
    }

    private BufferedReader open() {
        return null;
    }
}
"""


class TestSymbolResolver(unittest.TestCase):
    """Test cases for the symbol resolver."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name
        write_project(self.root)
        self.index = SourceIndex(EngineConfig(project_root=self.root))
        self.index.index_directory()
        self.resolver = SymbolResolver(self.index)
        self.controller = source_path(self.root, "com/example/shop/controller/OrderController.java")
        self.impl = source_path(self.root, "com/example/shop/service/OrderServiceImpl.java")

    def tearDown(self):
        self.tmp.cleanup()

    def test_field_resolves_to_declared_type(self):
        line = line_of(ORDER_CONTROLLER, "orderService.getOrder(id)")
        result = self.resolver.resolve_symbol("orderService", self.controller, line)

        self.assertEqual(result.resolved_type, "com.example.shop.service.OrderService")
        self.assertEqual(result.declaration_kind, "field")
        self.assertTrue(result.is_project_class)
        self.assertEqual(result.package_name, "com.example.shop.service")
        self.assertEqual(result.declaration_site.file, self.controller)
        self.assertEqual(result.declaration_site.line, line_of(ORDER_CONTROLLER, "private OrderService orderService"))
        self.assertTrue(result.type_file.endswith("OrderService.java"))
        self.assertIn("orderService", result.code_context)

    def test_parameter_and_local(self):
        line = line_of(ORDER_CONTROLLER, "return result;")

        param = self.resolver.resolve_symbol("id", self.controller, line)
        self.assertEqual(param.declaration_kind, "parameter")
        self.assertEqual(param.resolved_type, "java.lang.Long")
        self.assertFalse(param.is_project_class)
        self.assertIsNone(param.type_file)

        local = self.resolver.resolve_symbol("result", self.controller, line)
        self.assertEqual(local.declaration_kind, "local_variable")
        self.assertEqual(local.resolved_type, "com.example.shop.dto.OrderDTO")

    def test_external_field_type(self):
        line = line_of(ORDER_SERVICE_IMPL, "log.debug")
        result = self.resolver.resolve_symbol("log", self.impl, line)
        self.assertEqual(result.resolved_type, "org.slf4j.Logger")
        self.assertFalse(result.is_project_class)
        self.assertEqual(result.package_name, "org.slf4j")

    def test_local_not_yet_declared_is_invisible(self):
        line = line_of(ORDER_SERVICE_IMPL, 'log.info("Loading order')
        with self.assertRaises(SymbolNotFound) as ctx:
            self.resolver.resolve_symbol("order", self.impl, line)
        scopes = ctx.exception.context["searchedScopes"]
        self.assertIn("locals of com.example.shop.service.OrderServiceImpl.getOrder(Long)", scopes)
        self.assertIn("fields of com.example.shop.service.OrderServiceImpl", scopes)
        self.assertIn("fields of com.example.shop.service.OrderService", scopes)

    def test_scopes_and_shadowing(self):
        path = source_path(self.root, "com/example/shop/service/ShadowService.java")
        with open(path, "w") as f:
            f.write(SHADOWING)
        self.index.index_file(path)

        first = self.resolver.resolve_symbol("amount", path, line_of(SHADOWING, "amount.intValue()"))
        self.assertEqual(first.resolved_type, "java.lang.Double")
        second = self.resolver.resolve_symbol("amount", path, line_of(SHADOWING, "amount.longValue()"))
        self.assertEqual(second.resolved_type, "java.lang.Long")

        outer = self.resolver.resolve_symbol("name", path, line_of(SHADOWING, "Long name2"))
        self.assertEqual(outer.resolved_type, "java.lang.Integer")
        self.assertEqual(outer.declaration_kind, "local_variable")

        field = self.resolver.resolve_symbol("name", path, line_of(SHADOWING, "private BufferedReader open()") + 1)
        self.assertEqual(field.declaration_kind, "field")
        self.assertEqual(field.resolved_type, "java.lang.String")

        item = self.resolver.resolve_symbol("item", path, line_of(SHADOWING, "Long name2"))
        self.assertEqual(item.resolved_type, "java.lang.String")

        reader = self.resolver.resolve_symbol("reader", path, line_of(SHADOWING, "reader.readLine()"))
        self.assertEqual(reader.resolved_type, "java.io.BufferedReader")

        error = self.resolver.resolve_symbol("e", path, line_of(SHADOWING, "e.getMessage()"))
        self.assertEqual(error.resolved_type, "java.lang.IllegalStateException")

        created = self.resolver.resolve_symbol("created", path, line_of(SHADOWING, "var created"))
        self.assertEqual(created.resolved_type, "com.example.shop.service.OrderMapper")

        param = self.resolver.resolve_symbol("items", path, line_of(SHADOWING, "Integer name = 1"))
        self.assertEqual(param.declared_type, "List<String>")
        self.assertEqual(param.resolved_type, "java.util.List")

    def test_without_line_prefers_fields(self):
        path = source_path(self.root, "com/example/shop/service/ShadowService.java")
        with open(path, "w") as f:
            f.write(SHADOWING)

        # the file is indexed on the fly
        result = self.resolver.resolve_symbol("name", path)
        self.assertEqual(result.declaration_kind, "field")

        param = self.resolver.resolve_symbol("items", path)
        self.assertEqual(param.declaration_kind, "parameter")

        local = self.resolver.resolve_symbol("item", path)
        self.assertEqual(local.declaration_kind, "local_variable")

    def test_unknown_symbol(self):
        with self.assertRaises(SymbolNotFound) as ctx:
            self.resolver.resolve_symbol("nothingHere", self.controller, 5)
        self.assertEqual(ctx.exception.context["symbolName"], "nothingHere")
        self.assertEqual(ctx.exception.kind, "SymbolNotFound")


if __name__ == "__main__":
    unittest.main()
