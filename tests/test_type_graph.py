"""
Tests for the type graph walker.
"""
import unittest
import tempfile

from javactx.analysis import TypeGraphWalker
from javactx.core import ClassNotFound, EngineConfig, InvalidRequest, SourceIndex
from java_fixtures import write_project


def longest_path(node):
    """Number of TypeNodes on the longest root-to-leaf path."""
    children = [t.node for f in node.fields for t in f.targets if t.node is not None]
    return 1 + max((longest_path(c) for c in children), default=0)


class TestTypeGraphWalker(unittest.TestCase):
    """Test cases for recursive type structure extraction."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        write_project(self.tmp.name)
        self.index = SourceIndex(EngineConfig(project_root=self.tmp.name))
        self.index.index_directory()
        self.walker = TypeGraphWalker(self.index)

    def tearDown(self):
        self.tmp.cleanup()

    def _field(self, node, name):
        return next(f for f in node.fields if f.name == name)

    def test_structure_of_dto(self):
        root = self.walker.expand_type("OrderDTO")

        self.assertEqual(root.class_name, "com.example.shop.dto.OrderDTO")
        self.assertEqual(root.depth, 1)
        self.assertEqual(root.category, "DTO")
        self.assertEqual(root.lombok, ["Data"])
        # static fields are not part of the structure
        self.assertEqual(
            [f.name for f in root.fields],
            ["id", "customer", "items", "itemsBySku", "quantity", "tags"],
        )

        id_field = self._field(root, "id")
        self.assertEqual(id_field.targets[0].terminal.kind.value, "external")
        self.assertEqual(id_field.targets[0].terminal.class_name, "java.lang.Long")
        self.assertEqual(id_field.annotations[0].name, "NotNull")
        self.assertEqual(id_field.annotations[0].tags, ["validation"])

        self.assertEqual(self._field(root, "quantity").targets, [])
        self.assertEqual(self._field(root, "quantity").container, "primitive")

        items = self._field(root, "items")
        self.assertEqual(items.container, "collection")
        self.assertEqual(items.targets[0].role, "element")
        self.assertEqual(items.targets[0].node.class_name, "com.example.shop.dto.OrderItemDTO")
        self.assertEqual(items.targets[0].node.depth, 2)

        by_sku = self._field(root, "itemsBySku")
        self.assertEqual([t.role for t in by_sku.targets], ["key", "value"])
        self.assertIsNotNone(by_sku.targets[0].terminal)
        # the same class may appear again in a sibling branch
        self.assertEqual(by_sku.targets[1].node.class_name, "com.example.shop.dto.OrderItemDTO")

        tags = self._field(root, "tags")
        self.assertEqual(tags.container, "array")
        self.assertEqual(tags.targets[0].terminal.class_name, "java.lang.String")

    def test_cycles_terminate_once_per_cut(self):
        root = self.walker.expand_type("OrderDTO")
        cycles = [t.class_name for t in root.iter_terminals() if t.kind.value == "cycle"]
        self.assertEqual(sorted(cycles), ["com.example.shop.dto.AddressDTO", "com.example.shop.dto.OrderDTO"])

        customer = self._field(root, "customer").targets[0].node
        orders = self._field(customer, "orders")
        self.assertEqual(orders.targets[0].terminal.kind.value, "cycle")

        address = self._field(customer, "address").targets[0].node
        self.assertEqual(self._field(address, "previous").targets[0].terminal.class_name,
                         "com.example.shop.dto.AddressDTO")

    def test_self_reference_at_root(self):
        root = self.walker.expand_type("AddressDTO")
        previous = self._field(root, "previous")
        self.assertEqual(previous.targets[0].terminal.kind.value, "cycle")
        self.assertEqual(len(list(root.iter_nodes())), 1)

    def test_depth_bound(self):
        for max_depth in (1, 2, 3, 10):
            root = self.walker.expand_type("OrderDTO", max_depth=max_depth)
            self.assertLessEqual(longest_path(root), max_depth)

        shallow = self.walker.expand_type("OrderDTO", max_depth=1)
        customer = self._field(shallow, "customer")
        self.assertEqual(customer.targets[0].terminal.kind.value, "depth_exceeded")
        self.assertEqual(customer.targets[0].terminal.class_name, "com.example.shop.dto.CustomerDTO")

        two = self.walker.expand_type("OrderDTO", max_depth=2)
        customer = self._field(two, "customer").targets[0].node
        self.assertEqual(self._field(customer, "address").targets[0].terminal.kind.value, "depth_exceeded")
        # cycle detection wins over the depth limit
        self.assertEqual(self._field(customer, "orders").targets[0].terminal.kind.value, "cycle")

    def test_entity_category_and_annotations_off(self):
        root = self.walker.expand_type("com.example.shop.domain.Order", include_annotations=False)
        self.assertEqual(root.category, "Entity")
        self.assertIsNone(root.annotations)
        self.assertIsNone(root.fields[0].annotations)

        with_annotations = self.walker.expand_type("Order")
        self.assertEqual([a.name for a in with_annotations.annotations], ["Entity", "Table"])
        self.assertEqual(with_annotations.annotations[0].tags, ["entity"])

    def test_entity_annotations_come_from_config(self):
        files = {
            "com/example/catalog/Product.java": """\
                package com.example.catalog;

                @Document(collection = "products")
                public class Product {
                    private String sku;
                }
            """,
            "com/example/catalog/Shelf.java": """\
                package com.example.catalog;

                @Entity
                public class Shelf {
                    private Long id;
                }
            """,
        }
        with tempfile.TemporaryDirectory() as tmpdir:
            write_project(tmpdir, files)
            index = SourceIndex(EngineConfig(project_root=tmpdir, entity_annotations=["Document"]))
            index.index_directory()
            walker = TypeGraphWalker(index)

            self.assertEqual(walker.expand_type("Product").category, "Entity")
            self.assertEqual(walker.expand_type("Shelf").category, "Regular")

    def test_wire_shape(self):
        wire = self.walker.expand_type("AddressDTO").to_wire()
        self.assertEqual(wire["className"], "com.example.shop.dto.AddressDTO")
        self.assertEqual(wire["fields"][1]["targets"][0]["terminal"]["kind"], "cycle")
        self.assertIn("packageName", wire)

    def test_errors(self):
        with self.assertRaises(ClassNotFound):
            self.walker.expand_type("MissingDTO")
        with self.assertRaises(InvalidRequest):
            self.walker.expand_type("OrderDTO", max_depth=0)


if __name__ == "__main__":
    unittest.main()
