import unittest

from lockfix.core.model import DependencyNode
from lockfix.core.patcher import parse_spec, patch, patch_all
from lockfix.errors import PathSkewError


def make_tree():
    root = DependencyNode("app", "1.0.0")
    express = DependencyNode("express", "4.16.0", resolved="https://r/express-4.16.0.tgz", integrity="sha512-express")
    body_parser = DependencyNode("body-parser", "1.18.2", resolved="https://r/bp-1.18.2.tgz", integrity="sha512-bp")
    qs = DependencyNode(
        "qs", "6.5.1", resolved="https://r/qs-6.5.1.tgz", integrity="sha512-qs", from_spec="qs@~6.5.1"
    )
    side = DependencyNode("side-channel", "1.0.0", resolved="https://r/sc.tgz", integrity="sha512-sc")
    lodash = DependencyNode("lodash", "4.17.4", resolved="https://r/lodash-4.17.4.tgz", integrity="sha512-lo")

    qs.add_require(side)
    body_parser.add_require(qs)
    express.add_require(body_parser)
    express.add_require(qs)
    root.add_require(express)
    root.add_require(lodash)
    return root


def snapshot(node, ancestors=()):
    """Comparable view of the tree below `node`; cycles are cut at the back edge."""
    if id(node) in ancestors:
        return (node.name, "<cycle>")
    children = None
    if node.requires is not None:
        children = [snapshot(c, ancestors + (id(node),)) for c in node.requires]
    return (node.name, node.version, node.resolved, node.integrity, node.from_spec, children)


class TestParseSpec(unittest.TestCase):

    def test_plain_and_scoped_specs(self):
        self.assertEqual(parse_spec("lodash@4.17.21"), ("lodash", "4.17.21"))
        self.assertEqual(parse_spec("@babel/core@7.1.0"), ("@babel/core", "7.1.0"))
        self.assertEqual(parse_spec("qs@^6.5.2"), ("qs", "^6.5.2"))

    def test_bare_names_target_latest(self):
        self.assertEqual(parse_spec("lodash"), ("lodash", "latest"))
        self.assertEqual(parse_spec("@babel/core"), ("@babel/core", "latest"))
        self.assertEqual(parse_spec("lodash@"), ("lodash", "latest"))


class TestPatcher(unittest.TestCase):

    def setUp(self):
        self.tree = make_tree()

    def test_patch_root_level_dependency(self):
        patched = patch(self.tree, ["lodash@4.17.21"])

        lodash = self.tree.find("lodash")
        self.assertIs(patched, lodash)
        self.assertEqual(lodash.version, "4.17.21")
        self.assertIsNone(lodash.resolved)
        self.assertIsNone(lodash.integrity)
        self.assertIsNone(lodash.requires)
        self.assertIsNone(lodash.from_spec)

    def test_patch_deep_path_strips_subtree(self):
        patch(self.tree, ["express", "qs@6.5.2"])

        qs = self.tree.find("express").find("qs")
        self.assertEqual(qs.version, "6.5.2")
        self.assertIsNone(qs.resolved)
        self.assertIsNone(qs.from_spec)
        self.assertIsNone(qs.requires)

        # Siblings keep their resolution
        express = self.tree.find("express")
        self.assertEqual(express.resolved, "https://r/express-4.16.0.tgz")
        self.assertEqual(express.find("body-parser").integrity, "sha512-bp")
        self.assertEqual(self.tree.find("lodash").version, "4.17.4")

    def test_shared_node_is_patched_once_for_all_parents(self):
        patch(self.tree, ["express", "body-parser", "qs@6.5.2"])

        express = self.tree.find("express")
        self.assertIs(express.find("qs"), express.find("body-parser").find("qs"))
        self.assertEqual(express.find("qs").version, "6.5.2")

    def test_missing_first_segment_leaves_tree_untouched(self):
        before = snapshot(self.tree)

        with self.assertRaises(PathSkewError) as ctx:
            patch(self.tree, ["koa", "qs@6.5.2"])

        self.assertEqual(ctx.exception.missing, "koa")
        self.assertEqual(ctx.exception.code, "EAUDITPATH")
        self.assertEqual(snapshot(self.tree), before)

    def test_missing_terminal_segment_fails(self):
        before = snapshot(self.tree)

        with self.assertRaises(PathSkewError) as ctx:
            patch(self.tree, ["express", "cookie@0.4.0"])

        self.assertEqual(ctx.exception.missing, "cookie")
        self.assertIn("express", str(ctx.exception))
        self.assertEqual(snapshot(self.tree), before)

    def test_empty_path_is_rejected(self):
        with self.assertRaises(ValueError):
            patch(self.tree, [])

    def test_patch_order_does_not_matter_for_distinct_paths(self):
        first, second = make_tree(), make_tree()
        paths = [["lodash@4.17.21"], ["express", "body-parser@1.18.3"]]

        for path in paths:
            patch(first, path)
        for path in reversed(paths):
            patch(second, path)

        self.assertEqual(snapshot(first), snapshot(second))

    def test_patch_all_is_all_or_nothing(self):
        before = snapshot(self.tree)

        with self.assertRaises(PathSkewError):
            patch_all(self.tree, [["lodash@4.17.21"], ["express", "nope@1.0.0"]])

        self.assertEqual(snapshot(self.tree), before)

    def test_patch_all_applies_every_path(self):
        patched = patch_all(self.tree, [["lodash@4.17.21"], ["express", "qs@6.5.2"]])

        self.assertEqual([n.name for n in patched], ["lodash", "qs"])
        self.assertEqual(self.tree.find("lodash").version, "4.17.21")
        self.assertEqual(self.tree.find("express").find("qs").version, "6.5.2")

    def test_cyclic_tree_path(self):
        root = DependencyNode("app", "1.0.0")
        a = DependencyNode("a", "1.0.0", resolved="https://r/a.tgz")
        b = DependencyNode("b", "1.0.0", resolved="https://r/b.tgz")
        a.add_require(b)
        b.add_require(a)
        root.add_require(a)

        patch(root, ["a", "b", "a@2.0.0"])

        self.assertEqual(a.version, "2.0.0")
        self.assertIsNone(a.resolved)
        self.assertEqual(b.resolved, "https://r/b.tgz")
