import tempfile
import unittest
from pathlib import Path

from mdgraph.graph.build import BuildOptions
from mdgraph.graph.manager import GraphManager
from mdgraph.graph.model import Link
from mdgraph.ingest.repository import FileRepository, InMemoryRepository


NO_NL = BuildOptions(natural_language=False)


class TestGraphManager(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.repo = InMemoryRepository({"a": "# A\n\n[[b]]", "b": "# B"})
        self.manager = GraphManager(self.repo, options=NO_NL)
        await self.manager.initialize()

    async def test_initialize(self):
        graph = self.manager.get_graph()
        self.assertEqual(sorted(graph.nodes), ["a", "b"])
        self.assertEqual(graph.links, [Link("a", "b")])
        self.assertEqual(self.manager.mapping_for("a").node_ids, ("a",))
        self.assertEqual(self.manager.document_ids, ["a", "b"])

    async def test_update_replaces_only_that_document(self):
        self.repo.put("a", "# A\n\nno links any more")
        graph = await self.manager.update_file("a")
        self.assertEqual(sorted(graph.nodes), ["a", "b"])
        self.assertEqual(graph.links, [])

    async def test_update_adds_new_sections(self):
        self.repo.put("a", "# A\n\n## Part\n\n[[b]]")
        graph = await self.manager.update_file("a")
        self.assertIn("a#part", graph.nodes)
        self.assertEqual(self.manager.mapping_for("a").node_ids, ("a", "a#part"))

    async def test_remove_drops_nodes_and_touching_links(self):
        graph = self.manager.remove_file("b")
        self.assertEqual(list(graph.nodes), ["a"])
        self.assertEqual(graph.links, [])
        self.assertIsNone(self.manager.mapping_for("b"))

    async def test_remove_unknown_file_is_a_no_op(self):
        before = self.manager.stats()
        self.manager.remove_file("zzz")
        self.assertEqual(self.manager.stats(), before)

    async def test_failed_reload_removes_old_contribution(self):
        self.repo.delete("a")
        with self.assertLogs("mdgraph.graph.manager", level="WARNING"):
            graph = await self.manager.update_file("a")
        self.assertEqual(list(graph.nodes), ["b"])
        self.assertEqual(graph.links, [])

    async def test_get_graph_returns_a_copy(self):
        graph = self.manager.get_graph()
        graph.nodes["a"].label = "changed"
        graph.links.clear()
        self.assertEqual(self.manager.get_graph().nodes["a"].label, "A")
        self.assertEqual(self.manager.stats().link_count, 1)

    async def test_implicit_links_resolve_against_current_nodes(self):
        repo = InMemoryRepository({"cat": "# Cat"})
        manager = GraphManager(repo)
        await manager.initialize()
        repo.put("dog", "# Dog\n\na cat is here")
        graph = await manager.update_file("dog")
        self.assertIn(Link("dog", "cat"), graph.links)


class TestGraphManagerFiles(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    async def test_duplicate_ids_last_enumerated_wins(self):
        (self.root / "x").mkdir()
        (self.root / "y").mkdir()
        (self.root / "x" / "note.md").write_text("# From X\n", encoding="utf-8")
        (self.root / "y" / "note.md").write_text("# From Y\n", encoding="utf-8")

        manager = GraphManager(FileRepository(self.root), self.root, NO_NL)
        with self.assertLogs("mdgraph.graph.manager", level="WARNING"):
            graph = await manager.initialize()
        self.assertEqual(graph.nodes["note"].label, "From Y")
        self.assertEqual(manager.mapping_for("note").file_path, "y/note.md")

    async def test_absolute_paths_are_resolved_against_base_directory(self):
        (self.root / "a.md").write_text("# A\n", encoding="utf-8")
        manager = GraphManager(FileRepository(self.root), self.root, NO_NL)
        await manager.initialize()

        new_file = self.root / "sub" / "c.md"
        new_file.parent.mkdir()
        new_file.write_text("# C\n\n[[a]]\n", encoding="utf-8")
        graph = await manager.update_file(new_file)
        self.assertEqual(graph.nodes["c"].label, "C")
        self.assertIn(Link("c", "a"), graph.links)

        new_file.unlink()
        graph = manager.remove_file(new_file)
        self.assertNotIn("c", graph.nodes)


if __name__ == "__main__":
    unittest.main()
