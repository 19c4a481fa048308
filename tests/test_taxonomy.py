import json
import tempfile
import unittest
from pathlib import Path

from support import PROJECT_ROOT  # noqa: F401

from app.taxonomy import get_default_taxonomy_provider
from app.taxonomy.local_taxonomy import LocalTaxonomy


class TaxonomyTests(unittest.TestCase):
    def test_synonym_normalization_resolves_canonical_id(self):
        taxonomy = LocalTaxonomy()
        normalized, canonical_id = taxonomy.normalize_skill("  K8s ")
        self.assertEqual(normalized, "k8s")
        self.assertEqual(canonical_id, "kubernetes")
        self.assertEqual(taxonomy.canonical("Postgres."), "postgresql")

    def test_unknown_skill_falls_back_to_normalized_text(self):
        taxonomy = LocalTaxonomy()
        self.assertEqual(taxonomy.normalize_skill("Event   Storming"), ("event storming", None))
        self.assertEqual(taxonomy.canonical("Event   Storming"), "event storming")

    def test_custom_synonyms_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "aliases.json"
            path.write_text(json.dumps({"Golang": "go"}), encoding="utf-8")
            taxonomy = LocalTaxonomy(path)
            self.assertEqual(taxonomy.canonical("golang"), "go")
            self.assertEqual(taxonomy.canonical("k8s"), "k8s")

    def test_default_provider_is_shared(self):
        self.assertIs(get_default_taxonomy_provider(), get_default_taxonomy_provider())


if __name__ == "__main__":
    unittest.main()
