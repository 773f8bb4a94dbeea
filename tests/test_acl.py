import unittest

from githubconfig.infrastructure.acl import GitHubTranslator


class TestGitHubTranslator(unittest.TestCase):
    def test_to_domain_splits_name_and_extension(self) -> None:
        raw_entry = {
            "name": "hello.yml",
            "type": "blob",
            "object": {"oid": "abc", "text": "message: hi\n"},
        }

        file = GitHubTranslator.to_domain(raw_entry)

        self.assertEqual(file.id, "hello")
        self.assertEqual(file.file_name, "hello.yml")
        self.assertEqual(file.extension, ".yml")
        self.assertEqual(file.object_id, "abc")
        self.assertEqual(file.content, "message: hi\n")

    def test_binary_blob_has_empty_content(self) -> None:
        raw_entry = {
            "name": "logo.png",
            "type": "blob",
            "object": {"oid": "def", "text": None},
        }

        file = GitHubTranslator.to_domain(raw_entry)

        self.assertEqual(file.extension, ".png")
        self.assertEqual(file.content, "")

    def test_missing_name_raises(self) -> None:
        raw_entry = {
            "type": "blob",
            "object": {"oid": "abc", "text": "message: hi\n"},
        }

        with self.assertRaises(ValueError):
            GitHubTranslator.to_domain(raw_entry)

    def test_is_blob(self) -> None:
        self.assertTrue(GitHubTranslator.is_blob({"name": "hello.yml", "type": "blob"}))
        self.assertFalse(GitHubTranslator.is_blob({"name": "nested", "type": "tree", "object": {}}))
