import json

import pytest

from agentic_cli.tools import FileSystemTool, ToolExecutor, ToolRegistry


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("def main():\n    return 'hello'\n")
    (tmp_path / "README.md").write_text("# Demo\nHello world\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "lib.js").write_text("hello")
    return tmp_path


@pytest.fixture
def fs(project):
    return FileSystemTool(project)


class TestSandbox:
    def test_paths_outside_base_are_denied(self, fs):
        with pytest.raises(PermissionError):
            fs.read_file("../secret.txt")
        with pytest.raises(PermissionError):
            fs.write_file("/etc/passwd", "x")

    @pytest.mark.asyncio
    async def test_denial_reaches_the_model_as_failure(self, fs):
        registry = ToolRegistry()
        executor = ToolExecutor(registry)
        assert fs.register(registry, executor) == 12

        result = await executor.execute_tool("read_file", {"path": "../../etc/passwd"})

        assert not result.success
        assert result.error.details == {"exception": "PermissionError"}


class TestFileOperations:
    def test_read_and_read_multiple(self, fs):
        assert fs.read_file("README.md").startswith("# Demo")

        results = fs.read_multiple_files(["README.md", "missing.txt"])

        assert "content" in results["README.md"]
        assert "error" in results["missing.txt"]

    def test_write_refuses_overwrite_by_default(self, fs, project):
        created = fs.write_file("notes/todo.txt", "one")
        assert created == {"path": "notes/todo.txt", "bytes_written": 3, "overwrote": False}

        with pytest.raises(FileExistsError):
            fs.write_file("notes/todo.txt", "two")

        replaced = fs.write_file("notes/todo.txt", "two", allow_overwrite=True)
        assert replaced["overwrote"] is True
        assert (project / "notes" / "todo.txt").read_text() == "two"

    def test_project_setting_alone_allows_overwrite(self, project):
        fs = FileSystemTool(project, allow_file_overwrite=True)
        (project / "notes.txt").write_text("old")

        assert fs.write_file("notes.txt", "new")["overwrote"] is True
        write_tool = next(t for t in fs.tool_definitions() if t.name == "write_file")
        assert "allow_overwrite is true or when overwriting is enabled" in write_tool.description

    def test_edit_file_with_dry_run(self, fs, project):
        edits = [{"old_text": "'hello'", "new_text": "'bye'"}]

        preview = fs.edit_file("src/app.py", edits, dry_run=True)

        assert preview["applied"] is False
        assert "-    return 'hello'" in preview["diff"]
        assert "'hello'" in (project / "src" / "app.py").read_text()

        fs.edit_file("src/app.py", edits)
        assert "'bye'" in (project / "src" / "app.py").read_text()

    def test_edit_file_missing_text(self, fs):
        with pytest.raises(ValueError):
            fs.edit_file("src/app.py", [{"old_text": "nope", "new_text": "x"}])

    def test_directories(self, fs):
        fs.create_directory("build/out")

        listing = fs.list_directory(".").splitlines()
        assert "[DIR] build" in listing
        assert "[FILE] README.md" in listing

        tree = fs.get_directory_tree(".")
        names = [child["name"] for child in tree["children"]]
        assert "node_modules" not in names
        assert "src" in names

    def test_move_and_delete(self, fs, project):
        fs.move_file("README.md", "docs/README.md")
        assert (project / "docs" / "README.md").exists()

        fs.delete_file("docs/README.md")
        assert not (project / "docs" / "README.md").exists()
        with pytest.raises(FileNotFoundError):
            fs.delete_file("docs/README.md")

    def test_file_info(self, fs):
        info = fs.get_file_info("src/app.py")

        assert info["type"] == "file"
        assert info["path"] == "src/app.py"


class TestSearch:
    def test_find_files_skips_ignored_dirs(self, fs):
        assert fs.find_files("*.py") == ["src/app.py"]
        assert fs.find_files("*.js") == []
        assert fs.find_files("*.md", exclude=["README.md"]) == []

    def test_search_codebase(self, fs):
        hits = fs.search_codebase("HELLO")

        assert [(h["file"], h["line"]) for h in hits] == [("README.md", 2), ("src/app.py", 2)]
        assert fs.search_codebase("HELLO", case_sensitive=True) == []
        assert fs.search_codebase(r"def \w+", regex=True)[0]["text"] == "def main():"

    def test_definitions_mark_read_only_tools(self, fs):
        read_only = {t.name for t in fs.tool_definitions() if t.side_effect_free}

        assert "read_file" in read_only
        assert "write_file" not in read_only
        assert json.dumps([t.parameters for t in fs.tool_definitions()])
