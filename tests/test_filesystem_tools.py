from ingenium.agent.tools.filesystem import EditFileTool, ListDirTool, ReadFileTool, WriteFileTool


async def test_write_then_read_relative_to_base_dir(workspace):
    writer = WriteFileTool(base_dir=workspace)
    reader = ReadFileTool(base_dir=workspace)

    result = await writer.execute(path="notes/todo.txt", content="buy milk")
    assert result == "Successfully wrote 8 bytes to notes/todo.txt"
    assert (workspace / "notes" / "todo.txt").read_text() == "buy milk"
    assert await reader.execute(path="notes/todo.txt") == "buy milk"


async def test_read_missing_file(workspace):
    reader = ReadFileTool(base_dir=workspace)
    assert await reader.execute(path="ghost.txt") == "Error: File not found: ghost.txt"


async def test_read_directory_is_not_a_file(workspace):
    (workspace / "sub").mkdir()
    reader = ReadFileTool(base_dir=workspace)
    assert await reader.execute(path="sub") == "Error: Not a file: sub"


async def test_allowed_dir_blocks_escape(workspace, tmp_path):
    outside = tmp_path / "secret.txt"
    outside.write_text("classified")
    reader = ReadFileTool(allowed_dir=workspace)

    result = await reader.execute(path=str(outside))
    assert result.startswith("Error: Path")
    assert "outside allowed directory" in result

    result = await reader.execute(path="../secret.txt")
    assert "outside allowed directory" in result

    writer = WriteFileTool(allowed_dir=workspace)
    result = await writer.execute(path="../escape.txt", content="x")
    assert "outside allowed directory" in result
    assert not (tmp_path / "escape.txt").exists()


async def test_edit_replaces_unique_match(workspace):
    target = workspace / "app.py"
    target.write_text("x = 1\ny = 2\n")
    editor = EditFileTool(base_dir=workspace)

    assert await editor.execute(path="app.py", old_text="y = 2", new_text="y = 3") == "Successfully edited app.py"
    assert target.read_text() == "x = 1\ny = 3\n"


async def test_edit_rejects_missing_and_ambiguous(workspace):
    target = workspace / "dup.txt"
    target.write_text("a a a")
    editor = EditFileTool(base_dir=workspace)

    missing = await editor.execute(path="dup.txt", old_text="b", new_text="c")
    assert missing == "Error: old_text not found in file. Make sure it matches exactly."

    ambiguous = await editor.execute(path="dup.txt", old_text="a", new_text="c")
    assert ambiguous.startswith("Warning: old_text appears 3 times")
    assert target.read_text() == "a a a"


async def test_list_dir_directories_first(workspace):
    (workspace / "b.txt").write_text("")
    (workspace / "a.txt").write_text("")
    (workspace / "zdir").mkdir()
    lister = ListDirTool(base_dir=workspace)

    assert await lister.execute(path=".") == "zdir/\na.txt\nb.txt"


async def test_list_dir_empty_and_missing(workspace):
    (workspace / "empty").mkdir()
    lister = ListDirTool(base_dir=workspace)

    assert await lister.execute(path="empty") == "Directory empty is empty"
    assert await lister.execute(path="nope") == "Error: Directory not found: nope"
