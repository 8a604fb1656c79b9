import os

import pytest

from fanout_lib import (
    FanoutError,
    Generator,
    LocalStorage,
    MemoryStorage,
    PathExpressionError,
    RenderError,
    StorageError,
    load_model,
)

EXAMPLE_FILES = [
    "my_app/README.md",
    "my_app/auth/auth.go",
    "my_app/auth/config.txt",
    "my_app/payments/config.txt",
    "my_app/payments/payments.go",
]


def template_of(files):
    storage = MemoryStorage()
    for path, body in files.items():
        if path.endswith("/"):
            storage.make_dirs(path)
        else:
            storage.put(path, body)
    return storage


def example_generator(examples_dir, out, **kwargs):
    model = load_model(os.path.join(examples_dir, "model.yaml"))
    return Generator(LocalStorage(examples_dir), out, model, **kwargs)


def text(storage, path):
    return storage.read_file(path).decode("utf-8")


def test_example_project(examples_dir):
    out = MemoryStorage()
    # left over from a previous run; renders empty now
    out.put("my_app/empty.txt", "pre-existing content")

    report = example_generator(examples_dir, out).run("template", "")

    assert list(out.files()) == EXAMPLE_FILES
    assert out.dirs() == ["my_app", "my_app/auth", "my_app/payments"]
    assert report.paths("remove") == ["my_app/empty.txt"]
    assert report.paths("rmdir") == ["my_app/gateway"]

    readme = text(out, "my_app/README.md")
    assert "# My App" in readme
    assert "auth" in readme and "payments" in readme

    for feature, table in (("auth", "auths"), ("payments", "payments")):
        config = text(out, f"my_app/{feature}/config.txt")
        assert f"Feature: {feature}" in config
        assert "Project: My App" in config
        assert "Slug: my_app" in config
        assert "Owner: Alice" in config

        code = text(out, f"my_app/{feature}/{feature}.go")
        assert f"package {feature}" in code
        assert f"Auto-generated for feature {feature}" in code
        assert f'return "{table}"' in code


def test_fanout_example_from_model():
    model = {
        "projectName": "MyApp",
        "features": [{"name": "auth", "table": "auths"}, {"name": "payments", "table": "payments"}],
    }
    tpl = template_of({
        "tpl/{{projectName}}/{{features.name}}/{{name}}.go.tmpl":
            'package {{ name }}\nfunc T() string { return "{{ table }}" }',
    })
    out = MemoryStorage()

    Generator(tpl, out, model).run("tpl", "")

    assert list(out.files()) == ["MyApp/auth/auth.go", "MyApp/payments/payments.go"]
    assert text(out, "MyApp/auth/auth.go") == 'package auth\nfunc T() string { return "auths" }'
    assert text(out, "MyApp/payments/payments.go") == 'package payments\nfunc T() string { return "payments" }'


def test_has_db_brings_gateway(examples_dir):
    model = load_model(os.path.join(examples_dir, "model.yaml"))
    model["hasDb"] = True
    out = MemoryStorage()

    Generator(LocalStorage(examples_dir), out, model).run("template", "")

    assert "package gateway" in text(out, "my_app/gateway/db.go")
    assert 'return "my_app"' in text(out, "my_app/gateway/db.go")


def test_dry_run_touches_nothing_and_matches_real_run(examples_dir):
    dry_out = MemoryStorage()
    real_out = MemoryStorage()

    planned = example_generator(examples_dir, dry_out).run("template", "out", dry_run=True)
    done = example_generator(examples_dir, real_out).run("template", "out")

    assert dry_out.files() == {}
    assert dry_out.dirs() == []
    assert planned.dry_run
    for kind in ("mkdir", "write", "skip"):
        assert planned.count(kind) == done.count(kind)
    assert planned.count("write") == 5
    assert planned.count("skip") == 2
    assert planned.count("mkdir") == 4
    assert planned.paths("write") == done.paths("write")
    assert planned.count("rmdir") == 0


def test_dry_run_reports_byte_counts():
    tpl = template_of({"t/a.txt": "héllo"})

    report = Generator(tpl, MemoryStorage(), {}).run("t", "", dry_run=True)

    assert report.actions[0].size == len("héllo".encode("utf-8"))
    assert report.lines() == ["[FILE]  a.txt (6 bytes)"]


def test_second_run_changes_nothing(examples_dir):
    out = MemoryStorage()
    generator = example_generator(examples_dir, out)

    first = generator.run("template", "")
    snapshot = (out.files(), out.dirs())
    second = generator.run("template", "")

    assert (out.files(), out.dirs()) == snapshot
    assert second.paths("write") == first.paths("write")
    assert second.count("remove") == 0
    # only the directory both runs create and drop again
    assert second.paths("rmdir") == first.paths("rmdir") == ["my_app/gateway"]


def test_pre_existing_paths_are_preserved():
    tpl = template_of({
        "template/{{ projectName }}/README.md": "# {{ projectName }}",
        "template/{{ projectName }}/newdir/empty.txt.tmpl": "",
        "template/{{ projectName }}/kept/blank.txt": "   \n",
    })
    out = MemoryStorage()
    out.make_dirs("output/PreExisting/EmptySubdir")
    out.put("output/PreExisting/existing.txt", "pre-existing content")
    out.make_dirs("output/Lonely")
    # same path the run produces, but it was already there
    out.make_dirs("output/TestProject/kept")

    report = Generator(tpl, out, {"projectName": "TestProject"}).run("template", "output")

    assert out.is_dir("output/PreExisting")
    assert out.is_dir("output/PreExisting/EmptySubdir")
    assert text(out, "output/PreExisting/existing.txt") == "pre-existing content"
    assert out.is_dir("output/Lonely")
    assert out.is_dir("output/TestProject/kept")
    assert text(out, "output/TestProject/README.md") == "# TestProject"
    assert not out.exists("output/TestProject/newdir")
    assert report.paths("rmdir") == ["output/TestProject/newdir"]


def test_created_output_root_is_kept_when_empty():
    tpl = template_of({"t/{{ pkg }}/x.txt": ""})
    out = MemoryStorage()

    report = Generator(tpl, out, {"pkg": "com/example"}).run("t", "out")

    assert out.dirs() == ["out"]
    assert report.paths("rmdir") == ["out/com/example", "out/com"]


def test_whitespace_file_skipped_and_stale_copy_deleted():
    tpl = template_of({"t/a.txt.tmpl": "  \n\t\n", "t/b.txt": "{{ note }}"})
    out = MemoryStorage()
    out.put("out/a.txt", "old")

    report = Generator(tpl, out, {"note": "kept"}).run("t", "out")

    assert not out.exists("out/a.txt")
    assert text(out, "out/b.txt") == "kept"
    assert report.paths("skip") == ["out/a.txt"]
    assert report.paths("remove") == ["out/a.txt"]


def test_whitespace_file_dry_run_keeps_stale_copy():
    tpl = template_of({"t/a.txt": "\n"})
    out = MemoryStorage()
    out.put("out/a.txt", "old")

    report = Generator(tpl, out, {}).run("t", "out", dry_run=True)

    assert text(out, "out/a.txt") == "old"
    assert report.lines() == ["[SKIP]  out/a.txt (empty after rendering)"]


def test_empty_sequence_prunes_branch():
    tpl = template_of({
        "t/{{ features.name }}/x.txt": "hi",
        "t/{{ features.name }}/sub/y.txt": "there",
    })
    out = MemoryStorage()
    generator = Generator(tpl, out, {"features": []})

    planned = generator.run("t", "out", dry_run=True)
    done = generator.run("t", "out")

    assert planned.actions == []
    assert done.actions == []
    assert out.files() == {}
    assert out.dirs() == ["out"]


def test_nested_contexts_flow_into_content():
    model = {
        "projectName": "Shop",
        "features": [
            {"name": "users", "endpoints": [{"path": "list", "method": "GET"}, {"path": "create", "method": "POST"}]},
            {"name": "orders", "endpoints": [{"path": "cancel", "method": "DELETE"}]},
        ],
    }
    tpl = template_of({"t/{{ features.name }}/{{ endpoints.path }}.txt": "{{ method }} {{ root.projectName }}"})
    out = MemoryStorage()

    Generator(tpl, out, model).run("t", "")

    assert out.files() == {
        "orders/cancel.txt": b"DELETE Shop",
        "users/create.txt": b"POST Shop",
        "users/list.txt": b"GET Shop",
    }


def test_cartesian_directory_names(feature_model):
    tpl = template_of({"t/{{ features.name }}-{{ root.envs }}/env.txt": "{{ this }}"})
    out = MemoryStorage()

    report = Generator(tpl, out, feature_model).run("t", "")

    assert report.paths("mkdir") == ["users-dev", "users-prod", "orders-dev", "orders-prod"]
    assert text(out, "orders-prod/env.txt") == "prod"


def test_sibling_order_is_lexicographic():
    tpl = template_of({"t/b.txt": "b", "t/a/x.txt": "x", "t/C.txt": "c"})

    report = Generator(tpl, MemoryStorage(), {}).run("t", "", dry_run=True)

    assert [a.path for a in report.actions] == ["C.txt", "a", "a/x.txt", "b.txt"]


def test_suffix_is_stripped_only_from_template_files():
    tpl = template_of({"t/notes.txt": "n", "t/main.py.tmpl": "m", "t/{{ ext }}": "e"})
    out = MemoryStorage()

    Generator(tpl, out, {"ext": "x.tmpl"}).run("t", "")

    assert list(out.files()) == ["main.py", "notes.txt", "x.tmpl"]


def test_custom_template_suffix():
    tpl = template_of({"t/main.py.j2": "m", "t/other.tmpl": "o"})
    out = MemoryStorage()

    Generator(tpl, out, {}, template_suffix=".j2").run("t", "")

    assert list(out.files()) == ["main.py", "other.tmpl"]


def test_custom_functions_in_names_and_content(custom_functions):
    tpl = template_of({"t/{{ projectName | shout }}.txt": "{{ shout(projectName) }}"})
    out = MemoryStorage()

    Generator(tpl, out, {"projectName": "app"}, custom_functions=custom_functions).run("t", "")

    assert out.files() == {"APP!.txt": b"APP!"}


def test_model_values_rendered_unless_disabled():
    model = {"projectName": "My App", "projectSlug": "{{ projectName | slugify }}"}

    assert Generator(MemoryStorage(), MemoryStorage(), model).model["projectSlug"] == "my_app"
    raw = Generator(MemoryStorage(), MemoryStorage(), model, render_model_values=False)
    assert raw.model["projectSlug"] == "{{ projectName | slugify }}"


def test_render_error_aborts_before_later_siblings():
    tpl = template_of({"t/a/bad.txt": "{{ missing }}", "t/b/ok.txt": "fine"})
    out = MemoryStorage()

    with pytest.raises(RenderError) as excinfo:
        Generator(tpl, out, {}).run("t", "out")

    assert excinfo.value.name == "t/a/bad.txt"
    assert not out.exists("out/b")


def test_path_expression_error_names_template_path():
    tpl = template_of({"t/{{ missing }}.txt": "x"})

    with pytest.raises(PathExpressionError) as excinfo:
        Generator(tpl, MemoryStorage(), {"present": 1}).run("t", "")

    assert excinfo.value.segment == "t/{{ missing }}.txt"


def test_template_root_must_be_a_directory():
    tpl = template_of({"t/file.txt": "x"})

    with pytest.raises(StorageError):
        Generator(tpl, MemoryStorage(), {}).run("t/file.txt", "")
    with pytest.raises(StorageError):
        Generator(tpl, MemoryStorage(), {}).run("nowhere", "")


def test_file_in_the_way_of_a_directory():
    tpl = template_of({"t/sub/x.txt": "x"})
    out = MemoryStorage()
    out.put("sub", "i am a file")

    with pytest.raises(StorageError, match="sub"):
        Generator(tpl, out, {}).run("t", "")


def test_empty_file_name_is_rejected():
    tpl = template_of({"t/{{ owner }}": "x"})

    with pytest.raises(StorageError, match="empty"):
        Generator(tpl, MemoryStorage(), {"owner": {"name": "x"}}).run("t", "")


def test_local_filesystem_run(tmp_path, examples_dir):
    out_dir = tmp_path / "generated"

    report = example_generator(examples_dir, LocalStorage()).run("template", str(out_dir))

    assert report.count("write") == 5
    assert (out_dir / "my_app" / "auth" / "auth.go").read_text(encoding="utf-8").startswith("package auth")
    assert not (out_dir / "my_app" / "gateway").exists()
    assert not (out_dir / "my_app" / "empty.txt").exists()


def test_runtime_failure_in_content_names_the_template():
    tpl = template_of({"t/a.txt": "{{ total // count }}"})

    with pytest.raises(RenderError) as excinfo:
        Generator(tpl, MemoryStorage(), {"total": 4, "count": 0}).run("t", "")

    assert isinstance(excinfo.value, FanoutError)
    assert excinfo.value.name == "t/a.txt"
