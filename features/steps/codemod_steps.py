# CUI // SP-CTI
"""Step definitions for codemod batch-run BDD scenarios."""

import json
import os
import shlex
import subprocess
import sys

from behave import given, then, when


def _write(context, rel_path, text):
    path = os.path.join(context.project_dir, rel_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text + "\n")
    context.originals[rel_path] = text + "\n"


def _read(context, rel_path):
    with open(os.path.join(context.project_dir, rel_path), encoding="utf-8", newline="") as f:
        return f.read()


def _catalog(context, data):
    context.catalog_path = os.path.join(context.project_dir, "pattern_catalog.json")
    with open(context.catalog_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


@given('a frontend project with a source file "{rel_path}" containing:')
def step_project_with_file(context, rel_path):
    """Create the project tree with one source file."""
    _write(context, rel_path, context.text)


@given('a source file "{rel_path}" containing:')
def step_source_file(context, rel_path):
    """Add another source file."""
    _write(context, rel_path, context.text)


@given('a pattern catalog renaming prop "{old}" to "{new}" and moving "{name}" from "{src}" to "{dst}"')
def step_catalog(context, old, new, name, src, dst):
    """Write a two-rule catalog into the project."""
    _catalog(context, {
        "version": "bdd",
        "rules": [
            {"id": f"prop-{old}", "scope": "prop", "from": old, "to": new, "applies_to": "all"},
            {"id": f"import-{name.lower()}", "scope": "import", "from": src, "to": dst,
             "applies_to": [name]},
        ],
    })


@given('the pattern catalog contains a rule without a target')
def step_bad_catalog(context):
    """Overwrite the catalog with an invalid rule."""
    _catalog(context, {"rules": [{"id": "broken", "scope": "prop", "from": "isOpen"}]})


@when('I run the codemod')
def step_run_codemod(context):
    """Run the codemod CLI against the scenario project."""
    step_run_codemod_with(context, "")


@when('I run the codemod with "{flags}"')
def step_run_codemod_with(context, flags):
    """Run the codemod CLI with extra flags."""
    result = subprocess.run(
        [sys.executable, 'tools/codemod/codemod_runner.py',
         '--project-dir', context.project_dir,
         '--catalog', context.catalog_path,
         '--root', 'src'] + shlex.split(flags),
        capture_output=True, text=True, timeout=60,
        cwd=context.project_root, env=dict(os.environ, NO_COLOR="1"),
    )
    context.result = result


@then('the codemod should exit with status {code:d}')
def step_exit_status(context, code):
    assert context.result.returncode == code, \
        f"Expected {code}, got {context.result.returncode}: {context.result.stderr}"


@then('the output should contain "{text}"')
def step_output_contains(context, text):
    assert text in context.result.stdout, f"'{text}' not in output"


@then('the file "{rel_path}" should contain "{text}"')
def step_file_contains(context, rel_path, text):
    content = _read(context, rel_path)
    assert text in content, f"'{text}' not in {rel_path}:\n{content}"


@then('the file "{rel_path}" should be unchanged')
def step_file_unchanged(context, rel_path):
    assert _read(context, rel_path) == context.originals[rel_path]


@then('the JSON report should list "{rel_path}" as ambiguous')
def step_json_ambiguous(context, rel_path):
    report = json.loads(context.result.stdout)
    assert rel_path in [f["path"] for f in report["ambiguous_files"]]
