"""Unit tests for :mod:`trialkit.collection`.

Each test writes a small project with the `write_tree` fixture and collects it.
"""

from __future__ import annotations

import logging

import pytest

from trialkit.collection import Collector
from trialkit.config import RunConfig
from trialkit.errors import CollectionError
from trialkit.fixtures import FixtureRegistry

# pylint: disable=redefined-outer-name


@pytest.fixture
def collect(write_tree):
    """Return a function writing files and collecting them from the tree root."""

    def _collect(files, **options):
        root = write_tree(files)
        return Collector(RunConfig(paths=(root,), **options)).collect()

    return _collect


def nodeids(collection) -> list[str]:
    return [case.nodeid for case in collection.cases]


# ============================================================================
#                               Discovery
# ============================================================================


def test_functions_and_classes_are_collected(collect):
    collection = collect(
        {
            "test_basic.py": """
                def helper():
                    pass

                def test_one():
                    pass

                def test_two(tmp_path):
                    pass

                class TestGroup:
                    def test_method(self):
                        pass

                    @staticmethod
                    def test_static():
                        pass

                    def not_a_test(self):
                        pass

                class Helper:
                    def test_ignored(self):
                        pass
            """
        }
    )
    assert not collection.errors
    assert nodeids(collection) == [
        "test_basic.py::test_one",
        "test_basic.py::test_two",
        "test_basic.py::TestGroup::test_method",
        "test_basic.py::TestGroup::test_static",
    ]
    method = collection.cases[2]
    assert method.argnames == ()
    assert method.cls is not None
    assert collection.cases[1].argnames == ("tmp_path",)


def test_inherited_test_methods_are_collected(collect):
    collection = collect(
        {
            "test_inherit.py": """
                class Base:
                    def test_shared(self):
                        pass

                class TestChild(Base):
                    def test_own(self):
                        pass
            """
        }
    )
    assert nodeids(collection) == [
        "test_inherit.py::TestChild::test_shared",
        "test_inherit.py::TestChild::test_own",
    ]


def test_classes_with_init_are_skipped_with_a_warning(collect, caplog):
    with caplog.at_level(logging.WARNING, logger="trialkit.collection"):
        collection = collect(
            {
                "test_init.py": """
                    class TestStateful:
                        def __init__(self):
                            self.x = 1

                        def test_x(self):
                            pass
                """
            }
        )
    assert not collection.cases
    assert "has an __init__ constructor" in caplog.text


def test_dunder_test_false_opts_out(collect):
    collection = collect(
        {
            "test_optout.py": """
                def test_kept():
                    pass

                def test_dropped():
                    pass
                test_dropped.__test__ = False

                class TestNotReally:
                    __test__ = False

                    def test_x(self):
                        pass
            """
        }
    )
    assert nodeids(collection) == ["test_optout.py::test_kept"]


def test_file_patterns_and_skipped_directories(collect):
    files = {
        "test_a.py": "def test_a(): pass\n",
        "b_test.py": "def test_b(): pass\n",
        "helpers.py": "def test_not_collected(): pass\n",
        "sub/test_c.py": "def test_c(): pass\n",
        ".hidden/test_d.py": "def test_d(): pass\n",
        "venv/test_e.py": "def test_e(): pass\n",
    }
    assert nodeids(collect(files)) == [
        "b_test.py::test_b",
        "sub/test_c.py::test_c",
        "test_a.py::test_a",
    ]


def test_custom_patterns(collect):
    files = {"check_x.py": "def test_x(): pass\n", "test_y.py": "def test_y(): pass\n"}
    assert nodeids(collect(files, patterns=("check_*.py",))) == ["check_x.py::test_x"]


def test_explicit_file_is_collected_regardless_of_pattern(write_tree):
    root = write_tree({"scenario.py": "def test_explicit(): pass\n"})
    collection = Collector(RunConfig(paths=(root / "scenario.py",))).collect()
    assert nodeids(collection) == ["scenario.py::test_explicit"]


def test_files_are_collected_once(write_tree):
    root = write_tree({"test_a.py": "def test_a(): pass\n"})
    run = RunConfig(paths=(root, root / "test_a.py"))
    assert nodeids(Collector(run).collect()) == ["test_a.py::test_a"]


def test_sibling_modules_are_importable(collect):
    collection = collect(
        {
            "sample_helpers.py": "VALUE = 3\n",
            "test_uses_helper.py": """
                from sample_helpers import VALUE

                def test_value():
                    assert VALUE == 3
            """,
        }
    )
    assert not collection.errors
    assert len(collection.cases) == 1


# ============================================================================
#                               Errors
# ============================================================================


def test_import_errors_become_collection_errors(collect):
    collection = collect(
        {
            "test_ok.py": "def test_ok(): pass\n",
            "test_broken.py": "import trialkit_no_such_module\n",
        }
    )
    (error,) = collection.errors
    assert isinstance(error, CollectionError)
    assert error.path == "test_broken.py"
    assert error.reason.startswith("ModuleNotFoundError: ")
    assert nodeids(collection) == ["test_ok.py::test_ok"]


def test_parametrized_name_must_be_an_argument(collect):
    collection = collect(
        {
            "test_params.py": """
                from trialkit import parametrize

                @parametrize("x", [1])
                def test_missing_arg():
                    pass
            """
        }
    )
    (error,) = collection.errors
    assert "function uses no argument 'x'" in error.reason


# ============================================================================
#                           Fixtures and parameters
# ============================================================================


def test_conftest_fixtures_are_layered(collect):
    collection = collect(
        {
            "conftest.py": """
                from trialkit import fixture

                @fixture
                def where():
                    return "root"

                @fixture
                def shared():
                    return 1
            """,
            "sub/conftest.py": """
                from trialkit import fixture

                @fixture
                def where():
                    return "sub"
            """,
            "test_top.py": "def test_top(where): pass\n",
            "sub/test_nested.py": "def test_nested(where, shared): pass\n",
        }
    )
    top = next(c for c in collection.cases if c.name == "test_top")
    nested = next(c for c in collection.cases if c.name == "test_nested")
    assert top.registry.lookup("where").func() == "root"
    assert nested.registry.lookup("where").func() == "sub"
    assert nested.registry.lookup("shared").func() == 1
    assert nested.registry.lookup("tmp_path") is not None


def test_fixtures_defined_in_test_modules_are_not_tests(collect):
    collection = collect(
        {
            "test_fix.py": """
                from trialkit import fixture

                @fixture
                def test_data():
                    return []

                def test_uses(test_data):
                    pass
            """
        }
    )
    assert nodeids(collection) == ["test_fix.py::test_uses"]


def test_parametrize_ids_appear_in_node_ids(collect):
    collection = collect(
        {
            "test_ids.py": """
                from trialkit import param, parametrize

                @parametrize("b", ["x", "y"])
                @parametrize("a", [1, param(2, id="two")])
                def test_pairs(a, b):
                    pass
            """
        }
    )
    assert nodeids(collection) == [
        "test_ids.py::test_pairs[1-x]",
        "test_ids.py::test_pairs[1-y]",
        "test_ids.py::test_pairs[two-x]",
        "test_ids.py::test_pairs[two-y]",
    ]
    assert collection.cases[2].params == {"a": 2, "b": "x"}


def test_parametrized_fixtures_multiply_cases(collect):
    collection = collect(
        {
            "test_backends.py": """
                from trialkit import fixture, parametrize

                @fixture(params=["sqlite", "pg"])
                def backend(request):
                    return request.param

                @fixture
                def engine(backend):
                    return backend

                @parametrize("n", [1, 2])
                def test_query(n, engine):
                    pass
            """
        }
    )
    assert nodeids(collection) == [
        "test_backends.py::test_query[1-sqlite]",
        "test_backends.py::test_query[1-pg]",
        "test_backends.py::test_query[2-sqlite]",
        "test_backends.py::test_query[2-pg]",
    ]
    assert collection.cases[1].fixture_params == {"backend": (1, "pg")}


def test_empty_fixture_params_skip_the_test(collect):
    collection = collect(
        {
            "test_empty.py": """
                from trialkit import fixture

                @fixture(params=[])
                def nothing(request):
                    return request.param

                def test_x(nothing):
                    pass
            """
        }
    )
    (case,) = collection.cases
    assert case.nodeid == "test_empty.py::test_x"
    assert "skip" in case.mark_names


def test_class_and_function_marks_are_combined(collect):
    collection = collect(
        {
            "test_marks.py": """
                from trialkit import mark

                @mark.db
                class TestRepo:
                    @mark.slow
                    def test_x(self):
                        pass
            """
        }
    )
    (case,) = collection.cases
    assert [m.name for m in case.marks] == ["db", "slow"]


def test_custom_base_registry(write_tree):
    root = write_tree({"test_a.py": "def test_a(): pass\n"})
    base = FixtureRegistry(label="custom")
    (case,) = Collector(RunConfig(paths=(root,)), base_registry=base).collect().cases
    assert case.registry.lookup("tmp_path") is None


# ============================================================================
#                               Selection
# ============================================================================

SELECTION_FILES = {
    "test_sel.py": """
        from trialkit import mark

        @mark.slow
        def test_parse_big():
            pass

        def test_parse_small():
            pass

        def test_render():
            pass
    """
}


@pytest.mark.parametrize(
    ("options", "expected", "deselected"),
    [
        ({"keyword": "parse"}, ["test_parse_big", "test_parse_small"], 1),
        ({"keyword": "not parse"}, ["test_render"], 2),
        ({"marker": "slow"}, ["test_parse_big"], 2),
        ({"marker": "not slow"}, ["test_parse_small", "test_render"], 1),
        ({"keyword": "parse", "marker": "not slow"}, ["test_parse_small"], 2),
    ],
)
def test_selection(collect, options, expected, deselected):
    collection = collect(SELECTION_FILES, **options)
    assert [c.name for c in collection.cases] == expected
    assert collection.deselected == deselected


def test_case_helpers(collect):
    collection = collect(SELECTION_FILES)
    case = collection.cases[0]
    assert case.module_key == "test_sel.py"
    assert case.mark_names == {"slow"}
    assert repr(case) == "<TestCase test_sel.py::test_parse_big>"
