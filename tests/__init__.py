"""trialkit test suite.

Folder taxonomy
- unit/         : Isolated, fast checks of a single module/class/function.
- e2e/          : The ``trialkit`` command line driven through Click's CliRunner.
- helpers/      : Shared utilities (no tests here).

General guidance
- Unit tests that need real test files write a throwaway project under tmp_path
  (see ``write_tree`` in conftest.py) instead of touching the repository.
- Property-based tests live with the layer they exercise and use @pytest.mark.property.
- Markers: unit (auto-applied under unit/), e2e, property
"""
