# tests/test_state.py

import pytest

from boxbuilder.datacls import BuildState, ImageConfig, ImageRecord


@pytest.fixture
def state():
    st = BuildState()
    st.reset("debian:bookworm", ImageRecord(id="sha256:base"))
    st.set_canonical("user", "root")
    st.set_canonical("working_dir", "/")
    return st


class TestScopedOverrides:
    """Scoped user/workdir overrides and their restoration."""

    def test_scope_applies_to_live_config_only(self, state):
        with state.scoped("user", "app"):
            assert state.config.user == "app"
            assert state.user == "root"
            assert state.commit_config().user == "root"
        assert state.config.user == "root"

    def test_empty_block_restores_prior_value(self, state):
        state.set_image("sha256:step1")
        with state.scoped("working_dir", "/srv"):
            pass
        assert state.config.working_dir == "/"
        assert state.image == "sha256:step1"

    def test_error_inside_scope_still_restores(self, state):
        with pytest.raises(RuntimeError):
            with state.scoped("user", "app"):
                raise RuntimeError("boom")
        assert state.config.user == "root"
        assert state.scopes == {}

    def test_nested_scopes_restore_outer_value(self, state):
        with state.scoped("user", "outer"):
            with state.scoped("user", "inner"):
                assert state.config.user == "inner"
            assert state.config.user == "outer"
            assert state.scopes == {"user": "outer"}
        assert state.config.user == "root"

    def test_canonical_change_inside_scope_keeps_override(self, state):
        with state.scoped("user", "app"):
            state.set_canonical("user", "nobody")
            assert state.config.user == "app"
        assert state.config.user == "nobody"

    def test_adopt_keeps_enclosing_scope(self, state):
        record = ImageRecord(
            id="sha256:cached",
            parent_id="sha256:base",
            comment="run true",
            config=ImageConfig(user="root", working_dir="/", cmd=["bash"]),
        )
        with state.scoped("working_dir", "/srv"):
            state.adopt(record)
            assert state.image == "sha256:cached"
            assert state.config.working_dir == "/srv"
            assert state.working_dir == "/"
            assert state.cmd == ["bash"]


class TestTransientFields:

    def test_transient_cmd_is_rolled_back(self, state):
        state.set_canonical("cmd", ["serve"])
        with state.transient(cmd=["/bin/sh", "-c", "make"]):
            assert state.config.cmd == ["/bin/sh", "-c", "make"]
            assert state.commit_config().cmd == ["serve"]
        assert state.config.cmd == ["serve"]

    def test_reset_starts_from_new_base(self, state):
        state.config.env["A"] = "1"
        state.reset("alpine:3", ImageRecord(id="sha256:alpine"))
        assert state.base_image == "alpine:3"
        assert state.image == "sha256:alpine"
        assert state.config.env == {}
        assert state.user == ""
