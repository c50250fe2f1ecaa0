# tests/test_build.py

import pytest

from boxbuilder.builder import Builder, CancellationToken, read_image_file
from boxbuilder.cache import CacheLookup, is_cache_key
from boxbuilder.datacls import BuildState
from boxbuilder.exceptions import BuildInterruptedError, MissingBaseImageError, RuntimeCommunicationError

BOXFILE = """
tag: example:latest
steps:
  - from: debian:bookworm
  - env: {LANG: C.UTF-8}
  - copy: [src, /app]
  - workdir: /app
    steps:
      - user: nobody
        steps:
          - run: make
      - run: [ls, -l]
  - entrypoint: [/usr/bin/tini, --]
  - cmd: [/app/bin/server]
"""


@pytest.fixture
def boxfile(write_boxfile, tmp_path):
    src = tmp_path / "src"
    (src / "bin").mkdir(parents=True)
    (src / "Makefile").write_text("all:\n\ttrue\n")
    (src / "bin" / "server").write_text("#!/bin/sh\n")
    return write_boxfile(BOXFILE)


def build(boxfile, runtime, sink, **kwargs):
    return Builder(boxfile, runtime, output=sink.append, **kwargs).run()


class TestBuilder:
    """End-to-end builds against the in-memory runtime."""

    def test_build_produces_tagged_image(self, boxfile, runtime, sink):
        image_id = build(boxfile, runtime, sink)
        assert runtime.tags["example:latest"] == image_id
        record = runtime.images[image_id]
        assert record.config.cmd == ["/app/bin/server"]
        assert record.config.entrypoint == ["/usr/bin/tini", "--"]
        assert record.config.env["LANG"] == "C.UTF-8"
        assert runtime.containers == {}

    def test_tag_argument_overrides_boxfile(self, boxfile, runtime, sink):
        image_id = build(boxfile, runtime, sink, tag="other:1")
        assert runtime.tags["other:1"] == image_id
        assert "example:latest" not in runtime.tags

    def test_one_image_per_committing_step(self, boxfile, runtime, sink):
        image_id = build(boxfile, runtime, sink)
        chain = []
        while image_id in runtime.images and runtime.images[image_id].parent_id:
            chain.append(runtime.images[image_id].comment)
            image_id = runtime.images[image_id].parent_id
        assert [key.split(" ", 1)[0] for key in reversed(chain)] == [
            "from", "env", "box:copy", "run", "run", "entrypoint", "cmd",
        ]
        assert all(is_cache_key(key) for key in chain)

    def test_read_file_from_result(self, boxfile, runtime, sink):
        builder = Builder(boxfile, runtime, output=sink.append)
        image_id = builder.run()
        assert builder.read("/app/src/bin/server") == b"#!/bin/sh\n"
        assert read_image_file(runtime, image_id, "/app/src/Makefile") == b"all:\n\ttrue\n"
        assert runtime.containers == {}

    def test_read_missing_file_still_removes_container(self, boxfile, runtime, sink):
        image_id = build(boxfile, runtime, sink)
        with pytest.raises(RuntimeCommunicationError):
            read_image_file(runtime, image_id, "/nope")
        assert runtime.containers == {}

    def test_read_before_build(self, boxfile, runtime):
        with pytest.raises(MissingBaseImageError):
            Builder(boxfile, runtime).read("/etc/os-release")

    def test_empty_boxfile_has_no_image(self, write_boxfile, runtime, sink):
        with pytest.raises(MissingBaseImageError):
            build(write_boxfile("steps: []\n"), runtime, sink)

    def test_cancelled_build_stops_before_next_step(self, boxfile, runtime, sink):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(BuildInterruptedError):
            build(boxfile, runtime, sink, token=token)
        assert runtime.calls == []


class TestCaching:
    """Second runs reuse every committed step."""

    def test_second_run_hits_every_step(self, boxfile, runtime, sink):
        first = build(boxfile, runtime, sink)
        images = set(runtime.images)
        runtime.calls.clear()

        second = build(boxfile, runtime, sink)
        assert second == first
        assert set(runtime.images) == images
        assert runtime.called("create") == []
        assert runtime.executed == [
            ["/bin/sh", "-c", "make"],
            ["/bin/sh", "-c", "ls -l"],
        ]

    def test_changed_copy_source_misses_from_there_on(self, boxfile, runtime, sink, tmp_path):
        build(boxfile, runtime, sink)
        runtime.calls.clear()
        (tmp_path / "src" / "Makefile").write_text("all:\n\tfalse\n")

        build(boxfile, runtime, sink)
        # copy, two runs, entrypoint and cmd are rebuilt
        assert len(runtime.called("create")) == 5

    def test_no_cache_never_hits(self, boxfile, runtime, sink, monkeypatch):
        build(boxfile, runtime, sink)
        monkeypatch.setenv("NO_CACHE", "1")
        runtime.calls.clear()

        build(boxfile, runtime, sink)
        assert len(runtime.called("create")) == 7
        assert runtime.called("list") == []

    def test_lookup_only_considers_children(self, runtime):
        lookup = CacheLookup(runtime)
        state = BuildState()
        state.reset("debian:bookworm", runtime.inspect_image("debian:bookworm"))
        other = runtime.add_image("alpine:3")
        container_id = runtime.create_container(runtime.images[other].config)
        runtime.commit_container(container_id, runtime.images[other].config, "run make")
        assert not lookup.consult(state, "run make")

    def test_lookup_without_image(self, runtime):
        assert not CacheLookup(runtime).consult(BuildState(), "run make")
        assert runtime.calls == []


class TestCacheKeys:

    @pytest.mark.parametrize(
        "comment, expected",
        [
            ("run make", True),
            ("box:copy 00ff", True),
            ('cmd ["a"]', True),
            ("", False),
            (None, False),
            ("run", False),
            ("created by hand", False),
        ],
    )
    def test_is_cache_key(self, comment, expected):
        assert is_cache_key(comment) is expected
