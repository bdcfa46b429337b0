"""Tests for pipeline.py: end-to-end generation against an in-memory resolver."""

import pytest

from mavenrepo.pipeline import UnknownPackagingStrategy, generate_repository


def read_tree(root):
    return {str(p.relative_to(root)): p.read_text(encoding="utf-8") for p in sorted(root.rglob("BUILD.bazel"))}


class TestSingleArtifact:
    @pytest.mark.asyncio
    async def test_javax_inject(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("javax.inject:javax.inject:1")
        spec = specification(
            {"javax.inject:javax.inject:1": {"insecure": True}},
            generate_rules_jvm_compatibility_targets=True,
        )
        workspace = tmp_path / "workspace"
        status = await generate_repository(spec, workspace, fake_resolver, output)

        assert status == 0
        assert sorted(read_tree(workspace)) == ["BUILD.bazel", "javax/inject/BUILD.bazel"]
        build = (workspace / "javax/inject/BUILD.bazel").read_text(encoding="utf-8")
        assert build.startswith("# Generated build file - do not modify\n")
        assert '    name = "javax_inject",\n' in build
        assert "android_library" not in build
        aliases = (workspace / "BUILD.bazel").read_text(encoding="utf-8")
        assert (
            'alias(name = "javax_inject_javax_inject", actual = "@maven//javax/inject:javax_inject")'
            " # javax.inject:javax.inject:1"
        ) in aliases

        text = output.stream.getvalue()
        assert "Building workspace for 1 artifacts" in text
        assert f"Generated 1 build files in {workspace}" in text
        assert "Resolved 1 artifacts with 1 threads in " in text

    @pytest.mark.asyncio
    async def test_no_alias_file_by_default(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("javax.inject:javax.inject:1")
        spec = specification({"javax.inject:javax.inject:1": {"insecure": True}})
        await generate_repository(spec, tmp_path, fake_resolver, output)
        assert not (tmp_path / "BUILD.bazel").exists()


class TestConfigurationErrors:
    @pytest.mark.asyncio
    async def test_invalid_config_aborts_before_resolution(self, tmp_path, fake_resolver, specification, output):
        spec = specification({"a.b:c:1": {}})
        status = await generate_repository(spec, tmp_path / "ws", fake_resolver, output)
        assert status == 1
        assert "ERROR: Invalid config: a.b:c:1 must be marked either with a sha256 or as insecure." in (
            output.stream.getvalue()
        )
        assert fake_resolver.resolve_calls == []
        assert not (tmp_path / "ws").exists()

    @pytest.mark.asyncio
    async def test_malformed_deps_rejected_before_resolution(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("com.example:a:1.0")
        spec = specification({"com.example:a:1.0": {"insecure": True, "deps": ["guava"]}})
        status = await generate_repository(spec, tmp_path / "ws", fake_resolver, output)
        assert status == 1
        assert 'ERROR: Invalid config: com.example:a:1.0 has an invalid deps entry "guava"' in (
            output.stream.getvalue()
        )
        assert fake_resolver.resolve_calls == []


class TestConsistency:
    @pytest.mark.asyncio
    async def test_missing_declaration(self, tmp_path, fake_resolver, specification, output, dep):
        fake_resolver.add("com.squareup.okhttp3:okhttp:4.9.0", dependencies=[dep("com.squareup.okio:okio:2.8.0")])
        spec = specification({"com.squareup.okhttp3:okhttp:4.9.0": {"insecure": True}})
        status = await generate_repository(spec, tmp_path, fake_resolver, output)

        assert status == 1
        text = output.stream.getvalue()
        assert '    "com.squareup.okio:okio:2.8.0": {"insecure": True},' in text
        assert '"com.squareup.okhttp3:okhttp:4.9.0": {"insecure": True, "exclude": ["com.squareup.okio:okio"]}' in text
        # Output is still written for the artifact that succeeded.
        assert (tmp_path / "com/squareup/okhttp3/BUILD.bazel").exists()

    @pytest.mark.asyncio
    async def test_exclude_resolves_missing(self, tmp_path, fake_resolver, specification, output, dep):
        fake_resolver.add("com.squareup.okhttp3:okhttp:4.9.0", dependencies=[dep("com.squareup.okio:okio:2.8.0")])
        spec = specification({
            "com.squareup.okhttp3:okhttp:4.9.0": {"insecure": True, "exclude": ["com.squareup.okio:okio"]},
        })
        status = await generate_repository(spec, tmp_path, fake_resolver, output)
        assert status == 0
        assert "okio" not in (tmp_path / "com/squareup/okhttp3/BUILD.bazel").read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_exclude_of_unknown_slug_is_lenient(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("javax.inject:javax.inject:1")
        spec = specification({"javax.inject:javax.inject:1": {"insecure": True, "exclude": ["no.such:thing"]}})
        assert await generate_repository(spec, tmp_path, fake_resolver, output) == 0

    @pytest.mark.asyncio
    async def test_duplicates(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("javax.inject:javax.inject:1")
        fake_resolver.add("javax.inject:javax.inject:2")
        spec = specification({
            "javax.inject:javax.inject:1": {"insecure": True},
            "javax.inject:javax.inject:2": {"insecure": True},
        })
        status = await generate_repository(spec, tmp_path, fake_resolver, output)
        assert status == 1
        text = output.stream.getvalue()
        assert "ERROR: Duplicate artifact entries are not permitted:" in text
        assert "    javax.inject:javax.inject: [1, 2]" in text

    @pytest.mark.asyncio
    async def test_unresolved_does_not_stop_others(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("javax.inject:javax.inject:1")
        fake_resolver.fail("com.example:broken:1.0", message="connection refused")
        spec = specification({
            "com.example:broken:1.0": {"insecure": True},
            "javax.inject:javax.inject:1": {"insecure": True},
        })
        status = await generate_repository(spec, tmp_path, fake_resolver, output, threads=2)
        assert status == 1
        text = output.stream.getvalue()
        assert "ERROR: Could not resolve com.example:broken:1.0: connection refused" in text
        assert "ERROR: Failed to resolve the following artifacts: [com.example:broken:1.0]" in text
        assert "Resolved 1 artifacts with 2 threads" in text
        assert (tmp_path / "javax/inject/BUILD.bazel").exists()

    @pytest.mark.asyncio
    async def test_write_failure_does_not_stop_other_groups(
        self, tmp_path, fake_resolver, specification, output, dep
    ):
        fake_resolver.add("com.example:a:1.0", dependencies=[dep("com.squareup.okio:okio:2.8.0")])
        fake_resolver.add("javax.inject:javax.inject:1")
        spec = specification({
            "com.example:a:1.0": {"insecure": True},
            "javax.inject:javax.inject:1": {"insecure": True},
        }, generate_rules_jvm_compatibility_targets=True)
        workspace = tmp_path / "ws"
        workspace.mkdir()
        (workspace / "com").write_text("not a directory", encoding="utf-8")

        status = await generate_repository(spec, workspace, fake_resolver, output)
        assert status == 1
        text = output.stream.getvalue()
        assert f"ERROR: Could not write {workspace / 'com/example/BUILD.bazel'}" in text
        assert (workspace / "javax/inject/BUILD.bazel").exists()
        assert f"Generated 1 build files in {workspace}" in text
        # Consistency checks and the summary still run.
        assert '    "com.squareup.okio:okio:2.8.0": {"insecure": True},' in text
        assert (workspace / "BUILD.bazel").exists()
        assert "Resolved 2 artifacts with 1 threads in " in text

    @pytest.mark.asyncio
    async def test_legacy_artifact_declared(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("com.android.support:support-annotations:28.0.0")
        spec = specification(
            {"com.android.support:support-annotations:28.0.0": {"insecure": True}}, use_jetifier=True
        )
        assert await generate_repository(spec, tmp_path, fake_resolver, output) == 1
        assert "(should be androidx.annotation:annotation)" in output.stream.getvalue()


class TestGeneratedContent:
    @pytest.mark.asyncio
    async def test_snippet_byte_for_byte(self, tmp_path, fake_resolver, specification, output, dep):
        snippet = 'java_library(\n    name = "guava",\n    exports = ["@guava//jar"],\n)\n'
        fake_resolver.add("com.google.guava:guava:31.1-jre", dependencies=[dep("com.google.guava:failureaccess:1.0.1")])
        spec = specification({"com.google.guava:guava:31.1-jre": {"insecure": True, "build_snippet": snippet}})
        status = await generate_repository(spec, tmp_path, fake_resolver, output)
        assert status == 0
        build = (tmp_path / "com/google/guava/BUILD.bazel").read_text(encoding="utf-8")
        assert build.endswith(snippet)
        assert "failureaccess" not in build

    @pytest.mark.asyncio
    async def test_leaf_collapse_across_groups(self, tmp_path, fake_resolver, specification, output, dep):
        fake_resolver.add("com.squareup.okio:okio:2.8.0")
        fake_resolver.add("com.squareup.okio:okio-fakefilesystem:2.8.0", dependencies=[dep("com.squareup.okio:okio:2.8.0")])
        fake_resolver.add("com.squareup.okhttp3:okhttp:4.9.0", dependencies=[dep("com.squareup.okio:okio:2.8.0")])
        spec = specification({
            "com.squareup.okio:okio:2.8.0": {"insecure": True},
            "com.squareup.okio:okio-fakefilesystem:2.8.0": {"insecure": True},
            "com.squareup.okhttp3:okhttp:4.9.0": {"insecure": True},
        })
        assert await generate_repository(spec, tmp_path, fake_resolver, output, threads=3) == 0
        okhttp = (tmp_path / "com/squareup/okhttp3/BUILD.bazel").read_text(encoding="utf-8")
        assert '"@maven//com/squareup/okio",' in okhttp
        assert "@maven//com/squareup/okio:okio" not in okhttp
        okio = (tmp_path / "com/squareup/okio/BUILD.bazel").read_text(encoding="utf-8")
        assert '        ":okio",\n' in okio

    @pytest.mark.asyncio
    async def test_idempotent(self, tmp_path, fake_resolver, specification, output, dep):
        for name in ("a", "b", "c", "d"):
            fake_resolver.add(f"com.example:{name}:1.0", dependencies=[dep("javax.inject:javax.inject:1")])
        fake_resolver.add("javax.inject:javax.inject:1")
        artifacts = {f"com.example:{name}:1.0": {"insecure": True} for name in ("d", "b", "a", "c")}
        artifacts["javax.inject:javax.inject:1"] = {"insecure": True}
        spec = specification(artifacts, generate_rules_jvm_compatibility_targets=True)

        await generate_repository(spec, tmp_path / "first", fake_resolver, output, threads=4)
        await generate_repository(spec, tmp_path / "second", fake_resolver, output, threads=1)
        assert read_tree(tmp_path / "first") == read_tree(tmp_path / "second")

    @pytest.mark.asyncio
    async def test_aar(self, tmp_path, fake_resolver, specification, output, aar_bytes):
        fake_resolver.add("com.example:widget:2.0", packaging="aar", payload=aar_bytes(libs=["extra.jar"]))
        fake_resolver.add("com.example:util:2.0")
        spec = specification({
            "com.example:widget:2.0": {"insecure": True},
            "com.example:util:2.0": {"insecure": True},
        }, use_jetifier=True)
        assert await generate_repository(spec, tmp_path, fake_resolver, output) == 0
        build = (tmp_path / "com/example/BUILD.bazel").read_text(encoding="utf-8")
        assert 'load("@build_bazel_rules_android//android:rules.bzl", "android_library")' in build
        assert '    custom_package = "com.example.widget",\n' in build
        assert '        ":widget_libs_extra",\n' in build
        assert "    jetify = True,\n" in build

    @pytest.mark.asyncio
    async def test_aar_without_package_fails(self, tmp_path, fake_resolver, specification, output, aar_bytes):
        fake_resolver.add("com.example:widget:2.0", packaging="aar", payload=aar_bytes(package=None))
        spec = specification({"com.example:widget:2.0": {"insecure": True}})
        assert await generate_repository(spec, tmp_path, fake_resolver, output) == 1
        assert "ERROR: Null resource package for com.example:widget:2.0" in output.stream.getvalue()
        assert not (tmp_path / "com/example/BUILD.bazel").exists()

    @pytest.mark.asyncio
    async def test_aar_download_failure(self, tmp_path, fake_resolver, specification, output):
        fake_resolver.add("com.example:widget:2.0", packaging="aar", payload=None)
        spec = specification({"com.example:widget:2.0": {"insecure": True}})
        assert await generate_repository(spec, tmp_path, fake_resolver, output) == 1
        assert "Failed to download com.example:widget:2.0." in output.stream.getvalue()


class TestUnknownPackaging:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy,expected_status,message", [
        (UnknownPackagingStrategy.WARN, 0, "WARNING: com.example:data:1.0 is not a handled package type, zip"),
        (UnknownPackagingStrategy.FAIL, 1, "ERROR: com.example:data:1.0 is not a supported packaging, zip"),
        (UnknownPackagingStrategy.IGNORE, 0, None),
    ])
    async def test_strategies(
        self, tmp_path, fake_resolver, specification, output, strategy, expected_status, message
    ):
        fake_resolver.add("com.example:data:1.0", packaging="zip")
        spec = specification({"com.example:data:1.0": {"insecure": True}})
        status = await generate_repository(spec, tmp_path, fake_resolver, output, unknown_packaging=strategy)
        assert status == expected_status
        text = output.stream.getvalue()
        if message:
            assert message in text
        else:
            assert "WARNING" not in text and "ERROR" not in text
        build = (tmp_path / "com/example/BUILD.bazel").read_text(encoding="utf-8")
        assert "filegroup(\n" in build
