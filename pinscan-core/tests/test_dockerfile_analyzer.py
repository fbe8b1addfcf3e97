"""Tests for Dockerfile FROM pinning and RUN download detection."""

from pathlib import Path

import pytest

from pinscan.errors import DockerfileParsingError, InternalError
from pinscan.models.dependencies import DependencyKind, PinningDependenciesData
from pinscan.scanner.dockerfile_analyzer import (
    file_is_in_vendor_dir,
    is_dockerfile,
    is_image_reference_pinned,
    is_template_file,
    validate_dockerfile_insecure_downloads,
    validate_dockerfile_pinning,
)

DIGEST = "sha256:" + "0123456789abcdef" * 4
FIXTURES = Path(__file__).parent / "fixtures"


def _pinning(content: str, path: str = "Dockerfile") -> PinningDependenciesData:
    results = PinningDependenciesData()
    validate_dockerfile_pinning(path, content, results)
    return results


def _downloads(content: str, path: str = "Dockerfile") -> PinningDependenciesData:
    results = PinningDependenciesData()
    validate_dockerfile_insecure_downloads(path, content, results)
    return results


def _both(content, path: str = "Dockerfile") -> PinningDependenciesData:
    results = PinningDependenciesData()
    validate_dockerfile_pinning(path, content, results)
    validate_dockerfile_insecure_downloads(path, content, results)
    return results


class TestBaseImagePinning:
    """FROM lines and multi-stage aliases."""

    def test_tag_not_pinned(self):
        results = _pinning("FROM python:3.7\n")
        dep = results.dependencies[0]
        assert dep.kind == DependencyKind.DOCKER_IMAGE
        assert dep.name == "python"
        assert dep.pinned_at == "3.7"
        assert dep.pinned is False

    def test_digest_pinned(self):
        results = _pinning(f"FROM python@{DIGEST}\n")
        assert results.dependencies[0].pinned is True

    def test_platform_flag_ignored(self):
        results = _pinning(f"FROM --platform=linux/amd64 python@{DIGEST}\n")
        assert len(results.dependencies) == 1
        assert results.dependencies[0].pinned is True

    def test_alias_carries_pinned_state(self):
        content = f"FROM golang@{DIGEST} AS build\nRUN make\nFROM build\n"
        results = _pinning(content)
        assert [d.pinned for d in results.dependencies] == [True, True]
        assert results.dependencies[0].pinned_at == "build"

    def test_alias_transitive(self):
        content = f"FROM golang@{DIGEST} AS base\nFROM base AS build\nFROM build\n"
        results = _pinning(content)
        assert [d.pinned for d in results.dependencies] == [True, True, True]

    def test_unpinned_alias_stays_unpinned(self):
        content = "FROM golang:1.22 AS build\nFROM build\n"
        results = _pinning(content)
        assert [d.pinned for d in results.dependencies] == [False, False]

    def test_scratch_not_recorded(self):
        results = _pinning("FROM scratch\nCOPY app /app\n")
        assert results.dependencies == []

    def test_scratch_alias_is_pinned(self):
        results = _pinning("FROM scratch AS empty\nFROM empty\n")
        assert [d.pinned for d in results.dependencies] == [True]

    def test_line_numbers_and_snippet(self):
        results = _pinning("ARG VERSION=3\nFROM alpine:3.19\n")
        loc = results.dependencies[0].location
        assert loc.start_line == 2
        assert loc.end_line == 2
        assert loc.snippet == "FROM alpine:3.19"

    def test_unexpected_from_shape(self):
        with pytest.raises(InternalError):
            _pinning("FROM alpine:3.19 extra\n")

    def test_template_skipped(self):
        results = _pinning("FROM python:3.7\n", path="Dockerfile.template")
        assert results.dependencies == []

    def test_vendor_skipped(self):
        results = _pinning("FROM python:3.7\n", path="third_party/tool/Dockerfile")
        assert results.dependencies == []

    def test_vendor_kept_when_not_skipping(self):
        results = PinningDependenciesData()
        validate_dockerfile_pinning("vendor/Dockerfile", "FROM python:3.7\n", results, skip_vendor=False)
        assert len(results.dependencies) == 1


class TestRunDownloads:
    """RUN instructions are walked as shell with a per-file taint set."""

    def test_pipe_to_shell(self):
        results = _downloads("FROM python:3.7\nRUN curl https://example.com/install.sh | bash\n")
        assert len(results.dependencies) == 1
        dep = results.dependencies[0]
        assert dep.kind == DependencyKind.DOWNLOAD_THEN_RUN
        assert dep.location.start_line == 2

    def test_taint_across_run_lines(self):
        content = (
            "FROM debian:bookworm\n"
            "RUN wget -O /tmp/setup.sh https://example.com/setup.sh\n"
            "RUN bash /tmp/setup.sh\n"
        )
        results = _downloads(content)
        assert len(results.dependencies) == 1
        assert results.dependencies[0].location.start_line == 3

    def test_continuation_lines(self):
        content = (
            "FROM debian:bookworm\n"
            "RUN apt-get update && \\\n"
            "    pip install flask\n"
        )
        results = _downloads(content)
        assert [d.kind for d in results.dependencies] == [DependencyKind.PIP_COMMAND]

    def test_exec_form(self):
        results = _downloads('FROM node:20\nRUN ["npm", "install"]\n')
        assert [d.kind for d in results.dependencies] == [DependencyKind.NPM_COMMAND]

    def test_run_flags_stripped(self):
        results = _downloads("FROM node:20\nRUN --mount=type=cache,target=/root/.npm npm install\n")
        assert [d.kind for d in results.dependencies] == [DependencyKind.NPM_COMMAND]

    def test_pinned_installs_clean(self):
        results = _downloads("FROM python:3.12\nRUN pip install --require-hashes -r requirements.txt\n")
        assert results.dependencies == []

    def test_no_run_instructions(self):
        results = _downloads("FROM python:3.12\nCOPY . /app\n")
        assert results.dependencies == []


class TestHeredocs:
    """RUN <<EOF bodies are walked as shell at their own lines."""

    def test_body_and_following_run(self):
        content = (
            "FROM python:3.7\n"
            "RUN <<EOF\n"
            "echo hi\n"
            "curl https://example.com/a.sh | sh\n"
            "EOF\n"
            "RUN curl https://example.com/i.sh | bash\n"
        )
        results = _downloads(content)
        assert [d.location.start_line for d in results.dependencies] == [4, 6]
        assert all(d.kind == DependencyKind.DOWNLOAD_THEN_RUN for d in results.dependencies)

    def test_dash_and_quoted_delimiter_with_taint(self):
        content = (
            "FROM alpine:3.19\n"
            'RUN <<-"SCRIPT"\n'
            "\twget -O /tmp/i.sh https://example.com/i.sh\n"
            "\tSCRIPT\n"
            "RUN sh /tmp/i.sh\n"
        )
        results = _downloads(content)
        assert [d.location.start_line for d in results.dependencies] == [5]

    def test_body_lines_are_not_instructions(self):
        content = (
            "FROM alpine:3.19\n"
            "COPY <<EOF /etc/motd\n"
            "FROM a b c\n"
            "EOF\n"
        )
        results = _pinning(content)
        assert [d.name for d in results.dependencies] == ["alpine"]

    def test_unterminated(self):
        with pytest.raises(DockerfileParsingError):
            _downloads("FROM alpine:3.19\nRUN <<EOF\necho hi\n")


class TestEndToEnd:
    """Both Dockerfile checks on one file."""

    def test_image_and_download(self):
        results = _both("FROM python:3.7\nRUN curl https://x/install.sh | bash\n")
        assert len(results.dependencies) == 2
        image, download = results.dependencies
        assert image.kind == DependencyKind.DOCKER_IMAGE
        assert image.location.start_line == 1
        assert download.kind == DependencyKind.DOWNLOAD_THEN_RUN
        assert download.location.start_line == 2
        assert not any(d.pinned for d in results.dependencies)

    def test_fixture_dockerfile(self):
        results = _both((FIXTURES / "sample_repo" / "Dockerfile").read_bytes())
        images = results.by_kind(DependencyKind.DOCKER_IMAGE)
        assert [d.pinned for d in images] == [True, False]
        downloads = results.by_kind(DependencyKind.DOWNLOAD_THEN_RUN)
        assert [d.location.start_line for d in downloads] == [5]


class TestDetection:
    """File predicates."""

    def test_is_dockerfile(self):
        assert is_dockerfile("Dockerfile", "FROM alpine\n")
        assert is_dockerfile("build/Dockerfile.prod", "FROM alpine\n")
        assert not is_dockerfile("dockerfile_test.go", "package main\n")
        assert not is_dockerfile("Dockerfile.sh", "#!/bin/bash\necho hi\n")

    def test_template_names(self):
        assert is_template_file("Dockerfile.template")
        assert is_template_file("Dockerfile_tmpl")
        assert is_template_file("docker/Dockerfile-app.tpl")
        assert not is_template_file("Dockerfile.prod")

    def test_vendor_dirs(self):
        assert file_is_in_vendor_dir("vendor/x/Dockerfile")
        assert file_is_in_vendor_dir("a/third_party/Dockerfile")
        assert not file_is_in_vendor_dir("vendors/Dockerfile")

    def test_pinned_reference(self):
        assert is_image_reference_pinned(f"alpine@{DIGEST}")
        assert is_image_reference_pinned("alpine@sha256:${DIGEST}")
        assert not is_image_reference_pinned("alpine:3.19")
