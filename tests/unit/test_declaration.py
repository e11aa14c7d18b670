"""Tests for declaration templating and decoding."""

from __future__ import annotations

from pathlib import Path

import pytest

from chartwave.errors import ChartNameEmptyError, DeclarationError, UnknownFormatError
from chartwave.plan.declaration import CopyTemplater, EnvTemplater, decode_declaration

_DECLARATION = """\
project: shop
version: "0.4.0"
repositories:
  - name: bitnami
    url: https://charts.bitnami.com/bitnami
releases:
  - name: redis
    namespace: cache
    chart:
      name: bitnami/redis
      version: 17.3.0
    tags: [backend, cache]
    values: [values/redis.yml]
  - name: web
    chart: ./charts/web
    depends_on: [redis@cache]
    wait: true
"""


class TestDecodeDeclaration:
    def test_full_document(self) -> None:
        decl = decode_declaration(_DECLARATION)

        assert decl.project == "shop"
        assert decl.version == "0.4.0"
        assert [r.name for r in decl.repositories] == ["bitnami"]
        redis, web = decl.releases
        assert redis.unique_name == "redis@cache"
        assert redis.chart.version == "17.3.0"
        assert redis.tags == ["backend", "cache"]
        assert web.chart.name == "./charts/web"
        assert web.chart.is_scalar
        assert web.depends_on == ["redis@cache"]
        assert web.wait is True

    def test_unquoted_numbers_keep_their_text(self) -> None:
        decl = decode_declaration(
            "version: 0.10\n"
            "releases:\n"
            "  - name: redis\n"
            "    chart: {name: bitnami/redis, version: 17.10}\n"
            "    offline_kube_version: 1.20\n"
            "    tags: [1.10]\n"
            "    wait: false\n"
        )
        assert decl.version == "0.10"
        (redis,) = decl.releases
        assert redis.chart.version == "17.10"
        assert redis.offline_kube_version == "1.20"
        assert redis.tags == ["1.10"]
        assert redis.wait is False

    def test_empty_document(self) -> None:
        decl = decode_declaration("")
        assert decl.releases == []
        assert decl.repositories == []

    def test_null_sections(self) -> None:
        decl = decode_declaration("project: p\nreleases:\nrepositories: ~\n")
        assert decl.releases == []

    def test_invalid_yaml(self) -> None:
        with pytest.raises(DeclarationError, match="failed to parse declaration"):
            decode_declaration("releases: [\n")

    def test_root_must_be_mapping(self) -> None:
        with pytest.raises(DeclarationError):
            decode_declaration("- a\n- b\n")

    def test_releases_must_be_list(self) -> None:
        with pytest.raises(DeclarationError, match="releases at 1 line must be a list"):
            decode_declaration("releases: nope\n")

    def test_release_without_chart(self) -> None:
        with pytest.raises(DeclarationError, match="has no chart"):
            decode_declaration("releases:\n  - name: orphan\n")

    def test_sequence_chart_reports_line(self) -> None:
        with pytest.raises(UnknownFormatError) as exc_info:
            decode_declaration("releases:\n  - name: web\n    chart:\n      - a\n")
        assert exc_info.value.line == 4

    def test_empty_chart_name(self) -> None:
        with pytest.raises(ChartNameEmptyError):
            decode_declaration("releases:\n  - name: web\n    chart: ''\n")

    def test_repository_must_be_mapping(self) -> None:
        with pytest.raises(DeclarationError):
            decode_declaration("repositories:\n  - bitnami\n")


class TestTemplaters:
    def test_copy(self, tmp_path: Path) -> None:
        src = tmp_path / "helmwave.yml.tpl"
        src.write_text("project: $PROJECT\n")
        assert CopyTemplater().render(str(src)) == "project: $PROJECT\n"

    def test_env_expands_both_forms(self, tmp_path: Path) -> None:
        src = tmp_path / "helmwave.yml.tpl"
        src.write_text("project: $PROJECT\nversion: ${VERSION}\n")
        out = EnvTemplater({"PROJECT": "shop", "VERSION": "1.0"}).render(str(src))
        assert out == "project: shop\nversion: 1.0\n"

    def test_env_prefers_longest_name(self, tmp_path: Path) -> None:
        src = tmp_path / "helmwave.yml.tpl"
        src.write_text("a: $NAME_SUFFIX\n")
        out = EnvTemplater({"NAME": "x", "NAME_SUFFIX": "y"}).render(str(src))
        assert out == "a: y\n"

    def test_env_uses_process_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHARTWAVE_TEST_PROJECT", "from-env")
        src = tmp_path / "helmwave.yml.tpl"
        src.write_text("project: ${CHARTWAVE_TEST_PROJECT}\n")
        assert EnvTemplater().render(str(src)) == "project: from-env\n"
