import argparse
import json
from datetime import datetime, timezone

from secintel.cli.commands.discovery import handle_discovery_command
from secintel.cli.commands.extraction import handle_extraction_command
from secintel.cli.commands.recent import handle_recent_command
from secintel.cli.commands.targets import handle_targets_command
from secintel.crawler.discovery import UrlDiscovery
from secintel.crawler.site_registry import Target, TargetRegistry
from secintel.pipeline.runner import ExtractionRunResult
from tests.helpers import FakeFetcher, make_article


class StubPipeline:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def run_extraction(self, target_id, direct_url=None, custom_prompt=None, *, extraction_order=None):
        self.calls.append((target_id, direct_url, custom_prompt, extraction_order))
        return self.result


def _args(**values):
    return argparse.Namespace(**values)


class TestExtractCommand:
    def test_prints_summary(self, capsys):
        pipeline = StubPipeline(
            ExtractionRunResult(True, 2, "Successfully extracted 2 unique blog posts from Acme", "individual_blog_post_extraction_v7")
        )
        args = _args(target="acme", direct_url=None, custom_prompt="focus", extraction_order="heuristic_first", json=False)

        assert handle_extraction_command(args, pipeline=pipeline) == 0

        out = capsys.readouterr().out.splitlines()
        assert out == [
            "Successfully extracted 2 unique blog posts from Acme",
            "Method: individual_blog_post_extraction_v7",
            "Stored: 2",
        ]
        assert pipeline.calls == [("acme", None, "focus", "heuristic_first")]

    def test_json_envelope_and_failure_exit_code(self, capsys):
        pipeline = StubPipeline(ExtractionRunResult(False, 0, "Target ghost not found"))
        args = _args(target="ghost", direct_url=None, custom_prompt=None, extraction_order=None, json=True)

        assert handle_extraction_command(args, pipeline=pipeline) == 1

        assert json.loads(capsys.readouterr().out) == {
            "success": False,
            "itemsStored": 0,
            "message": "Target ghost not found",
            "extractionMethod": "",
        }


class TestDiscoverCommand:
    def _discovery(self, settings, pages):
        return UrlDiscovery(FakeFetcher(pages), settings, sleep=lambda _: None)

    def test_lists_candidates(self, target, settings, capsys):
        registry = TargetRegistry.from_targets([target])
        pages = {"https://acme.example/blog": '<a href="/blog/acme-vpn-zero-day">x</a>'}
        args = _args(target="acme", quota=None, format="text")

        code = handle_discovery_command(args, registry=registry, discovery=self._discovery(settings, pages))

        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            "Found 1 candidate URLs for Acme Security",
            "  [listing] https://acme.example/blog/acme-vpn-zero-day",
        ]

    def test_json_output(self, target, settings, capsys):
        registry = TargetRegistry.from_targets([target])
        pages = {"https://acme.example/blog": '<a href="/blog/acme-vpn-zero-day">x</a>'}
        args = _args(target="acme", quota=5, format="json")

        handle_discovery_command(args, registry=registry, discovery=self._discovery(settings, pages))

        assert json.loads(capsys.readouterr().out) == [
            {
                "url": "https://acme.example/blog/acme-vpn-zero-day",
                "method": "listing",
                "target_id": "acme",
            }
        ]

    def test_unknown_target(self, settings, capsys):
        registry = TargetRegistry.from_targets([])
        args = _args(target="ghost", quota=None, format="text")

        code = handle_discovery_command(args, registry=registry, discovery=self._discovery(settings, {}))

        assert code == 1
        assert "ghost" in capsys.readouterr().out


class TestTargetsCommand:
    def test_add_then_list(self, repository, capsys):
        add = _args(targets_command="add", id="lab", url="https://lab.example", name="Lab Blog")
        assert handle_targets_command(add, repository=repository) == 0
        assert "Saved target lab (https://lab.example)" in capsys.readouterr().out

        assert handle_targets_command(_args(targets_command="list", format="json"), repository=repository) == 0
        rows = json.loads(capsys.readouterr().out)
        assert {"id": "lab", "name": "Lab Blog", "base_url": "https://lab.example", "source": "stored"} in rows
        assert any(row["id"] == "thehackernews" and row["source"] == "built-in" for row in rows)

    def test_table_output(self, repository, capsys):
        handle_targets_command(_args(targets_command="list", format="table"), repository=repository)
        out = capsys.readouterr().out
        assert "=== Available Targets ===" in out
        assert "ID:   thehackernews" in out

    def test_add_rejects_builtin_id(self, repository, capsys):
        args = _args(targets_command="add", id="thehackernews", url="https://x.example", name=None)
        assert handle_targets_command(args, repository=repository) == 1
        assert repository.get_target("thehackernews") is None

    def test_add_rejects_invalid_url(self, repository):
        args = _args(targets_command="add", id="lab", url="not a url", name=None)
        assert handle_targets_command(args, repository=repository) == 1

    def test_name_defaults_to_id(self, repository):
        handle_targets_command(
            _args(targets_command="add", id="lab", url="https://lab.example", name=None),
            repository=repository,
        )
        assert repository.get_target("lab").name == "lab"

    def test_missing_subcommand(self, repository, capsys):
        assert handle_targets_command(_args(targets_command=None), repository=repository) == 1
        assert "Usage" in capsys.readouterr().out


class TestRecentCommand:
    def test_lists_recent_records(self, repository, capsys):
        published = datetime.now(timezone.utc).replace(microsecond=0)
        repository.upsert_article(
            "acme",
            make_article(published_at=published, extracted_at=published),
        )

        assert handle_recent_command(_args(target="acme", months=2, format="text"), repository=repository) == 0

        out = capsys.readouterr().out
        assert f"{published.date().isoformat()}  [vulnerability] Critical vulnerability in Acme VPN" in out
        assert "https://acme.example/blog/acme-vpn-flaw" in out

    def test_json_output(self, repository, capsys):
        published = datetime.now(timezone.utc).replace(microsecond=0)
        repository.upsert_article("acme", make_article(published_at=published))

        handle_recent_command(_args(target="acme", months=2, format="json"), repository=repository)

        [row] = json.loads(capsys.readouterr().out)
        assert row["content_type"] == "vulnerability"
        assert row["published_at"] == published.replace(tzinfo=None).isoformat()

    def test_empty(self, repository, capsys):
        handle_recent_command(_args(target="acme", months=1, format="text"), repository=repository)
        assert capsys.readouterr().out.strip() == "No articles from the last 1 months for acme"


def test_stored_target_resolves_for_discovery(repository, settings, capsys):
    repository.upsert_target(Target("lab", "Lab", "https://lab.example"))
    registry = TargetRegistry.from_targets([], store=repository)
    discovery = UrlDiscovery(FakeFetcher(), settings, sleep=lambda _: None)

    assert handle_discovery_command(_args(target="lab", quota=None, format="text"), registry=registry, discovery=discovery) == 0
    assert "Found 0 candidate URLs for Lab" in capsys.readouterr().out
