"""
Tests for extraction rules and the rule registry.
"""

import json

import pytest

from crawler.rules import ExtractionRule, RuleOptions, RuleRegistry, default_rules
from models.enums import SiteType


class TestExtractionRule:

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            ExtractionRule(name="bad", site_type=SiteType.NEWS, content_strategy=["magic"])

    def test_site_type_from_string(self):
        rule = ExtractionRule(name="r", site_type="blog")
        assert rule.site_type == SiteType.BLOG

    def test_extra_fields(self):
        rule = ExtractionRule(
            name="shop",
            site_type=SiteType.ECOMMERCE,
            selectors={"title": ["h1"], "likes": [".likes"], "price": [".price"]},
        )
        assert rule.extra_fields() == ["price"]

    def test_dict_roundtrip_keeps_options(self):
        rule = ExtractionRule(
            name="zhihu-like",
            site_type=SiteType.SOCIAL,
            url_patterns=[r"example\.com"],
            selectors={"title": ["h1"]},
            options=RuleOptions(use_rendered_fetch=True, wait_for_selector=".main", delay_ms=500),
        )
        data = rule.to_dict()
        assert data["siteType"] == "social"
        assert data["options"]["usePuppeteer"] == True

        restored = ExtractionRule.from_dict(data)
        assert restored == rule

    def test_from_dict_minimal(self):
        rule = ExtractionRule.from_dict({"name": "tiny", "selectors": {"image": ["img"]}})
        assert rule.site_type == SiteType.GENERAL
        assert rule.selectors == {"images": ["img"]}
        assert rule.options.use_rendered_fetch == False


class TestRuleRegistry:

    def setup_method(self):
        self.registry = RuleRegistry.with_defaults()

    def test_defaults_cover_every_site_type(self):
        for site_type in SiteType:
            assert self.registry.rule_for(site_type).site_type == site_type

    def test_rule_for_prefers_generic_rule(self):
        # weibo/zhihu/xiaohongshu are social too, but carry URL patterns
        assert self.registry.rule_for(SiteType.SOCIAL).name == "general-social"

    def test_rule_for_falls_back_to_news(self):
        registry = RuleRegistry([r for r in default_rules() if r.site_type != SiteType.GOV])
        assert registry.rule_for(SiteType.GOV).site_type == SiteType.NEWS

    def test_rule_for_without_fallback(self):
        registry = RuleRegistry()
        with pytest.raises(LookupError):
            registry.rule_for(SiteType.NEWS)

    def test_match_url(self):
        assert self.registry.match_url("https://www.zhihu.com/question/1").name == "zhihu"
        assert self.registry.match_url("https://m.weibo.cn/detail/1").name == "weibo"
        assert self.registry.match_url("https://example.com/") is None

    def test_invalid_pattern_skipped(self, caplog):
        rule = ExtractionRule(
            name="broken", site_type=SiteType.NEWS, url_patterns=["([unclosed", r"broken\.example"]
        )
        self.registry.add(rule)
        assert "Invalid URL pattern" in caplog.text
        assert self.registry.match_url("https://broken.example/x").name == "broken"

    def test_add_replaces_by_name(self):
        count = len(self.registry)
        self.registry.add(ExtractionRule(name="general-news", site_type=SiteType.NEWS, description="v2"))
        assert len(self.registry) == count
        assert self.registry.get("general-news").description == "v2"

    def test_remove(self):
        assert self.registry.remove("zhihu") == True
        assert self.registry.remove("zhihu") == False
        assert self.registry.match_url("https://www.zhihu.com/question/1") is None

    def test_by_site_type(self):
        names = {r.name for r in self.registry.by_site_type(SiteType.VIDEO)}
        assert names == {"general-video", "douyin"}

    def test_export_then_load(self):
        exported = self.registry.export_json()
        fresh = RuleRegistry()
        loaded = fresh.load_json(exported)

        assert loaded == len(self.registry)
        assert fresh.get("general-encyclopedia").max_paragraphs == 5
        assert fresh.get("douyin").options.use_rendered_fetch == True

    def test_load_json_rejects_garbage(self):
        with pytest.raises(ValueError):
            self.registry.load_json("not json")
        with pytest.raises(ValueError):
            self.registry.load_json(json.dumps({"name": "not-a-list"}))
        with pytest.raises(ValueError):
            self.registry.load_json(json.dumps([{"selectors": {}}]))
