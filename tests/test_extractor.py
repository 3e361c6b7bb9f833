"""
Tests for rule-driven field extraction.
"""

import pytest

from crawler.extractor import RuleExtractor, normalize_text, parse_count
from crawler.rules import ExtractionRule, RuleRegistry
from models.enums import SiteType


NEWS_HTML = """
<html>
<head><title>Fallback title</title></head>
<body>
  <div class="ad">BUY NOW BUY NOW BUY NOW BUY NOW BUY NOW BUY NOW BUY NOW</div>
  <h1>  人工智能的未来  </h1>
  <span class="author">张三</span>
  <time datetime="2024-03-15T08:00:00+08:00">3月15日</time>
  <div class="article-content">
    <p>Artificial intelligence is reshaping industries across the world.</p>
    <p>Researchers expect   the pace of change to accelerate further.</p>
    <script>var tracking = "should not appear";</script>
  </div>
  <img src="/img/cover.jpg">
  <img src="/img/cover.jpg">
  <img src="data:image/gif;base64,R0lGOD">
  <img data-src="https://cdn.example.com/lazy.jpg">
</body>
</html>
"""

ENCYCLOPEDIA_HTML = """
<html><body>
  <h1>人工智能</h1>
  <div class="para">目录 编辑 这一段属于导航而不是正文内容，应该被跳过。</div>
  <div class="para">人工智能是研究、开发用于模拟、延伸和扩展人的智能的理论、方法及应用系统的一门新的技术科学。</div>
  <div class="para">人工智能是计算机科学的一个分支，它企图了解智能的实质，并生产出一种新的能以人类智能相似的方式做出反应的智能机器。</div>
  <div class="para">短句</div>
  <div class="para">该领域的研究包括机器人、语言识别、图像识别、自然语言处理和专家系统等多个方向。</div>
</body></html>
"""


class TestHelpers:

    @pytest.mark.parametrize("text,expected", [
        ("1,234", 1234),
        ("3.4k", 3400),
        ("1.2万", 12000),
        ("2亿", 200_000_000),
        ("赞 56", 56),
        ("", 0),
        ("no numbers", 0),
    ])
    def test_parse_count(self, text, expected):
        assert parse_count(text) == expected

    def test_normalize_text(self):
        assert normalize_text("  a \n\t b  ") == "a b"
        assert normalize_text(None) == ""


class TestRuleExtractor:

    def setup_method(self):
        self.extractor = RuleExtractor()
        self.registry = RuleRegistry.with_defaults()

    def test_news_page(self):
        rule = self.registry.rule_for(SiteType.NEWS)
        fields = self.extractor.extract(NEWS_HTML, "https://news.example.com/a/1", rule)

        assert fields.title == "人工智能的未来"
        assert fields.author == "张三"
        assert fields.publish_time == "2024-03-15T08:00:00+08:00"
        assert "reshaping industries" in fields.content
        assert "the pace of change" in fields.content
        assert "tracking" not in fields.content
        assert "BUY NOW" not in fields.content
        assert fields.images == [
            "https://news.example.com/img/cover.jpg",
            "https://cdn.example.com/lazy.jpg",
        ]

    def test_title_falls_back_to_title_tag(self):
        rule = self.registry.rule_for(SiteType.NEWS)
        fields = self.extractor.extract(
            "<html><head><title>Only Title</title></head><body></body></html>",
            "https://example.com/",
            rule,
        )
        assert fields.title == "Only Title"
        assert fields.content == ""

    def test_exclude_selectors_removed_before_extraction(self):
        rule = self.registry.rule_for(SiteType.NEWS)
        html = """
        <article>
          <div class="share-box">Share this article on every social network you know of today</div>
          <p>The actual story text is long enough to pass every content threshold we use.</p>
        </article>
        """
        fields = self.extractor.extract(html, "https://example.com/", rule, exclude_selectors=[".share-box"])
        assert "Share this" not in fields.content
        assert "actual story" in fields.content

    def test_every_excluded_match_removed(self):
        rule = self.registry.rule_for(SiteType.NEWS)
        noise = "".join(f'<span class="promo">NOISE{i}</span>' for i in range(600))
        html = f"""
        <article>
          {noise}
          <p>The actual story text is long enough to pass every content threshold we use.</p>
        </article>
        """
        fields = self.extractor.extract(html, "https://example.com/", rule, exclude_selectors=[".promo"])
        assert "NOISE" not in fields.content
        assert "actual story" in fields.content

    def test_nested_excluded_matches_removed(self):
        rule = self.registry.rule_for(SiteType.NEWS)
        html = """
        <article>
          <div class="promo">outer ad <div class="promo">inner ad</div></div>
          <p>The actual story text is long enough to pass every content threshold we use.</p>
        </article>
        """
        fields = self.extractor.extract(html, "https://example.com/", rule, exclude_selectors=[".promo"])
        assert "ad" not in fields.content.split()
        assert "actual story" in fields.content

    def test_encyclopedia_paragraph_fallback(self):
        """No summary: up to 5 qualifying paragraphs, navigation text skipped."""
        rule = self.registry.rule_for(SiteType.ENCYCLOPEDIA)
        fields = self.extractor.extract(ENCYCLOPEDIA_HTML, "https://baike.baidu.com/item/ai", rule)

        assert fields.content.startswith("人工智能是研究")
        assert "计算机科学的一个分支" in fields.content
        assert "专家系统" in fields.content
        assert "目录" not in fields.content
        assert "短句" not in fields.content

    def test_encyclopedia_keeps_prose_mentioning_contents(self):
        rule = self.registry.rule_for(SiteType.ENCYCLOPEDIA)
        html = """
        <div class="mw-parser-output">
          <p>Contents 1 History 2 Collections 3 Destruction of the library buildings</p>
          <p>History [edit] This heading paragraph was captured together with its edit link.</p>
          <p>The contents of the Library of Alexandria were gathered from ships in the harbour.</p>
        </div>
        """
        fields = self.extractor.extract(html, "https://en.wikipedia.org/wiki/Library", rule)

        assert fields.content == (
            "The contents of the Library of Alexandria were gathered from ships in the harbour."
        )

    def test_encyclopedia_summary_wins(self):
        rule = self.registry.rule_for(SiteType.ENCYCLOPEDIA)
        summary = "人工智能（Artificial Intelligence），英文缩写为AI，是新的一门技术科学，研究模拟和扩展人的智能。"
        html = f'<div class="lemma-summary">{summary}</div>' + ENCYCLOPEDIA_HTML
        fields = self.extractor.extract(html, "https://baike.baidu.com/item/ai", rule)
        assert fields.content == summary

    def test_generic_paragraph_fallback(self):
        rule = self.registry.rule_for(SiteType.BLOG)
        html = """
        <p>First paragraph with more than twenty characters.</p>
        <p>tiny</p>
        <p>Second paragraph with more than twenty characters.</p>
        <p>Third paragraph with more than twenty characters.</p>
        <p>Fourth paragraph with more than twenty characters.</p>
        """
        fields = self.extractor.extract(html, "https://blog.example.com/", rule)
        assert "First paragraph" in fields.content
        assert "Third paragraph" in fields.content
        assert "Fourth paragraph" not in fields.content

    def test_truncates_content(self):
        rule = ExtractionRule(
            name="short",
            site_type=SiteType.NEWS,
            selectors={"content": ["article"]},
            max_content_length=60,
        )
        html = "<article>" + "word " * 100 + "</article>"
        fields = self.extractor.extract(html, "https://example.com/", rule)
        assert len(fields.content) == 60

    def test_metrics_and_custom_fields(self):
        rule = ExtractionRule(
            name="product",
            site_type=SiteType.ECOMMERCE,
            selectors={
                "title": ["h1"],
                "likes": [".likes"],
                "comments": [".comments"],
                "price": [".price"],
            },
        )
        html = """
        <h1>Phone</h1>
        <span class="likes">1.2万</span>
        <span class="comments">3,456</span>
        <span class="price">¥ 2999</span>
        """
        fields = self.extractor.extract(html, "https://shop.example.com/p/1", rule)
        assert fields.metrics.likes == 12000
        assert fields.metrics.comments == 3456
        assert fields.metrics.views == 0
        assert fields.extra == {"price": "¥ 2999"}

    def test_no_metric_selectors_means_no_metrics(self):
        rule = self.registry.rule_for(SiteType.NEWS)
        fields = self.extractor.extract(NEWS_HTML, "https://news.example.com/", rule)
        assert fields.metrics is None

    def test_video_poster_image(self):
        rule = self.registry.rule_for(SiteType.VIDEO)
        html = '<h1>Clip</h1><video poster="/thumbs/1.jpg"></video>'
        fields = self.extractor.extract(html, "https://video.example.com/watch/1", rule)
        assert fields.images == ["https://video.example.com/thumbs/1.jpg"]
